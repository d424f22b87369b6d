"""
Ranking layer.

Responsibilities:
- Replay each user's comparison log into Elo ratings.
- Aggregate every participant's votes into one group ranking.
- Track the top-two history and auto-decide a stable winner.
"""
