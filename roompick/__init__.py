"""
Group restaurant decision service.

Responsibilities:
- Show each participant small comparison sets of candidate shops.
- Aggregate tap scores into per-user Elo ratings and a group ranking.
- Auto-finalize the room once the top choice stays stable.
"""
