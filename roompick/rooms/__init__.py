"""
Room state and persistence.

Responsibilities:
- Define the room document shared by every participant.
- Persist it in memory or Redis with a fixed lifetime.
- Run the vote / next-comparison / result read-modify-write cycles.
"""
