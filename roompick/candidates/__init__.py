"""
Candidate pool.

Responsibilities:
- Map yen budget ranges to the search API's budget codes.
- Fetch shops for an area from the HotPepper gourmet search API.
- Build a de-duplicated, budget-filtered pool for a room.
"""
