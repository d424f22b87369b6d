"""
Vote aggregation.

Responsibilities:
- Fold raw tap scores into per-(user, shop) running statistics.
- Derive pairwise comparison outcomes from a multi-shop submission.
"""
