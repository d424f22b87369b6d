"""
Comparison-set selection.

Responsibilities:
- Weight candidate shops by the user's and the group's genre affinity.
- Choose the next pair or triplet each participant compares.
"""
