"""
Campus analytics engine.

Turns per-subject project, review, feedback, mentorship and presence records
into population leaderboards, weekday occupancy and annual retrospectives.
"""

__version__ = "1.0.0"
