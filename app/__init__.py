"""
University Consistency Engine
Keeps relations between university records consistent and answers
eligibility questions (year advancement, exam periods, notification
audiences).

Architecture:
- Entity store: MongoDB directly, or the university service over HTTP
- Link reconciler: sole writer of every relation list
- Orchestration: one call per administrative form
"""

__version__ = "1.0.0"
