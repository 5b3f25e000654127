"""
Daily energy collector package.

Fetches per-site daily and lifetime energy totals from the monitoring API,
aggregates them across every site of one account, and reconciles the daily
aggregate into a MongoDB collection (one document per calendar day).

CHANGELOG:
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""
