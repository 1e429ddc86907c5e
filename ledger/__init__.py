"""
Personal Ledger - Source Package

Records income and expense transactions for an authenticated user and
turns them into monthly dashboards, category breakdowns and CSV exports.

DESIGN PRINCIPLES:
1. Validate before anything is written
2. Fail early, fail visibly
3. Every query and mutation is scoped to one user
4. Reporting is pure computation over a fetched snapshot
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Ledger Team"
