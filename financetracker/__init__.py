"""
Finance Tracker - Source Package

Backend for a personal finance tracker: users register, log in,
record income and expenses, set monthly category budgets and
check their spending against those budgets.

DESIGN PRINCIPLES:
1. Every owner-scoped read or write starts from a verified identity
2. Fail early, fail visibly
3. Tokens are stateless; the server keeps no session records
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
