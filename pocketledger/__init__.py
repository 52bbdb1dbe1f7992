"""
PocketLedger - Source Package

Local persistence and change notification for a personal finance and
notes app: transactions, accounts, categories, budgets, bills, savings
goals, notes and folders.

DESIGN PRINCIPLES:
1. Repositories are the only way records change
2. Derived numbers are computed, never stored
3. Fail early, fail visibly
4. Every change is observable and auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "PocketLedger Team"
