"""
Household Ledger - Source Package

Shared-expense tracking for households: record movements among members
and external contacts, then answer "who owes whom, and how much."

DESIGN PRINCIPLES:
1. Validate → Authorize → Persist, in that order
2. Fail early, fail visibly
3. No silent corrections
4. Every mutation must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
