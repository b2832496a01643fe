"""Debt consolidation package."""

from household_ledger.consolidation.consolidator import (
    BALANCE_TOLERANCE,
    DebtConsolidator,
    consolidate_debts,
)

__all__ = ["BALANCE_TOLERANCE", "DebtConsolidator", "consolidate_debts"]
