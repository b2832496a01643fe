"""
Debt Consolidation Models

Output of the debt consolidator: who owes whom, how much, and which
movements justify each balance.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from household_ledger.models.identity import PersonRef
from household_ledger.models.movement import MovementType


class DebtMovementDetail(BaseModel):
    """
    One movement's contribution to a balance (provenance).

    amount is signed: positive when the movement increased the debt
    (a SPLIT share), negative when it reduced it (a DEBT_PAYMENT).

    counterparty depends on type. For a SPLIT row it is the participant
    whose share is owed to the payer. For a DEBT_PAYMENT row it is the
    person who received the payment. The payer is always the movement's
    payer.
    """

    movement_id: UUID
    description: str
    amount: Decimal = Field(
        ...,
        description="Signed share of this movement"
    )
    movement_date: date
    type: MovementType
    payer: PersonRef = Field(
        ...,
        description="Who paid the movement"
    )
    payer_name: Optional[str] = None
    counterparty: PersonRef = Field(
        ...,
        description="The other side of record (split participant or payment receiver)"
    )


class DebtBalance(BaseModel):
    """
    A net balance between two people.

    An amount of zero means the pair settled within the period; it is
    kept because there was activity, not omitted.
    """

    debtor: PersonRef
    debtor_name: Optional[str] = None
    creditor: PersonRef
    creditor_name: Optional[str] = None
    amount: Decimal = Field(..., ge=0)
    currency: str = "COP"
    movements: list[DebtMovementDetail] = Field(default_factory=list)

    @property
    def is_settled(self) -> bool:
        return self.amount == 0


class DebtSummary(BaseModel):
    """Debts between the household and people outside it."""

    they_owe_us: Decimal = Decimal("0")
    we_owe: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        """Positive when outsiders owe the household more than it owes them."""
        return self.they_owe_us - self.we_owe


class DebtConsolidation(BaseModel):
    """Consolidated debts for a household."""

    balances: list[DebtBalance] = Field(default_factory=list)
    summary: Optional[DebtSummary] = None
    month: Optional[str] = None
