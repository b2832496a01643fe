"""
Household Collaborator Models

Minimal views of the household, payment method and account records that
the authorization guard and the consolidation flow read. The full
CRUD for these entities lives outside this package.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class HouseholdRole(str, Enum):
    OWNER = "owner"
    MEMBER = "member"


class HouseholdMember(BaseModel):
    """A registered user belonging to a household."""

    household_id: str
    user_id: str
    name: Optional[str] = None
    role: HouseholdRole = HouseholdRole.MEMBER


class PaymentMethod(BaseModel):
    """A card, cash box or transfer method owned by a household."""

    id: str
    household_id: str
    name: str = Field(..., min_length=1)
    owner_id: Optional[str] = None


class AccountType(str, Enum):
    """Account types. Only savings and cash accounts can receive income."""
    SAVINGS = "savings"
    CASH = "cash"
    CHECKING = "checking"

    @property
    def can_receive_income(self) -> bool:
        return self in (AccountType.SAVINGS, AccountType.CASH)


class Account(BaseModel):
    """A bank account or cash reserve owned by a household."""

    id: str
    household_id: str
    name: str = Field(..., min_length=1)
    type: AccountType
