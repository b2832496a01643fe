"""
Movement Models for Household Ledger

A movement is one financial ledger entry: a household expense, a split
(shared) expense, or a debt payment between two people.

DESIGN DECISION: Inputs and persisted records are different models.

- CreateMovementInput / UpdateMovementInput are LENIENT. They mirror what
  a caller submits (raw kind string, optional user/contact ID pairs) so
  that every structural problem is reported by the MovementValidator as a
  ValidationIssue rather than surfacing as a pydantic error.
- Movement is STRICT. It only exists after validation and authorization,
  and uses PersonRef for every identity.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from household_ledger.models.identity import PersonRef


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class MovementType(str, Enum):
    """
    Kinds of movement.

    Only SPLIT and DEBT_PAYMENT take part in debt consolidation.
    """
    HOUSEHOLD = "HOUSEHOLD"        # Household expense
    SPLIT = "SPLIT"                # Shared expense with participants
    DEBT_PAYMENT = "DEBT_PAYMENT"  # Settlement between two people


# =============================================================================
# PERSISTED MODELS
# =============================================================================

class Participant(BaseModel):
    """A person's fractional share of a SPLIT movement."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    person: PersonRef
    name: Optional[str] = Field(
        default=None,
        description="Display name, populated by storage"
    )
    percentage: Decimal = Field(
        ...,
        gt=0,
        le=1,
        description="Share of the movement amount, 0 < p <= 1"
    )


class Movement(BaseModel):
    """
    A movement that passed validation and authorization.

    kind, payer and counterparty are immutable after creation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique movement ID"
    )
    household_id: str = Field(
        ...,
        min_length=1,
        description="Owning household"
    )

    # Core fields
    type: MovementType
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount in the household currency"
    )
    category: Optional[str] = None
    movement_date: date
    currency: str = Field(
        default="COP",
        min_length=3,
        max_length=3,
    )

    # People
    payer: PersonRef
    payer_name: Optional[str] = None
    counterparty: Optional[PersonRef] = Field(
        default=None,
        description="Only for DEBT_PAYMENT"
    )
    counterparty_name: Optional[str] = None

    # Money routing
    payment_method_id: Optional[str] = None
    payment_method_name: Optional[str] = None
    receiver_account_id: Optional[str] = Field(
        default=None,
        description="Account receiving a DEBT_PAYMENT made to a member"
    )

    # Only for SPLIT
    participants: list[Participant] = Field(default_factory=list)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_kind_shape(self) -> 'Movement':
        """Reject fields that can never belong to this kind."""
        if self.counterparty is not None:
            if self.type != MovementType.DEBT_PAYMENT:
                raise ValueError("counterparty not allowed for this movement type")
            if self.counterparty == self.payer:
                raise ValueError("payer and counterparty cannot be the same person")

        if self.participants and self.type != MovementType.SPLIT:
            raise ValueError("participants not allowed for this movement type")

        return self

    @property
    def month(self) -> str:
        """Movement month in YYYY-MM form."""
        return self.movement_date.strftime("%Y-%m")


# =============================================================================
# INPUT MODELS
# =============================================================================

class ParticipantInput(BaseModel):
    """Participant as submitted by a caller."""
    model_config = ConfigDict(str_strip_whitespace=True)

    participant_user_id: Optional[str] = None
    participant_contact_id: Optional[str] = None
    percentage: Decimal = Field(
        ...,
        description="Share of the movement amount (0.0 to 1.0)"
    )

    def person(self) -> PersonRef:
        """Raises ValueError unless exactly one ID is set."""
        return PersonRef.from_ids(
            self.participant_user_id,
            self.participant_contact_id,
        )

    def to_participant(self) -> Participant:
        return Participant(person=self.person(), percentage=self.percentage)


class CreateMovementInput(BaseModel):
    """
    Data submitted to create a movement.

    CRITICAL: This is UNVERIFIED data. Run it through the
    MovementValidator and the authorization guard before building a
    Movement from it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: str = Field(
        ...,
        description="HOUSEHOLD, SPLIT or DEBT_PAYMENT"
    )
    description: str = ""
    amount: Decimal = Decimal("0")
    category: Optional[str] = None
    movement_date: Optional[date] = None
    currency: Optional[str] = None

    # Payer (exactly one required)
    payer_user_id: Optional[str] = None
    payer_contact_id: Optional[str] = None

    # Counterparty (required only for DEBT_PAYMENT)
    counterparty_user_id: Optional[str] = None
    counterparty_contact_id: Optional[str] = None

    # Payment method (required for HOUSEHOLD, conditional for others)
    payment_method_id: Optional[str] = None

    # Required for DEBT_PAYMENT to a household member
    receiver_account_id: Optional[str] = None

    # Participants (required only for SPLIT)
    participants: list[ParticipantInput] = Field(default_factory=list)

    def movement_type(self) -> MovementType:
        """Raises ValueError for unknown kinds."""
        return MovementType(self.type)

    def payer(self) -> PersonRef:
        return PersonRef.from_ids(self.payer_user_id, self.payer_contact_id)

    def counterparty(self) -> Optional[PersonRef]:
        if not self.counterparty_user_id and not self.counterparty_contact_id:
            return None
        return PersonRef.from_ids(
            self.counterparty_user_id,
            self.counterparty_contact_id,
        )

    def to_movement(self, household_id: str, default_currency: str) -> Movement:
        """Build the persisted record. Call only on validated input."""
        return Movement(
            household_id=household_id,
            type=self.movement_type(),
            description=self.description,
            amount=self.amount,
            category=self.category or None,
            movement_date=self.movement_date,
            currency=(self.currency or default_currency).upper(),
            payer=self.payer(),
            counterparty=self.counterparty(),
            payment_method_id=self.payment_method_id or None,
            receiver_account_id=self.receiver_account_id or None,
            participants=[p.to_participant() for p in self.participants],
        )


class UpdateMovementInput(BaseModel):
    """
    Partial update of a movement.

    kind, payer and counterparty cannot be changed after creation, so
    they are not part of this model. A field left as None is not touched;
    an empty category, payment_method_id or receiver_account_id clears it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: Optional[str] = None
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    movement_date: Optional[date] = None
    payment_method_id: Optional[str] = None
    receiver_account_id: Optional[str] = None
    participants: Optional[list[ParticipantInput]] = None

    def apply_to(self, movement: Movement) -> Movement:
        """Return an updated copy of the movement. Call only on validated input."""
        changes = {}
        for name in ("description", "amount", "movement_date"):
            value = getattr(self, name)
            if value is not None:
                changes[name] = value
        # An empty string clears an optional reference
        for name in ("category", "payment_method_id", "receiver_account_id"):
            value = getattr(self, name)
            if value is not None:
                changes[name] = value or None
        if self.participants is not None:
            changes["participants"] = [
                p.to_participant() for p in self.participants
            ]
        changes["updated_at"] = utc_now()

        # Re-run model validation on the merged data
        return Movement.model_validate(
            {**movement.model_dump(), **changes}
        )


# =============================================================================
# LISTING MODELS
# =============================================================================

class ListMovementsFilters(BaseModel):
    """Filters for listing a household's movements."""

    type: Optional[MovementType] = None
    month: Optional[str] = Field(
        default=None,
        pattern=r"^\d{4}-(0[1-9]|1[0-2])$",
        description="YYYY-MM"
    )
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    member_id: Optional[str] = Field(
        default=None,
        description="Only movements paid by this member"
    )

    def matches(self, movement: Movement) -> bool:
        if self.type and movement.type != self.type:
            return False
        if self.month and movement.month != self.month:
            return False
        if self.start_date and movement.movement_date < self.start_date:
            return False
        if self.end_date and movement.movement_date > self.end_date:
            return False
        if self.member_id and movement.payer.user_id != self.member_id:
            return False
        return True


class MovementTotals(BaseModel):
    """Totals over a filtered set of movements."""

    total_amount: Decimal = Decimal("0")
    by_type: dict[MovementType, Decimal] = Field(default_factory=dict)
    by_category: dict[str, Decimal] = Field(default_factory=dict)
    by_payment_method: dict[str, Decimal] = Field(default_factory=dict)

    @classmethod
    def from_movements(cls, movements: list[Movement]) -> "MovementTotals":
        totals = cls()
        for movement in movements:
            totals.total_amount += movement.amount
            totals.by_type[movement.type] = (
                totals.by_type.get(movement.type, Decimal("0")) + movement.amount
            )
            if movement.category:
                totals.by_category[movement.category] = (
                    totals.by_category.get(movement.category, Decimal("0"))
                    + movement.amount
                )
            if movement.payment_method_id:
                key = movement.payment_method_name or movement.payment_method_id
                totals.by_payment_method[key] = (
                    totals.by_payment_method.get(key, Decimal("0"))
                    + movement.amount
                )
        return totals


class ListMovementsResponse(BaseModel):
    """Movements plus their totals."""

    movements: list[Movement] = Field(default_factory=list)
    totals: MovementTotals = Field(default_factory=MovementTotals)
