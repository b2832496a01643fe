"""
Data Models Package

This package contains all Pydantic models used in the Household Ledger system.
All data flowing through the system must conform to these schemas.
"""

from household_ledger.models.identity import PersonKind, PersonRef
from household_ledger.models.movement import (
    CreateMovementInput,
    ListMovementsFilters,
    ListMovementsResponse,
    Movement,
    MovementTotals,
    MovementType,
    Participant,
    ParticipantInput,
    UpdateMovementInput,
)
from household_ledger.models.debt import (
    DebtBalance,
    DebtConsolidation,
    DebtMovementDetail,
    DebtSummary,
)
from household_ledger.models.household import (
    Account,
    AccountType,
    HouseholdMember,
    HouseholdRole,
    PaymentMethod,
)
from household_ledger.models.validation import ValidationIssue, ValidationResult
from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Identity
    "PersonKind",
    "PersonRef",
    # Movement models
    "CreateMovementInput",
    "ListMovementsFilters",
    "ListMovementsResponse",
    "Movement",
    "MovementTotals",
    "MovementType",
    "Participant",
    "ParticipantInput",
    "UpdateMovementInput",
    # Debt models
    "DebtBalance",
    "DebtConsolidation",
    "DebtMovementDetail",
    "DebtSummary",
    # Household collaborators
    "Account",
    "AccountType",
    "HouseholdMember",
    "HouseholdRole",
    "PaymentMethod",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
