"""Movement validation package."""

from household_ledger.validation.validator import (
    PERCENTAGE_SUM_TOLERANCE,
    MovementValidationError,
    MovementValidator,
)

__all__ = [
    "PERCENTAGE_SUM_TOLERANCE",
    "MovementValidationError",
    "MovementValidator",
]
