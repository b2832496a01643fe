"""Movement authorization package."""

from household_ledger.authorization.guard import (
    MovementAuthorizationError,
    MovementAuthorizationGuard,
)

__all__ = ["MovementAuthorizationError", "MovementAuthorizationGuard"]
