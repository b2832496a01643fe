"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for every collaborator
the ledger reads from or writes to. This allows us to:
1. Swap storage backends without touching the flows
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the operations the movement flows and the debt consolidation need.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from household_ledger.models.audit import AuditEvent
from household_ledger.models.household import Account, HouseholdMember, PaymentMethod
from household_ledger.models.movement import (
    ListMovementsFilters,
    Movement,
    MovementTotals,
)


class MovementStorageInterface(ABC):
    """
    Abstract interface for movement storage operations.

    Implementations own display names: they populate payer_name,
    counterparty_name, payment_method_name and participant names.
    """

    @abstractmethod
    async def save_movement(self, movement: Movement) -> Movement:
        """
        Save a new movement with its participants.

        Args:
            movement: The validated and authorized movement

        Returns:
            The stored movement, display names populated

        Raises:
            DuplicateError: If a movement with this ID exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_movement_by_id(self, movement_id: UUID) -> Movement:
        """
        Retrieve a movement by its ID.

        Raises:
            NotFoundError: If the movement doesn't exist
        """
        pass

    @abstractmethod
    async def update_movement(self, movement: Movement) -> Movement:
        """
        Replace a stored movement, participants included.

        Raises:
            NotFoundError: If the movement doesn't exist
        """
        pass

    @abstractmethod
    async def delete_movement(self, movement_id: UUID) -> None:
        """
        Hard delete a movement and its participants.

        Raises:
            NotFoundError: If the movement doesn't exist
        """
        pass

    @abstractmethod
    async def list_by_household(
        self,
        household_id: str,
        filters: Optional[ListMovementsFilters] = None,
    ) -> list[Movement]:
        """
        List a household's movements.

        Args:
            household_id: Owning household
            filters: Optional kind / month / date range / member filters

        Returns:
            Matching movements, newest first, participants populated
        """
        pass

    @abstractmethod
    async def get_totals(
        self,
        household_id: str,
        filters: Optional[ListMovementsFilters] = None,
    ) -> MovementTotals:
        """Totals over the same set list_by_household would return."""
        pass


class HouseholdDirectoryInterface(ABC):
    """Read-only view of household membership."""

    @abstractmethod
    async def get_user_household_id(self, user_id: str) -> str:
        """
        Get the household a user belongs to.

        Raises:
            NotFoundError: If the user has no household
        """
        pass

    @abstractmethod
    async def is_user_member(self, household_id: str, user_id: str) -> bool:
        pass

    @abstractmethod
    async def get_members(self, household_id: str) -> list[HouseholdMember]:
        pass


class PaymentMethodLookupInterface(ABC):

    @abstractmethod
    async def get_by_id(self, payment_method_id: str) -> PaymentMethod:
        """
        Raises:
            NotFoundError: If the payment method doesn't exist
        """
        pass


class AccountLookupInterface(ABC):

    @abstractmethod
    async def get_by_id(self, account_id: str) -> Account:
        """
        Raises:
            NotFoundError: If the account doesn't exist
        """
        pass


class MovementMirrorInterface(ABC):
    """
    Secondary write target for created movements.

    The primary store is the source of truth; the mirror is a
    human-readable copy (e.g. a spreadsheet).
    """

    @abstractmethod
    async def record_movement(self, movement: Movement) -> bool:
        """
        Append one created movement to the mirror.

        Returns:
            True if recorded successfully

        Raises:
            StorageError: If the mirror cannot be written
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one create request).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'movement')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class MirrorSyncError(StorageError):
    """
    The movement was saved, but the mirror could not be written.

    The primary store is not rolled back; callers must treat the
    movement as created.
    """

    def __init__(self, movement: Movement, message: str):
        self.movement = movement
        super().__init__(
            f"Movement {movement.id} saved but not synced to the spreadsheet: {message}"
        )
