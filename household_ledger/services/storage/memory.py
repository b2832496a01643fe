"""
In-Memory Storage Implementation

Dict-backed implementations of every storage interface. Used by the
test suite and by create_app_components() as the primary store.

Display names are resolved from the household directory and the payment
method registry when a movement is saved, the way a database join would.
"""

from typing import Optional
from uuid import UUID

from household_ledger.models.audit import AuditEvent
from household_ledger.models.household import (
    Account,
    HouseholdMember,
    PaymentMethod,
)
from household_ledger.models.identity import PersonRef
from household_ledger.models.movement import (
    ListMovementsFilters,
    Movement,
    MovementTotals,
)
from household_ledger.services.storage.interface import (
    AccountLookupInterface,
    AuditStorageInterface,
    DuplicateError,
    HouseholdDirectoryInterface,
    MovementStorageInterface,
    NotFoundError,
    PaymentMethodLookupInterface,
)


class InMemoryHouseholdDirectory(HouseholdDirectoryInterface):
    """Household members plus the external contacts each household knows."""

    def __init__(self):
        self._members: dict[str, HouseholdMember] = {}
        self._contacts: dict[str, str] = {}

    def add_member(self, member: HouseholdMember) -> None:
        self._members[member.user_id] = member

    def remove_member(self, user_id: str) -> None:
        self._members.pop(user_id, None)

    def add_contact(self, contact_id: str, name: str) -> None:
        self._contacts[contact_id] = name

    def display_name(self, person: PersonRef) -> Optional[str]:
        if person.is_member:
            member = self._members.get(person.id)
            return member.name if member else None
        return self._contacts.get(person.id)

    async def get_user_household_id(self, user_id: str) -> str:
        member = self._members.get(user_id)
        if member is None:
            raise NotFoundError(f"User {user_id} does not belong to a household")
        return member.household_id

    async def is_user_member(self, household_id: str, user_id: str) -> bool:
        member = self._members.get(user_id)
        return member is not None and member.household_id == household_id

    async def get_members(self, household_id: str) -> list[HouseholdMember]:
        return [
            member for member in self._members.values()
            if member.household_id == household_id
        ]


class InMemoryPaymentMethods(PaymentMethodLookupInterface):

    def __init__(self, payment_methods: Optional[list[PaymentMethod]] = None):
        self._items = {pm.id: pm for pm in payment_methods or []}

    def add(self, payment_method: PaymentMethod) -> None:
        self._items[payment_method.id] = payment_method

    async def get_by_id(self, payment_method_id: str) -> PaymentMethod:
        try:
            return self._items[payment_method_id]
        except KeyError:
            raise NotFoundError(f"Payment method not found: {payment_method_id}")


class InMemoryAccounts(AccountLookupInterface):

    def __init__(self, accounts: Optional[list[Account]] = None):
        self._items = {account.id: account for account in accounts or []}

    def add(self, account: Account) -> None:
        self._items[account.id] = account

    async def get_by_id(self, account_id: str) -> Account:
        try:
            return self._items[account_id]
        except KeyError:
            raise NotFoundError(f"Account not found: {account_id}")


class InMemoryMovementStorage(MovementStorageInterface):
    """
    Dict-backed movement storage.

    Stored movements are copies, so callers can't mutate them in place.
    """

    def __init__(
        self,
        directory: Optional[InMemoryHouseholdDirectory] = None,
        payment_methods: Optional[InMemoryPaymentMethods] = None,
    ):
        self._movements: dict[UUID, Movement] = {}
        self._directory = directory
        self._payment_methods = payment_methods

    async def _with_names(self, movement: Movement) -> Movement:
        """Populate display names that are known."""
        if self._directory is None:
            names = {}
        else:
            names = {
                "payer_name": (
                    self._directory.display_name(movement.payer) or movement.payer_name
                ),
                "counterparty_name": (
                    self._directory.display_name(movement.counterparty)
                    or movement.counterparty_name
                    if movement.counterparty else None
                ),
                "participants": [
                    p.model_copy(update={
                        "name": self._directory.display_name(p.person) or p.name
                    })
                    for p in movement.participants
                ],
            }

        if self._payment_methods is not None and movement.payment_method_id:
            try:
                payment_method = await self._payment_methods.get_by_id(
                    movement.payment_method_id
                )
                names["payment_method_name"] = payment_method.name
            except NotFoundError:
                names["payment_method_name"] = None

        return movement.model_copy(update=names, deep=True)

    async def save_movement(self, movement: Movement) -> Movement:
        if movement.id in self._movements:
            raise DuplicateError(f"Movement already exists: {movement.id}")
        stored = await self._with_names(movement)
        self._movements[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get_movement_by_id(self, movement_id: UUID) -> Movement:
        try:
            return self._movements[movement_id].model_copy(deep=True)
        except KeyError:
            raise NotFoundError(f"Movement not found: {movement_id}")

    async def update_movement(self, movement: Movement) -> Movement:
        if movement.id not in self._movements:
            raise NotFoundError(f"Movement not found: {movement.id}")
        stored = await self._with_names(movement)
        self._movements[stored.id] = stored
        return stored.model_copy(deep=True)

    async def delete_movement(self, movement_id: UUID) -> None:
        # Participants live inside the movement and go with it
        if self._movements.pop(movement_id, None) is None:
            raise NotFoundError(f"Movement not found: {movement_id}")

    async def list_by_household(
        self,
        household_id: str,
        filters: Optional[ListMovementsFilters] = None,
    ) -> list[Movement]:
        filters = filters or ListMovementsFilters()
        movements = [
            movement.model_copy(deep=True)
            for movement in self._movements.values()
            if movement.household_id == household_id and filters.matches(movement)
        ]
        # Newest first
        movements.sort(
            key=lambda m: (m.movement_date, m.created_at),
            reverse=True,
        )
        return movements

    async def get_totals(
        self,
        household_id: str,
        filters: Optional[ListMovementsFilters] = None,
    ) -> MovementTotals:
        movements = await self.list_by_household(household_id, filters)
        return MovementTotals.from_movements(movements)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
