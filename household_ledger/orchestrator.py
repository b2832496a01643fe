"""
Main Orchestrator for Household Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Movements (input → validate → authorize → save → audit → mirror)
2. Debt consolidation (household → movements → consolidate → audit)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is persisted before it passes validation AND authorization
- Every mutation, successful or rejected, is audited
- A household can only see and change its own movements

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from typing import Optional
from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger, create_correlation_id
from household_ledger.authorization import (
    MovementAuthorizationError,
    MovementAuthorizationGuard,
)
from household_ledger.config import get_settings
from household_ledger.consolidation import DebtConsolidator
from household_ledger.models.audit import AuditEventBuilder, AuditEventType
from household_ledger.models.debt import DebtConsolidation
from household_ledger.models.movement import (
    CreateMovementInput,
    ListMovementsFilters,
    ListMovementsResponse,
    Movement,
    UpdateMovementInput,
)
from household_ledger.models.validation import ValidationResult
from household_ledger.services.storage import (
    AccountLookupInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsMovementMirror,
    HouseholdDirectoryInterface,
    InMemoryAccounts,
    InMemoryHouseholdDirectory,
    InMemoryMovementStorage,
    InMemoryPaymentMethods,
    MirrorSyncError,
    MovementMirrorInterface,
    MovementStorageInterface,
    PaymentMethodLookupInterface,
    StorageError,
)
from household_ledger.validation import MovementValidator


logger = structlog.get_logger()


def _issues_for_audit(result: ValidationResult) -> list[dict]:
    return [
        {"field": i.field, "type": i.issue_type, "message": i.message}
        for i in result.errors
    ]


class MovementFlow:
    """
    Orchestrates the movement lifecycle.

    Create flow:
    1. Validate → Two-stage validation (reject early on malformed input)
    2. Resolve → The acting user's household
    3. Authorize → Every reference belongs to that household
    4. Save → Persist to the primary store
    5. Audit → Record the new values
    6. Mirror → Append to the spreadsheet, if configured

    If step 6 fails the movement STAYS saved and MirrorSyncError is raised.
    """

    def __init__(
        self,
        movement_storage: MovementStorageInterface,
        households: HouseholdDirectoryInterface,
        payment_methods: PaymentMethodLookupInterface,
        accounts: AccountLookupInterface,
        validator: Optional[MovementValidator] = None,
        guard: Optional[MovementAuthorizationGuard] = None,
        mirror: Optional[MovementMirrorInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        default_currency: Optional[str] = None,
    ):
        self._storage = movement_storage
        self._households = households
        self._validator = validator or MovementValidator()
        self._guard = guard or MovementAuthorizationGuard(
            households, payment_methods, accounts
        )
        self._mirror = mirror
        self._audit_logger = audit_logger or AuditLogger()
        self._default_currency = (
            default_currency or get_settings().ledger.default_currency
        )

    async def _reject_invalid(
        self,
        user_id: str,
        result: ValidationResult,
        correlation_id: UUID,
        movement_id: Optional[UUID] = None,
    ) -> None:
        """Audit and raise when the result has errors."""
        if not result.has_errors:
            if result.warnings:
                logger.info(
                    "movement_validation_warnings",
                    user_id=user_id,
                    warnings=result.warnings,
                )
            return

        await self._audit_logger.log_validation_failed(
            user_id=user_id,
            issues=_issues_for_audit(result),
            correlation_id=correlation_id,
            movement_id=movement_id,
        )
        result.raise_for_errors()

    async def _owned_movement(
        self,
        user_id: str,
        movement_id: UUID,
        correlation_id: UUID,
    ) -> tuple[str, Movement]:
        """
        Fetch a movement and check it belongs to the user's household.

        Raises:
            NotFoundError: If the user has no household or the movement
                doesn't exist
            MovementAuthorizationError: If the movement belongs to
                another household
        """
        household_id = await self._households.get_user_household_id(user_id)
        movement = await self._storage.get_movement_by_id(movement_id)

        if movement.household_id != household_id:
            error = MovementAuthorizationError(
                "movement does not belong to this household"
            )
            await self._audit_logger.log_authorization_denied(
                user_id=user_id,
                household_id=household_id,
                reason=error.reason,
                correlation_id=correlation_id,
                movement_id=movement_id,
            )
            raise error

        return household_id, movement

    async def create(
        self,
        user_id: str,
        movement_input: CreateMovementInput,
        correlation_id: Optional[UUID] = None,
    ) -> Movement:
        """
        Create a movement.

        Raises:
            MovementValidationError: Input is malformed
            MovementAuthorizationError: Input references another household
            NotFoundError: The user has no household
            StorageError: The primary store failed
            MirrorSyncError: Saved, but the spreadsheet was not updated
        """
        correlation_id = correlation_id or create_correlation_id()

        # Step 1: Validate
        result = self._validator.validate_create(movement_input)
        await self._reject_invalid(user_id, result, correlation_id)

        # Step 2: Resolve household
        household_id = await self._households.get_user_household_id(user_id)

        # Step 3: Authorize
        try:
            await self._guard.authorize_create(household_id, movement_input)
        except MovementAuthorizationError as e:
            await self._audit_logger.log_authorization_denied(
                user_id=user_id,
                household_id=household_id,
                reason=e.reason,
                correlation_id=correlation_id,
            )
            raise

        # Step 4: Save
        movement = movement_input.to_movement(household_id, self._default_currency)
        try:
            saved = await self._storage.save_movement(movement)
        except StorageError as e:
            await self._audit_logger.log(AuditEventBuilder.mutation_failed(
                event_type=AuditEventType.MOVEMENT_CREATED,
                user_id=user_id,
                household_id=household_id,
                error_message=str(e),
                movement_id=movement.id,
                correlation_id=correlation_id,
            ))
            raise

        # Step 5: Audit
        await self._audit_logger.log_movement_created(
            movement=saved,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        logger.info(
            "movement_created",
            movement_id=str(saved.id),
            household_id=household_id,
            type=saved.type.value,
            amount=str(saved.amount),
        )

        # Step 6: Mirror
        if self._mirror is not None:
            try:
                await self._mirror.record_movement(saved)
            except StorageError as e:
                logger.error(
                    "mirror_sync_failed",
                    movement_id=str(saved.id),
                    error=str(e),
                )
                await self._audit_logger.log_mirror_sync_failed(
                    movement=saved,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                raise MirrorSyncError(saved, str(e)) from e

        return saved

    async def get(self, user_id: str, movement_id: UUID) -> Movement:
        """Get one of the user's household movements."""
        _, movement = await self._owned_movement(
            user_id, movement_id, create_correlation_id()
        )
        return movement

    async def list(
        self,
        user_id: str,
        filters: Optional[ListMovementsFilters] = None,
    ) -> ListMovementsResponse:
        """List the user's household movements with totals."""
        household_id = await self._households.get_user_household_id(user_id)
        movements = await self._storage.list_by_household(household_id, filters)
        totals = await self._storage.get_totals(household_id, filters)
        return ListMovementsResponse(movements=movements, totals=totals)

    async def update(
        self,
        user_id: str,
        movement_id: UUID,
        update_input: UpdateMovementInput,
        correlation_id: Optional[UUID] = None,
    ) -> Movement:
        """
        Update a movement's mutable fields.

        Kind, payer and counterparty never change. Updates are not
        mirrored; the spreadsheet keeps the row as first written.
        """
        correlation_id = correlation_id or create_correlation_id()

        household_id, existing = await self._owned_movement(
            user_id, movement_id, correlation_id
        )

        result = self._validator.validate_update(update_input, existing)
        await self._reject_invalid(user_id, result, correlation_id, movement_id)

        try:
            await self._guard.authorize_update(household_id, existing, update_input)
        except MovementAuthorizationError as e:
            await self._audit_logger.log_authorization_denied(
                user_id=user_id,
                household_id=household_id,
                reason=e.reason,
                correlation_id=correlation_id,
                movement_id=movement_id,
            )
            raise

        updated = update_input.apply_to(existing)
        try:
            saved = await self._storage.update_movement(updated)
        except StorageError as e:
            await self._audit_logger.log(AuditEventBuilder.mutation_failed(
                event_type=AuditEventType.MOVEMENT_UPDATED,
                user_id=user_id,
                household_id=household_id,
                error_message=str(e),
                movement_id=movement_id,
                old=existing,
                correlation_id=correlation_id,
            ))
            raise

        await self._audit_logger.log_movement_updated(
            old=existing,
            new=saved,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        logger.info(
            "movement_updated",
            movement_id=str(movement_id),
            household_id=household_id,
            mirrored=False,
        )
        return saved

    async def delete(
        self,
        user_id: str,
        movement_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Hard delete a movement and its participants.

        Deletes are not mirrored; the spreadsheet row stays until
        cleaned up by hand.
        """
        correlation_id = correlation_id or create_correlation_id()

        household_id, existing = await self._owned_movement(
            user_id, movement_id, correlation_id
        )

        try:
            await self._storage.delete_movement(movement_id)
        except StorageError as e:
            await self._audit_logger.log(AuditEventBuilder.mutation_failed(
                event_type=AuditEventType.MOVEMENT_DELETED,
                user_id=user_id,
                household_id=household_id,
                error_message=str(e),
                movement_id=movement_id,
                old=existing,
                correlation_id=correlation_id,
            ))
            raise

        await self._audit_logger.log_movement_deleted(
            movement=existing,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        logger.info(
            "movement_deleted",
            movement_id=str(movement_id),
            household_id=household_id,
            mirrored=False,
        )


class DebtConsolidationFlow:
    """
    Orchestrates the "who owes whom" query.

    Flow:
    1. Resolve → The acting user's household
    2. Fetch → ONE fetch of the household's movements (month-filtered)
    3. Members → Current member IDs, for the summary
    4. Consolidate → Pure computation, never fails on bad rows
    5. Audit

    No validation or authorization runs here: only persisted movements
    of the user's own household are read.
    """

    def __init__(
        self,
        movement_storage: MovementStorageInterface,
        households: HouseholdDirectoryInterface,
        consolidator: Optional[DebtConsolidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = movement_storage
        self._households = households
        self._consolidator = consolidator or DebtConsolidator(
            default_currency=get_settings().ledger.default_currency
        )
        self._audit_logger = audit_logger or AuditLogger()

    async def get_debt_consolidation(
        self,
        user_id: str,
        month: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> DebtConsolidation:
        """
        Compute net balances for the user's household.

        Args:
            user_id: The acting user
            month: Optional YYYY-MM filter

        Returns:
            DebtConsolidation. summary is None when the member list
            could not be loaded.
        """
        correlation_id = correlation_id or create_correlation_id()

        household_id = await self._households.get_user_household_id(user_id)

        filters = ListMovementsFilters(month=month) if month else None
        movements = await self._storage.list_by_household(household_id, filters)

        # Without members only the summary is lost, not the balances
        member_ids = None
        try:
            members = await self._households.get_members(household_id)
            member_ids = [member.user_id for member in members]
        except StorageError as e:
            logger.warning(
                "debt_summary_unavailable",
                household_id=household_id,
                error=str(e),
            )

        consolidation = self._consolidator.consolidate(
            movements,
            member_ids=member_ids,
            month=month,
        )

        await self._audit_logger.log_debts_consolidated(
            user_id=user_id,
            household_id=household_id,
            month=month,
            movement_count=len(movements),
            balance_count=len(consolidation.balances),
            correlation_id=correlation_id,
        )

        return consolidation


def create_app_components(
    use_sheets: bool = True,
    movement_storage: Optional[MovementStorageInterface] = None,
    households: Optional[HouseholdDirectoryInterface] = None,
    payment_methods: Optional[PaymentMethodLookupInterface] = None,
    accounts: Optional[AccountLookupInterface] = None,
) -> tuple[MovementFlow, DebtConsolidationFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_sheets: Whether to mirror movements and persist the audit
                    log to Google Sheets. Falls back to local-only when
                    Sheets is not configured.
        movement_storage, households, payment_methods, accounts:
                    Collaborators. In-memory stores are used for any
                    left as None.

    Returns:
        (movement_flow, debt_consolidation_flow, sheets_client)
    """
    settings = get_settings()
    sheets_client = None
    mirror = None
    audit_logger = None

    households = households or InMemoryHouseholdDirectory()
    payment_methods = payment_methods or InMemoryPaymentMethods()
    accounts = accounts or InMemoryAccounts()
    if movement_storage is None:
        movement_storage = InMemoryMovementStorage(
            directory=households if isinstance(households, InMemoryHouseholdDirectory) else None,
            payment_methods=(
                payment_methods
                if isinstance(payment_methods, InMemoryPaymentMethods) else None
            ),
        )

    if use_sheets:
        try:
            sheets_client = GoogleSheetsClient()
            mirror = GoogleSheetsMovementMirror(
                sheets_client,
                is_test=settings.app.mirror_is_test,
            )
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Sheets not configured - continue without it
            logger.warning("sheets_not_configured", error=str(e))
            sheets_client = None
            mirror = None
            audit_logger = AuditLogger()  # Local-only logging
    else:
        audit_logger = AuditLogger()  # Local-only logging

    default_currency = settings.ledger.default_currency

    movement_flow = MovementFlow(
        movement_storage=movement_storage,
        households=households,
        payment_methods=payment_methods,
        accounts=accounts,
        validator=MovementValidator(settings.ledger),
        mirror=mirror,
        audit_logger=audit_logger,
        default_currency=default_currency,
    )

    debt_consolidation_flow = DebtConsolidationFlow(
        movement_storage=movement_storage,
        households=households,
        consolidator=DebtConsolidator(default_currency=default_currency),
        audit_logger=audit_logger,
    )

    return movement_flow, debt_consolidation_flow, sheets_client
