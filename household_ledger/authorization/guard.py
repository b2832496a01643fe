"""
Movement Authorization Guard

Confirms that every identity and resource a movement references belongs
to the acting household. Runs after the validator, so the input is
structurally sound by the time it gets here.

CRITICAL: A household must never be able to record money against another
household's members, payment methods or accounts. Any violation rejects
the whole request with MovementAuthorizationError.

Contact references are NOT existence-checked here. The movement storage
resolves contacts when it populates display names.
"""

from typing import Optional

import structlog

from household_ledger.models.household import Account
from household_ledger.models.identity import PersonRef
from household_ledger.models.movement import (
    CreateMovementInput,
    Movement,
    MovementType,
    UpdateMovementInput,
)
from household_ledger.services.storage.interface import (
    AccountLookupInterface,
    HouseholdDirectoryInterface,
    NotFoundError,
    PaymentMethodLookupInterface,
)


logger = structlog.get_logger()


class MovementAuthorizationError(Exception):
    """A movement references something outside the acting household."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Not authorized: {reason}")


class MovementAuthorizationGuard:
    """
    Checks household ownership of every reference in a movement.

    Usage:
        guard = MovementAuthorizationGuard(households, payment_methods, accounts)
        await guard.authorize_create(household_id, movement_input)
    """

    def __init__(
        self,
        households: HouseholdDirectoryInterface,
        payment_methods: PaymentMethodLookupInterface,
        accounts: AccountLookupInterface,
    ):
        self._households = households
        self._payment_methods = payment_methods
        self._accounts = accounts

    async def _check_person(
        self,
        household_id: str,
        person: Optional[PersonRef],
        role: str,
    ) -> None:
        """Members must currently belong to the household."""
        if person is None or not person.is_member:
            return
        if not await self._households.is_user_member(household_id, person.id):
            raise MovementAuthorizationError(
                f"{role} {person.id} is not a member of this household"
            )

    async def _check_payment_method(
        self,
        household_id: str,
        payment_method_id: Optional[str],
    ) -> None:
        if not payment_method_id:
            return
        try:
            payment_method = await self._payment_methods.get_by_id(payment_method_id)
        except NotFoundError:
            raise MovementAuthorizationError(
                f"payment method {payment_method_id} not found"
            )
        if payment_method.household_id != household_id:
            raise MovementAuthorizationError(
                "payment method does not belong to this household"
            )

    async def _household_account(
        self,
        household_id: str,
        account_id: str,
    ) -> Account:
        try:
            account = await self._accounts.get_by_id(account_id)
        except NotFoundError:
            raise MovementAuthorizationError(
                f"receiver account {account_id} not found"
            )
        if account.household_id != household_id:
            raise MovementAuthorizationError(
                "receiver account does not belong to this household"
            )
        return account

    async def _check_receiver_account(
        self,
        household_id: str,
        receiver_account_id: Optional[str],
    ) -> None:
        """
        A debt payment to a member must land in one of the household's
        income-eligible accounts.
        """
        if not receiver_account_id:
            raise MovementAuthorizationError(
                "receiver account is required when paying a household member"
            )
        account = await self._household_account(household_id, receiver_account_id)
        if not account.type.can_receive_income:
            raise MovementAuthorizationError(
                f"receiver account type {account.type.value} cannot receive income "
                "(only savings and cash)"
            )

    async def authorize_create(
        self,
        household_id: str,
        movement_input: CreateMovementInput,
    ) -> None:
        """
        Authorize a validated create request.

        Raises:
            MovementAuthorizationError: On the first reference outside
                the household
        """
        movement_type = movement_input.movement_type()
        counterparty = movement_input.counterparty()

        await self._check_person(household_id, movement_input.payer(), "payer")
        await self._check_person(household_id, counterparty, "counterparty")
        for participant in movement_input.participants:
            await self._check_person(household_id, participant.person(), "participant")

        await self._check_payment_method(household_id, movement_input.payment_method_id)

        if (
            movement_type == MovementType.DEBT_PAYMENT
            and counterparty is not None
            and counterparty.is_member
        ):
            await self._check_receiver_account(
                household_id,
                movement_input.receiver_account_id,
            )
        elif movement_input.receiver_account_id:
            # Never store another household's account, even where unused
            await self._household_account(
                household_id, movement_input.receiver_account_id
            )

        logger.debug(
            "movement_authorized",
            household_id=household_id,
            movement_type=movement_type.value,
        )

    async def authorize_update(
        self,
        household_id: str,
        existing: Movement,
        update_input: UpdateMovementInput,
    ) -> None:
        """
        Authorize a validated update of an existing movement.

        Payer and counterparty are immutable, so only the references the
        update can change are checked. The receiver account falls back to
        the existing movement's when the update does not set one.

        Raises:
            MovementAuthorizationError: On the first reference outside
                the household
        """
        if existing.household_id != household_id:
            raise MovementAuthorizationError(
                "movement does not belong to this household"
            )

        if update_input.participants is not None:
            for participant in update_input.participants:
                await self._check_person(
                    household_id, participant.person(), "participant"
                )

        await self._check_payment_method(household_id, update_input.payment_method_id)

        if (
            existing.type == MovementType.DEBT_PAYMENT
            and existing.counterparty is not None
            and existing.counterparty.is_member
        ):
            await self._check_receiver_account(
                household_id,
                update_input.receiver_account_id or existing.receiver_account_id,
            )
        elif update_input.receiver_account_id:
            await self._household_account(
                household_id, update_input.receiver_account_id
            )
