"""
Shared fixtures.

One household ("h1") with two members (Jose, Caro), one outside member
("u9" in household "h2"), two contacts, payment methods and accounts on
both sides of the household boundary.
"""

import pytest

from household_ledger.config import LedgerSettings
from household_ledger.models.household import (
    Account,
    AccountType,
    HouseholdMember,
    HouseholdRole,
    PaymentMethod,
)
from household_ledger.services.storage.memory import (
    InMemoryAccounts,
    InMemoryAuditStorage,
    InMemoryHouseholdDirectory,
    InMemoryMovementStorage,
    InMemoryPaymentMethods,
)


@pytest.fixture
def ledger_settings():
    return LedgerSettings(
        default_currency="COP",
        future_date_tolerance_days=7,
        max_movement_amount="1000000000",
    )


@pytest.fixture
def directory():
    directory = InMemoryHouseholdDirectory()
    directory.add_member(HouseholdMember(
        household_id="h1", user_id="jose", name="Jose", role=HouseholdRole.OWNER,
    ))
    directory.add_member(HouseholdMember(household_id="h1", user_id="caro", name="Caro"))
    directory.add_member(HouseholdMember(household_id="h2", user_id="u9", name="Otro"))
    directory.add_contact("pedro", "Pedro")
    directory.add_contact("maria", "Maria")
    return directory


@pytest.fixture
def payment_methods():
    return InMemoryPaymentMethods([
        PaymentMethod(id="pm1", household_id="h1", name="Visa Jose", owner_id="jose"),
        PaymentMethod(id="pm-other", household_id="h2", name="Ajena"),
    ])


@pytest.fixture
def accounts():
    return InMemoryAccounts([
        Account(id="acc-savings", household_id="h1", name="Ahorros", type=AccountType.SAVINGS),
        Account(id="acc-cash", household_id="h1", name="Efectivo", type=AccountType.CASH),
        Account(id="acc-checking", household_id="h1", name="Corriente", type=AccountType.CHECKING),
        Account(id="acc-other", household_id="h2", name="Ajena", type=AccountType.SAVINGS),
    ])


@pytest.fixture
def movement_storage(directory, payment_methods):
    return InMemoryMovementStorage(directory=directory, payment_methods=payment_methods)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()
