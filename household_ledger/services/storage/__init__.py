"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
In-memory storage backs the ledger; Google Sheets mirrors created
movements and persists the audit log.
"""

from household_ledger.services.storage.interface import (
    AccountLookupInterface,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    HouseholdDirectoryInterface,
    MirrorSyncError,
    MovementMirrorInterface,
    MovementStorageInterface,
    NotFoundError,
    PaymentMethodLookupInterface,
    StorageError,
)
from household_ledger.services.storage.memory import (
    InMemoryAccounts,
    InMemoryAuditStorage,
    InMemoryHouseholdDirectory,
    InMemoryMovementStorage,
    InMemoryPaymentMethods,
)
from household_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsMovementMirror,
)

__all__ = [
    # Interfaces
    "AccountLookupInterface",
    "AuditStorageInterface",
    "HouseholdDirectoryInterface",
    "MovementMirrorInterface",
    "MovementStorageInterface",
    "PaymentMethodLookupInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "MirrorSyncError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAccounts",
    "InMemoryAuditStorage",
    "InMemoryHouseholdDirectory",
    "InMemoryMovementStorage",
    "InMemoryPaymentMethods",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsMovementMirror",
]
