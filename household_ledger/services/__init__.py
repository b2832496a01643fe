"""Services package."""

from household_ledger.services.storage import (
    AccountLookupInterface,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsMovementMirror,
    HouseholdDirectoryInterface,
    InMemoryAccounts,
    InMemoryAuditStorage,
    InMemoryHouseholdDirectory,
    InMemoryMovementStorage,
    InMemoryPaymentMethods,
    MirrorSyncError,
    MovementMirrorInterface,
    MovementStorageInterface,
    NotFoundError,
    PaymentMethodLookupInterface,
    StorageError,
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
    # Implementations
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsMovementMirror",
    "InMemoryAccounts",
    "InMemoryAuditStorage",
    "InMemoryHouseholdDirectory",
    "InMemoryMovementStorage",
    "InMemoryPaymentMethods",
]
