"""Services package."""

from financetracker.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DataIntegrityError,
    DuplicateError,
    InMemoryStorage,
    NotFoundError,
    SqlStorage,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
)

__all__ = [
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ConnectionError",
    "DataIntegrityError",
    "DuplicateError",
    "InMemoryStorage",
    "NotFoundError",
    "SqlStorage",
    "StorageError",
    "TransactionStorageInterface",
    "UserStorageInterface",
]
