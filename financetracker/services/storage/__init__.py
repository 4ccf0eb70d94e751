"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
SqlStorage backs the running service; InMemoryStorage backs the tests.
"""

from financetracker.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DataIntegrityError,
    DuplicateError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
    parse_transaction_kind,
)
from financetracker.services.storage.memory import InMemoryStorage
from financetracker.services.storage.sql import SqlStorage, create_engine_from_settings

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "TransactionStorageInterface",
    "UserStorageInterface",
    # Exceptions
    "ConnectionError",
    "DataIntegrityError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "parse_transaction_kind",
    # Implementations
    "InMemoryStorage",
    "SqlStorage",
    "create_engine_from_settings",
]
