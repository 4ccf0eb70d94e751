"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run against PostgreSQL in production and SQLite in development
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

OWNERSHIP RULE: every transaction and budget method takes the owning
identity as its first argument and must never return rows of another
identity. There is deliberately no "list everything" method.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from financetracker.models.audit import AuditEvent
from financetracker.models.auth import Credential
from financetracker.models.ledger import Budget, Transaction, TransactionKind


class UserStorageInterface(ABC):
    """Credential storage. Usernames and emails are unique."""

    @abstractmethod
    async def find_credential_by(
        self,
        identifier: str,
        email: Optional[str] = None,
    ) -> Optional[Credential]:
        """
        Look up a credential by username or email.

        Args:
            identifier: Matched exactly against usernames
            email: Matched against emails; defaults to ``identifier``

        Returns:
            The credential if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert_credential(
        self,
        username: str,
        email: str,
        password_hash: str,
    ) -> UUID:
        """
        Store a new credential.

        Returns:
            The new user's identity

        Raises:
            DuplicateError: If the username or email is taken
            StorageError: If the write fails
        """
        pass


class TransactionStorageInterface(ABC):
    """Per-user transaction storage. Transactions are append-only."""

    @abstractmethod
    async def insert_transaction(
        self,
        user_id: UUID,
        amount: Decimal,
        kind: TransactionKind,
        category: Optional[str],
        on_date: date,
        description: Optional[str] = None,
    ) -> Transaction:
        """
        Record a transaction for ``user_id``.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def list_transactions(self, user_id: UUID) -> list[Transaction]:
        """
        List all transactions of ``user_id``, newest first.

        Raises:
            DataIntegrityError: If a stored row cannot be interpreted
        """
        pass

    @abstractmethod
    async def sum_expenses(
        self,
        user_id: UUID,
        category: str,
        window_start: date,
        window_end: date,
    ) -> Decimal:
        """
        Total of ``user_id``'s expense transactions in ``category``
        dated within ``[window_start, window_end)``.

        Returns:
            The total, Decimal("0") when nothing matches
        """
        pass


class BudgetStorageInterface(ABC):
    """Per-user monthly budgets, unique on (user, month, category)."""

    @abstractmethod
    async def upsert_budget(
        self,
        user_id: UUID,
        month: date,
        category: str,
        amount: Decimal,
    ) -> Budget:
        """
        Create the budget or replace the amount of the existing one.

        Conflict resolution is left to the store; callers never
        read-modify-write.
        """
        pass

    @abstractmethod
    async def list_budgets(
        self,
        user_id: UUID,
        month: Optional[date] = None,
    ) -> list[Budget]:
        """
        List ``user_id``'s budgets, newest month first, then by category.

        Args:
            month: Only budgets of this month (first day) when given
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

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
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


class DataIntegrityError(StorageError):
    """A stored row holds a value the application cannot interpret."""

    def __init__(self, message: str, field: Optional[str] = None, value: object = None):
        super().__init__(message)
        self.field = field
        self.value = value


def parse_transaction_kind(raw: object) -> TransactionKind:
    """
    Interpret a stored transaction kind.

    Raises:
        DataIntegrityError: For anything other than 'income' or 'expense'
    """
    try:
        return TransactionKind(raw)
    except ValueError:
        raise DataIntegrityError(
            f"Invalid transaction kind in database: {raw!r}",
            field="kind",
            value=raw,
        ) from None
