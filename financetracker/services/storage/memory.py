"""
In-Memory Storage Implementation

Implements every storage interface on plain dicts and lists.
Used by the test suite and for running the API without a database.

Rows are kept in the shape a relational store would return them
(kind as a string, not an enum) so that corrupt rows behave the same
way here as they would coming out of SQL.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from financetracker.models.audit import AuditEvent
from financetracker.models.auth import Credential
from financetracker.models.ledger import Budget, Transaction, TransactionKind
from financetracker.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    DuplicateError,
    TransactionStorageInterface,
    UserStorageInterface,
    parse_transaction_kind,
)


class InMemoryStorage(
    UserStorageInterface,
    TransactionStorageInterface,
    BudgetStorageInterface,
    AuditStorageInterface,
):
    """All four stores in one object, sharing nothing with other instances."""

    def __init__(self):
        self.users: dict[UUID, dict] = {}
        self.transactions: list[dict] = []
        self.budgets: dict[tuple[UUID, date, str], dict] = {}
        self.audit_events: list[AuditEvent] = []

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def find_credential_by(
        self,
        identifier: str,
        email: Optional[str] = None,
    ) -> Optional[Credential]:
        email = identifier if email is None else email
        for row in self.users.values():
            if row["username"] == identifier or row["email"] == email:
                return Credential(**row)
        return None

    async def insert_credential(
        self,
        username: str,
        email: str,
        password_hash: str,
    ) -> UUID:
        for row in self.users.values():
            if row["username"] == username:
                raise DuplicateError(f"Username already registered: {username}")
            if row["email"] == email:
                raise DuplicateError(f"Email already registered: {email}")

        user_id = uuid4()
        self.users[user_id] = {
            "user_id": user_id,
            "username": username,
            "email": email,
            "password_hash": password_hash,
            "created_at": datetime.now(timezone.utc),
        }
        return user_id

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _row_to_transaction(self, row: dict) -> Transaction:
        return Transaction(
            id=row["id"],
            user_id=row["user_id"],
            amount=row["amount"],
            kind=parse_transaction_kind(row["kind"]),
            category=row["category"],
            date=row["date"],
            description=row["description"],
            created_at=row["created_at"],
        )

    async def insert_transaction(
        self,
        user_id: UUID,
        amount: Decimal,
        kind: TransactionKind,
        category: Optional[str],
        on_date: date,
        description: Optional[str] = None,
    ) -> Transaction:
        row = {
            "id": uuid4(),
            "user_id": user_id,
            "amount": Decimal(amount),
            "kind": TransactionKind(kind).value,
            "category": category,
            "date": on_date,
            "description": description,
            "created_at": datetime.now(timezone.utc),
        }
        self.transactions.append(row)
        return self._row_to_transaction(row)

    async def list_transactions(self, user_id: UUID) -> list[Transaction]:
        rows = [row for row in self.transactions if row["user_id"] == user_id]
        rows.sort(key=lambda r: (r["date"], r["created_at"]), reverse=True)
        return [self._row_to_transaction(row) for row in rows]

    async def sum_expenses(
        self,
        user_id: UUID,
        category: str,
        window_start: date,
        window_end: date,
    ) -> Decimal:
        total = Decimal("0")
        for row in self.transactions:
            if row["user_id"] != user_id:
                continue
            kind = parse_transaction_kind(row["kind"])
            if (
                kind is TransactionKind.EXPENSE
                and row["category"] == category
                and window_start <= row["date"] < window_end
            ):
                total += row["amount"]
        return total

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def upsert_budget(
        self,
        user_id: UUID,
        month: date,
        category: str,
        amount: Decimal,
    ) -> Budget:
        key = (user_id, month, category)
        row = {
            "user_id": user_id,
            "month": month,
            "category": category,
            "amount": Decimal(amount),
            "updated_at": datetime.now(timezone.utc),
        }
        # Single dict assignment, last write wins
        self.budgets[key] = row
        return Budget(**row)

    async def list_budgets(
        self,
        user_id: UUID,
        month: Optional[date] = None,
    ) -> list[Budget]:
        rows = [
            row for (owner, row_month, _), row in self.budgets.items()
            if owner == user_id and (month is None or row_month == month)
        ]
        rows.sort(key=lambda r: r["category"])
        rows.sort(key=lambda r: r["month"], reverse=True)
        return [Budget(**row) for row in rows]

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    async def append_event(self, event: AuditEvent) -> bool:
        self.audit_events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self.audit_events))[:limit]
