"""
SQL Storage Implementation

DESIGN DECISION: A relational store reached through SQLAlchemy Core:
1. PostgreSQL in production (asyncpg driver)
2. SQLite for development and tests (aiosqlite driver)
3. Every statement is parameterized; no string-built SQL

Each operation opens its own connection with ``engine.begin()``, which
commits on success, rolls back on error and always returns the
connection to the pool.

The schema mirrors the original migrations: unique username/email,
NUMERIC(15, 2) amounts, a CHECK on the transaction kind and a unique
(user_id, month, category) index that budget upserts resolve against.
"""

import json
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import AsyncIterator, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    or_,
    select,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from financetracker.config.settings import DatabaseSettings
from financetracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from financetracker.models.auth import Credential
from financetracker.models.ledger import Budget, Transaction, TransactionKind
from financetracker.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
    parse_transaction_kind,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("username", String(50), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_utcnow),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("amount", Numeric(15, 2), nullable=False),
    Column("kind", String(10), nullable=False),
    Column("category", Text),
    Column("description", Text),
    Column("date", Date, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_utcnow),
    CheckConstraint("kind IN ('income', 'expense')", name="ck_transactions_kind"),
    Index("idx_transactions_user_date", "user_id", "date"),
    Index("idx_transactions_category", "category"),
)

budgets = Table(
    "budgets",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("month", Date, nullable=False),
    Column("category", Text, nullable=False),
    Column("amount", Numeric(15, 2), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=_utcnow),
    UniqueConstraint(
        "user_id", "month", "category",
        name="uniq_budgets_user_month_category",
    ),
    Index("idx_budgets_user_month", "user_id", "month"),
)

audit_events = Table(
    "audit_events",
    metadata,
    Column("event_id", Uuid, primary_key=True),
    Column("timestamp", DateTime(timezone=True), nullable=False),
    Column("event_type", String(50), nullable=False),
    Column("severity", String(10), nullable=False),
    Column("user_id", Uuid),
    Column("entity_type", String(50)),
    Column("entity_id", Uuid),
    Column("correlation_id", Uuid),
    Column("description", Text, nullable=False),
    Column("details_json", Text),
    Column("error_code", String(50)),
    Column("error_message", Text),
)


def create_engine_from_settings(settings: DatabaseSettings) -> AsyncEngine:
    """Build the async engine (and its connection pool) for ``settings``."""
    kwargs = {"echo": settings.echo}
    if settings.is_sqlite:
        if ":memory:" in settings.url or settings.url.endswith("://"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_size"] = settings.pool_size
        kwargs["pool_pre_ping"] = True
    return create_async_engine(settings.url, **kwargs)


class SqlStorage(
    UserStorageInterface,
    TransactionStorageInterface,
    BudgetStorageInterface,
    AuditStorageInterface,
):
    """
    SQLAlchemy implementation of every storage interface.

    Failures surface as ``StorageError`` (``DuplicateError`` for unique
    violations on registration, ``ConnectionError`` when the database
    cannot be reached). Nothing is retried here except the startup probe.
    """

    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "SqlStorage":
        return cls(create_engine_from_settings(settings))

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def _begin(
        self,
        operation: str,
        duplicate_message: Optional[str] = None,
    ) -> AsyncIterator[AsyncConnection]:
        """Scoped connection: committed, rolled back and released by ``engine.begin()``."""
        try:
            async with self._engine.begin() as conn:
                yield conn
        except IntegrityError as e:
            if duplicate_message:
                raise DuplicateError(duplicate_message) from e
            raise StorageError(f"{operation} violated a constraint: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"{operation} failed: {e}") from e
        except OSError as e:
            raise ConnectionError(f"Could not reach database during {operation}: {e}") from e

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def create_schema(self) -> None:
        """Create missing tables. Development/test bootstrap, not a migration tool."""
        async with self._begin("create schema") as conn:
            await conn.run_sync(metadata.create_all)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(StorageError),
        reraise=True,
    )
    async def check_connection(self) -> bool:
        """Round-trip ``SELECT 1`` to confirm the database is reachable."""
        async with self._begin("connection check") as conn:
            await conn.execute(select(1))
        return True

    async def dispose(self) -> None:
        await self._engine.dispose()

    def _insert(self, table: Table):
        dialect = self._engine.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(table)
        if dialect == "sqlite":
            return sqlite.insert(table)
        raise StorageError(f"Upsert is not supported on dialect: {dialect}")

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def find_credential_by(
        self,
        identifier: str,
        email: Optional[str] = None,
    ) -> Optional[Credential]:
        email = identifier if email is None else email
        query = select(users).where(
            or_(users.c.username == identifier, users.c.email == email)
        ).limit(1)
        async with self._begin("find credential") as conn:
            row = (await conn.execute(query)).mappings().first()

        if row is None:
            return None
        return Credential(
            user_id=row["id"],
            username=row["username"],
            email=row["email"],
            password_hash=row["password_hash"],
            created_at=row["created_at"],
        )

    async def insert_credential(
        self,
        username: str,
        email: str,
        password_hash: str,
    ) -> UUID:
        user_id = uuid4()
        async with self._begin(
            "insert credential",
            duplicate_message="Username or email already registered",
        ) as conn:
            await conn.execute(
                users.insert().values(
                    id=user_id,
                    username=username,
                    email=email,
                    password_hash=password_hash,
                    created_at=_utcnow(),
                )
            )
        return user_id

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _row_to_transaction(self, row) -> Transaction:
        return Transaction(
            id=row["id"],
            user_id=row["user_id"],
            amount=Decimal(str(row["amount"])),
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
        values = {
            "id": uuid4(),
            "user_id": user_id,
            "amount": amount,
            "kind": TransactionKind(kind).value,
            "category": category,
            "date": on_date,
            "description": description,
            "created_at": _utcnow(),
        }
        async with self._begin("insert transaction") as conn:
            await conn.execute(transactions.insert().values(**values))
        return self._row_to_transaction(values)

    async def list_transactions(self, user_id: UUID) -> list[Transaction]:
        query = (
            select(transactions)
            .where(transactions.c.user_id == user_id)
            .order_by(transactions.c.date.desc(), transactions.c.created_at.desc())
        )
        async with self._begin("list transactions") as conn:
            rows = (await conn.execute(query)).mappings().all()
        return [self._row_to_transaction(row) for row in rows]

    async def sum_expenses(
        self,
        user_id: UUID,
        category: str,
        window_start: date,
        window_end: date,
    ) -> Decimal:
        query = select(func.coalesce(func.sum(transactions.c.amount), 0)).where(
            transactions.c.user_id == user_id,
            transactions.c.kind == TransactionKind.EXPENSE.value,
            transactions.c.category == category,
            transactions.c.date >= window_start,
            transactions.c.date < window_end,
        )
        async with self._begin("sum expenses") as conn:
            total = (await conn.execute(query)).scalar_one()
        return Decimal(str(total)) if total is not None else Decimal("0")

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def _row_to_budget(self, row) -> Budget:
        return Budget(
            user_id=row["user_id"],
            month=row["month"],
            category=row["category"],
            amount=Decimal(str(row["amount"])),
            updated_at=row["updated_at"],
        )

    async def upsert_budget(
        self,
        user_id: UUID,
        month: date,
        category: str,
        amount: Decimal,
    ) -> Budget:
        now = _utcnow()
        stmt = self._insert(budgets).values(
            id=uuid4(),
            user_id=user_id,
            month=month,
            category=category,
            amount=amount,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[budgets.c.user_id, budgets.c.month, budgets.c.category],
            set_={
                "amount": stmt.excluded.amount,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        query = select(budgets).where(
            budgets.c.user_id == user_id,
            budgets.c.month == month,
            budgets.c.category == category,
        )
        async with self._begin("upsert budget") as conn:
            await conn.execute(stmt)
            row = (await conn.execute(query)).mappings().one()
        return self._row_to_budget(row)

    async def list_budgets(
        self,
        user_id: UUID,
        month: Optional[date] = None,
    ) -> list[Budget]:
        query = select(budgets).where(budgets.c.user_id == user_id)
        if month is not None:
            query = query.where(budgets.c.month == month)
        query = query.order_by(budgets.c.month.desc(), budgets.c.category)

        async with self._begin("list budgets") as conn:
            rows = (await conn.execute(query)).mappings().all()
        return [self._row_to_budget(row) for row in rows]

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    async def append_event(self, event: AuditEvent) -> bool:
        async with self._begin("append audit event") as conn:
            await conn.execute(audit_events.insert().values(**event.to_row()))
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        query = (
            select(audit_events)
            .order_by(audit_events.c.timestamp.desc())
            .limit(limit)
        )
        async with self._begin("list audit events") as conn:
            rows = (await conn.execute(query)).mappings().all()

        return [
            AuditEvent(
                event_id=row["event_id"],
                timestamp=row["timestamp"],
                event_type=AuditEventType(row["event_type"]),
                severity=AuditSeverity(row["severity"]),
                user_id=row["user_id"],
                entity_type=row["entity_type"],
                entity_id=row["entity_id"],
                correlation_id=row["correlation_id"],
                description=row["description"],
                details=json.loads(row["details_json"]) if row["details_json"] else {},
                error_code=row["error_code"],
                error_message=row["error_message"],
            )
            for row in rows
        ]
