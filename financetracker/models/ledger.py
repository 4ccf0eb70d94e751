"""
Ledger Models for Finance Tracker

Transactions, budgets and the derived budget progress report.

DESIGN DECISION: Request models never carry the owner.
The owning identity always comes from the verified token and is
attached by the flow, so a request body cannot pick whose data it writes.
Legacy clients may still send ``user_id``; it is kept only so the HTTP
layer can check it against the token.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


def first_of_month(value: date) -> date:
    """Normalize a date to the first day of its month."""
    return value.replace(day=1)


class TransactionKind(str, Enum):
    """Direction of money movement."""
    INCOME = "income"
    EXPENSE = "expense"

    @classmethod
    def _missing_(cls, value):
        # Accept the capitalized spelling older clients send ("Income")
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


# =============================================================================
# TRANSACTIONS
# =============================================================================

class NewTransaction(BaseModel):
    """Request body for recording a transaction."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: Optional[UUID] = Field(
        default=None,
        description="Legacy owner field; must match the token when present"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=15,
        decimal_places=2,
        description="Amount of the transaction"
    )
    kind: TransactionKind
    category: Optional[str] = Field(
        default=None,
        max_length=100,
    )
    date: date
    description: Optional[str] = Field(
        default=None,
        max_length=500,
    )

    @field_validator("category", "description")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class Transaction(BaseModel):
    """A stored transaction. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    amount: Decimal
    kind: TransactionKind
    category: Optional[str] = None
    date: date
    description: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetUpsert(BaseModel):
    """Request body for creating or replacing a monthly category budget."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: Optional[UUID] = Field(
        default=None,
        description="Legacy owner field; must match the token when present"
    )
    month: date = Field(
        ...,
        description="Any day of the budget month; stored as the first day"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        max_digits=15,
        decimal_places=2,
    )

    @field_validator("month")
    @classmethod
    def normalize_month(cls, v: date) -> date:
        return first_of_month(v)


class Budget(BaseModel):
    """A stored budget, unique per (user_id, month, category)."""
    model_config = ConfigDict(frozen=True)

    user_id: UUID
    month: date
    category: str
    amount: Decimal
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class BudgetProgress(BaseModel):
    """
    Budget versus actual spend for one category and month.

    Derived on every request, never stored.
    ``remaining`` is negative when the category is overspent.
    """
    category: str
    budget_amount: Decimal
    spent: Decimal
    remaining: Decimal
