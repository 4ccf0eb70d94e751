"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from financetracker.models.auth import (
    Claims,
    Credential,
    Identity,
    LoginResponse,
    LoginUser,
    RegisterResponse,
    RegisterUser,
    VerifiedToken,
)
from financetracker.models.ledger import (
    Budget,
    BudgetProgress,
    BudgetUpsert,
    NewTransaction,
    Transaction,
    TransactionKind,
    first_of_month,
)
from financetracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Auth models
    "Claims",
    "Credential",
    "Identity",
    "LoginResponse",
    "LoginUser",
    "RegisterResponse",
    "RegisterUser",
    "VerifiedToken",
    # Ledger models
    "Budget",
    "BudgetProgress",
    "BudgetUpsert",
    "NewTransaction",
    "Transaction",
    "TransactionKind",
    "first_of_month",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
