"""
Audit Models for Finance Tracker

Every authentication decision and every owner-scoped write is logged.
This provides:
1. Traceability of who logged in and who was turned away
2. Debugging information when stored data turns out to be corrupt
3. Evidence when an identity mismatch is attempted

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
Passwords, password hashes and tokens never go into ``details``.
"""

import json
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    USER_REGISTERED = "user_registered"
    REGISTRATION_REJECTED = "registration_rejected"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"

    # Request authentication
    TOKEN_REJECTED = "token_rejected"
    IDENTITY_MISMATCH = "identity_mismatch"

    # Ledger
    TRANSACTION_ADDED = "transaction_added"
    BUDGET_UPSERTED = "budget_upserted"
    BUDGET_PROGRESS_COMPUTED = "budget_progress_computed"

    # System events
    DATA_INTEGRITY_FAILURE = "data_integrity_failure"
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Who the event is about (None when the caller is not authenticated)
    user_id: Optional[UUID] = None

    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'user', 'transaction', 'budget')"
    )
    entity_id: Optional[UUID] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate events of one request"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": str(self.user_id) if self.user_id else None,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_row(self) -> dict:
        """Flatten for a relational ``audit_events`` row."""
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp,
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": self.correlation_id,
            "description": self.description,
            "details_json": json.dumps(self.details, default=str) if self.details else "",
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.login_succeeded(user_id, correlation_id)
        event = AuditEventBuilder.token_rejected("expired", correlation_id)
    """

    @staticmethod
    def user_registered(
        user_id: UUID,
        username: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"User registered: {username}",
            details={"username": username},
        )

    @staticmethod
    def registration_rejected(
        username: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REGISTRATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            correlation_id=correlation_id,
            description=f"Registration rejected for {username}",
            details={"username": username, "reason": reason},
        )

    @staticmethod
    def login_succeeded(
        user_id: UUID,
        expires_at: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Login succeeded, access token issued",
            details={"expires_at": expires_at},
        )

    @staticmethod
    def login_failed(
        identifier: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        # Expected outcome, not an anomaly
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            entity_type="user",
            correlation_id=correlation_id,
            description="Login failed: invalid username/email or password",
            details={"identifier": identifier},
        )

    @staticmethod
    def token_rejected(
        rejection_kind: str,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        details = {"rejection_kind": rejection_kind}
        if reason:
            details["reason"] = reason
        return AuditEvent(
            event_type=AuditEventType.TOKEN_REJECTED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Request rejected at identity gate: {rejection_kind}",
            details=details,
        )

    @staticmethod
    def identity_mismatch(
        user_id: UUID,
        target_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IDENTITY_MISMATCH,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Token identity does not match requested user",
            details={"target_user_id": str(target_id)},
        )

    @staticmethod
    def transaction_added(
        user_id: UUID,
        transaction_id: UUID,
        kind: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction recorded: {kind} {amount}",
            details={"kind": kind, "amount": amount},
        )

    @staticmethod
    def budget_upserted(
        user_id: UUID,
        month: date,
        category: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_UPSERTED,
            user_id=user_id,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"Budget set: {category} {month.strftime('%Y-%m')} = {amount}",
            details={
                "month": month.isoformat(),
                "category": category,
                "amount": amount,
            },
        )

    @staticmethod
    def budget_progress_computed(
        user_id: UUID,
        month: date,
        category_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_PROGRESS_COMPUTED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"Budget progress computed for {month.strftime('%Y-%m')}",
            details={
                "month": month.isoformat(),
                "category_count": category_count,
            },
        )

    @staticmethod
    def data_integrity_failure(
        error_message: str,
        user_id: Optional[UUID] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_INTEGRITY_FAILURE,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Stored data failed integrity checks",
            details=details or {},
            error_code="data_integrity",
            error_message=error_message,
        )

    @staticmethod
    def storage_error(
        error_message: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Storage error during {operation}",
            details={"operation": operation},
            error_code="storage",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_code=error_type,
            error_message=error_message,
        )
