"""
Tests for Pydantic models

Covers request validation, owner-free request bodies, password hiding
and the audit event builders.
"""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from financetracker.models import (
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    BudgetUpsert,
    LoginUser,
    NewTransaction,
    RegisterUser,
    TransactionKind,
)
from financetracker.models.auth import Credential


class TestNewTransaction:
    """Tests for the transaction request body."""

    def test_valid_transaction(self):
        tx = NewTransaction(
            amount=Decimal("42.50"),
            kind="expense",
            category="groceries",
            date=date(2026, 1, 5),
        )
        assert tx.amount == Decimal("42.50")
        assert tx.kind is TransactionKind.EXPENSE
        assert tx.user_id is None

    def test_capitalized_kind_accepted(self):
        """Older clients send 'Income' and 'Expense'."""
        tx = NewTransaction(amount="10", kind="Income", date="2026-01-05")
        assert tx.kind is TransactionKind.INCOME

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            NewTransaction(amount="10", kind="transfer", date="2026-01-05")

    @pytest.mark.parametrize("amount", ["0", "-5", "1.234"])
    def test_invalid_amounts_rejected(self, amount):
        with pytest.raises(ValidationError):
            NewTransaction(amount=amount, kind="expense", date="2026-01-05")

    def test_empty_category_becomes_none(self):
        tx = NewTransaction(
            amount="10", kind="expense", date="2026-01-05", category="  ", description=""
        )
        assert tx.category is None
        assert tx.description is None


class TestBudgetUpsert:
    """Tests for the budget request body."""

    def test_month_normalized_to_first_day(self):
        budget = BudgetUpsert(month="2026-03-17", category="rent", amount="1000")
        assert budget.month == date(2026, 3, 1)

    def test_zero_budget_allowed(self):
        budget = BudgetUpsert(month="2026-03-01", category="fun", amount="0")
        assert budget.amount == Decimal("0")

    def test_negative_budget_rejected(self):
        with pytest.raises(ValidationError):
            BudgetUpsert(month="2026-03-01", category="fun", amount="-1")

    def test_blank_category_rejected(self):
        with pytest.raises(ValidationError):
            BudgetUpsert(month="2026-03-01", category="   ", amount="10")


class TestAuthModels:
    """Tests for registration and login bodies."""

    def test_username_trimmed_password_verbatim(self):
        body = RegisterUser(
            username="  alice ",
            email="alice@example.com",
            password="  spaced secret  ",
        )
        assert body.username == "alice"
        assert body.password == "  spaced secret  "

    def test_blank_username_rejected(self):
        with pytest.raises(ValidationError):
            RegisterUser(username="   ", email="a@example.com", password="pw")

    def test_invalid_email_rejected(self):
        with pytest.raises(ValidationError):
            RegisterUser(username="alice", email="not-an-email", password="pw")

    def test_repr_hides_password(self):
        body = LoginUser(identifier="alice", password="hunter2")
        assert "hunter2" not in repr(body)

    def test_credential_repr_hides_hash(self):
        credential = Credential(
            user_id=uuid4(),
            username="alice",
            email="alice@example.com",
            password_hash="$argon2id$v=19$secret-material",
        )
        assert "secret-material" not in repr(credential)


class TestAuditEventBuilder:
    """Tests for audit event construction."""

    def test_token_rejected_event(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.token_rejected(
            rejection_kind="unauthorized",
            reason="expired",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.TOKEN_REJECTED
        assert event.severity == AuditSeverity.WARNING
        assert event.user_id is None
        assert event.details == {"rejection_kind": "unauthorized", "reason": "expired"}
        assert event.correlation_id == correlation_id

    def test_budget_upserted_description(self):
        event = AuditEventBuilder.budget_upserted(
            user_id=uuid4(),
            month=date(2026, 1, 1),
            category="rent",
            amount="1000",
        )
        assert event.description == "Budget set: rent 2026-01 = 1000"
        assert event.details["month"] == "2026-01-01"

    def test_data_integrity_failure_is_error(self):
        event = AuditEventBuilder.data_integrity_failure(
            error_message="Invalid transaction kind in database: 'transfer'",
            details={"field": "kind"},
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_code == "data_integrity"

    def test_to_log_dict_is_json_serializable(self):
        event = AuditEventBuilder.login_succeeded(
            user_id=uuid4(),
            expires_at=1768564800,
            correlation_id=uuid4(),
        )
        log_dict = event.to_log_dict()
        json.dumps(log_dict)
        assert log_dict["event_type"] == "login_succeeded"
        assert log_dict["user_id"] == str(event.user_id)

    def test_to_row_serializes_details(self):
        event = AuditEventBuilder.login_failed(identifier="alice")
        row = event.to_row()
        assert json.loads(row["details_json"]) == {"identifier": "alice"}
        assert row["event_type"] == "login_failed"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
