"""Shared fixtures: a fixed clock, a test secret and fresh in-memory storage."""

from datetime import datetime, timezone

import pytest

from financetracker.auth import IdentityGate, TokenService
from financetracker.config.settings import AuthSettings
from financetracker.services.storage import InMemoryStorage


TEST_SECRET = "test-secret-0123456789abcdef0123456789abcdef"
OTHER_SECRET = "other-secret-0123456789abcdef0123456789abcde"

# 2026-01-15 12:00:00 UTC
FIXED_NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock(moment: datetime = FIXED_NOW):
    return lambda: moment


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TEST_SECRET, clock=fixed_clock())


@pytest.fixture
def gate(token_service: TokenService) -> IdentityGate:
    return IdentityGate(token_service)


@pytest.fixture
def auth_settings() -> AuthSettings:
    return AuthSettings(secret=TEST_SECRET)
