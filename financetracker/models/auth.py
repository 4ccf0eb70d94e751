"""
Authentication Models for Finance Tracker

Credentials, login payloads and token claims.

CRITICAL: No model here ever holds a plaintext password beyond the
lifetime of a single request body. ``Credential`` only carries the
encoded hash, and ``__repr__`` of request bodies hides the password.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


Identity = UUID


class Credential(BaseModel):
    """Stored login record for one user."""
    model_config = ConfigDict(frozen=True)

    user_id: Identity
    username: str
    email: str
    password_hash: str = Field(repr=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class RegisterUser(BaseModel):
    """
    Registration request body.

    Passwords are taken verbatim; only the username is trimmed.
    """

    username: str = Field(
        ...,
        min_length=1,
        max_length=50,
    )
    email: EmailStr
    password: str = Field(
        ...,
        min_length=1,
        repr=False,
    )

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username cannot be blank")
        return v


class RegisterResponse(BaseModel):
    user_id: Identity


class LoginUser(BaseModel):
    """Login request body. ``identifier`` is a username or an email."""

    identifier: str = Field(
        ...,
        min_length=1,
    )
    password: str = Field(
        ...,
        min_length=1,
        repr=False,
    )

    @field_validator("identifier")
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        return v.strip()


class LoginResponse(BaseModel):
    user_id: Identity
    access_token: str
    token_type: str = "bearer"
    expires_at: Optional[int] = None


class Claims(BaseModel):
    """Token payload: subject (identity as a string) and expiry (unix seconds)."""
    sub: str
    exp: int


class VerifiedToken(BaseModel):
    """Result of a successful token verification."""
    model_config = ConfigDict(frozen=True)

    identity: Identity
    expires_at: int
