"""Authentication and authorization core."""

from financetracker.auth.credentials import CredentialVault, HashingFailure
from financetracker.auth.gate import (
    GateRejection,
    IdentityGate,
    RejectionKind,
)
from financetracker.auth.tokens import (
    Expired,
    InvalidSignature,
    MalformedSubject,
    TokenService,
    VerificationError,
)

__all__ = [
    "CredentialVault",
    "Expired",
    "GateRejection",
    "HashingFailure",
    "IdentityGate",
    "InvalidSignature",
    "MalformedSubject",
    "RejectionKind",
    "TokenService",
    "VerificationError",
]
