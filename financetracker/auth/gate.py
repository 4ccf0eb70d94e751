"""
Identity Gate

Per-request guard in front of every protected operation.

Flow for one request:
1. No header            -> reject (NO_HEADER)
2. Not "Bearer <token>" -> reject (MALFORMED_HEADER)
3. Token fails verify   -> reject (UNAUTHORIZED), whatever the reason
4. Token verifies       -> the caller's Identity

CRITICAL: Callers only ever learn "unauthorized". Whether the token was
forged, expired or carried a bad subject is recorded in the audit log
and never returned, so the gate is not an oracle for token probing.

The gate is a plain object with plain methods. The HTTP layer calls it
explicitly from a dependency; nothing is injected behind the handler's back.
"""

from enum import Enum
from typing import Optional
from uuid import UUID

import structlog

from financetracker.auth.tokens import TokenService, VerificationError
from financetracker.models.auth import Identity


BEARER_PREFIX = "Bearer "

MISSING_HEADER_MESSAGE = "Missing Authorization header"
MALFORMED_HEADER_MESSAGE = "Invalid Authorization format, expected: Bearer <token>"
UNAUTHORIZED_MESSAGE = "Invalid or expired token"
IDENTITY_MISMATCH_MESSAGE = "User ID in request does not match authenticated user"


class RejectionKind(str, Enum):
    NO_HEADER = "no_header"
    MALFORMED_HEADER = "malformed_header"
    UNAUTHORIZED = "unauthorized"


class GateRejection(Exception):
    """
    The request may not proceed.

    Every kind maps to the same 401 response; ``kind`` exists for
    logging and tests. ``reason`` carries the internal verification
    failure and must not be sent to the client.
    """

    def __init__(
        self,
        kind: RejectionKind,
        message: str,
        reason: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.reason = reason


class IdentityGate:
    """Turns a raw Authorization header into a verified Identity."""

    def __init__(self, token_service: TokenService):
        self._tokens = token_service
        self._logger = structlog.get_logger(__name__)

    def authenticate(self, raw_header: Optional[str]) -> Identity:
        """
        Verify the bearer token in ``raw_header``.

        Raises:
            GateRejection: For any header or token problem
        """
        if not raw_header:
            raise GateRejection(RejectionKind.NO_HEADER, MISSING_HEADER_MESSAGE)

        if not raw_header.startswith(BEARER_PREFIX):
            raise GateRejection(RejectionKind.MALFORMED_HEADER, MALFORMED_HEADER_MESSAGE)

        token = raw_header[len(BEARER_PREFIX):].strip()
        if not token:
            raise GateRejection(RejectionKind.MALFORMED_HEADER, MALFORMED_HEADER_MESSAGE)

        try:
            verified = self._tokens.verify(token)
        except VerificationError as e:
            self._logger.info("token_verification_failed", reason=e.reason)
            raise GateRejection(
                RejectionKind.UNAUTHORIZED,
                UNAUTHORIZED_MESSAGE,
                reason=e.reason,
            ) from e

        return verified.identity

    def authorize_target(self, identity: Identity, target: Optional[UUID]) -> Identity:
        """
        Require a request-supplied user id to equal the verified identity.

        ``target`` of None means the request named no user, which is fine:
        the verified identity is used. A mismatch is always rejected and
        never resolved in favor of either side.

        Raises:
            GateRejection: UNAUTHORIZED when ``target`` differs from ``identity``
        """
        if target is not None and target != identity:
            raise GateRejection(
                RejectionKind.UNAUTHORIZED,
                IDENTITY_MISMATCH_MESSAGE,
                reason="identity_mismatch",
            )
        return identity
