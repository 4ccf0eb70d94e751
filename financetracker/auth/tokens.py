"""
Token Service

Issues and verifies signed, time-bounded access tokens (HS256 JWT).

DESIGN DECISION: Tokens are bearer-stateless.
Nothing about an issued token is stored; validity is decided purely by
the signature and the ``exp`` claim at verification time. There is no
revocation list and no refresh flow.

The secret and the clock are constructor arguments, so tests can pin
"now" and use a different secret per test.
"""

import hmac
from datetime import datetime, timedelta
from typing import Optional, Union
from uuid import UUID

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from financetracker.clock import Clock, utc_now
from financetracker.models.auth import Claims, Identity, VerifiedToken


ALGORITHM = "HS256"
SUPPORTED_ALGORITHMS = (ALGORITHM,)
DEFAULT_EXPIRATION_HOURS = 24

# Signature only; expiry and subject are checked here so each failure gets its own type
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_sub": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_aud": False,
    "verify_iss": False,
    "verify_jti": False,
    "verify_at_hash": False,
}


class VerificationError(Exception):
    """Base class for every reason a token is not accepted."""
    reason = "invalid"


class InvalidSignature(VerificationError):
    """Token is malformed or its signature does not match."""
    reason = "invalid_signature"


class Expired(VerificationError):
    """Token's ``exp`` is in the past (or missing)."""
    reason = "expired"


class MalformedSubject(VerificationError):
    """Token's ``sub`` is not an identity."""
    reason = "malformed_subject"


class TokenService:
    """
    HS256 token issuance and verification.

    Pure apart from reading the clock; safe to share across requests.
    """

    def __init__(
        self,
        secret: str,
        expiration_hours: int = DEFAULT_EXPIRATION_HOURS,
        clock: Clock = utc_now,
        algorithm: str = ALGORITHM,
    ):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported token algorithm: {algorithm}")
        self._secret = secret
        self._expiration_hours = expiration_hours
        self._clock = clock
        self._algorithm = algorithm

    @property
    def expiration_hours(self) -> int:
        return self._expiration_hours

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def _to_unix(self, now: Union[datetime, int, float, None]) -> int:
        if now is None:
            now = self._clock()
        if isinstance(now, datetime):
            return int(now.timestamp())
        return int(now)

    def build_claims(
        self,
        identity: Identity,
        now: Union[datetime, int, float, None] = None,
        ttl_hours: Optional[int] = None,
    ) -> Claims:
        hours = self._expiration_hours if ttl_hours is None else ttl_hours
        issued_at = self._to_unix(now)
        return Claims(
            sub=str(identity),
            exp=issued_at + int(timedelta(hours=hours).total_seconds()),
        )

    def sign(self, claims: Claims) -> str:
        return jwt.encode(claims.model_dump(), self._secret, algorithm=self._algorithm)

    def issue(
        self,
        identity: Identity,
        now: Union[datetime, int, float, None] = None,
        ttl_hours: Optional[int] = None,
    ) -> str:
        """
        Sign a token for ``identity`` expiring ``ttl_hours`` after ``now``.

        Deterministic for a given ``now``: HMAC has no randomness.
        """
        return self.sign(self.build_claims(identity, now=now, ttl_hours=ttl_hours))

    def verify(self, token: str) -> VerifiedToken:
        """
        Verify ``token`` and return the identity it was issued for.

        Checks run in a fixed order: signature, then expiry, then subject.

        Raises:
            InvalidSignature: Tampered, foreign-secret or unparseable token
            Expired: ``exp`` missing, not a number, or not after now
            MalformedSubject: ``sub`` missing or not a UUID
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options=_DECODE_OPTIONS,
            )
        except JWTError as e:
            raise InvalidSignature(str(e)) from e

        if not _has_canonical_signature(token):
            raise InvalidSignature("Signature segment is not canonical base64url")

        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise Expired("Token has no valid expiry")
        if int(exp) <= self._to_unix(None):
            raise Expired("Token has expired")

        sub = payload.get("sub")
        if not isinstance(sub, str):
            raise MalformedSubject("Token subject is missing")
        try:
            identity = UUID(sub)
        except ValueError as e:
            raise MalformedSubject(f"Token subject is not a user id: {sub!r}") from e

        return VerifiedToken(identity=identity, expires_at=int(exp))


def _has_canonical_signature(token: str) -> bool:
    # The decoder ignores the unused low bits of the last base64 character,
    # so a signature is only accepted in its one canonical spelling
    segment = token.rsplit(".", 1)[-1].encode("ascii")
    try:
        canonical = base64url_encode(base64url_decode(segment))
    except ValueError:
        return False
    return hmac.compare_digest(segment, canonical)
