"""
Credential Vault

Hashes and verifies user passwords with Argon2id (argon2-cffi).

DESIGN DECISION: The vault owns no state besides the hasher's cost
parameters. Storage of the resulting hash is the user store's job.

GUARANTEES:
- A fresh random salt per hash; two hashes of one password differ
- ``verify`` never raises. Malformed hashes and mismatches both
  return False, so callers cannot leak why a login failed
- No password strength policy lives here
"""

from typing import Optional, Union

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError


# Fixed password for timing-equalization; never matches a user's hash
_DUMMY_PASSWORD = "finance-tracker-dummy-password"


class HashingFailure(Exception):
    """The hashing algorithm itself failed (not a policy rejection)."""
    pass


class CredentialVault:
    """
    Argon2id password hashing with library-default cost parameters.

    The encoded hash is self-describing (algorithm, version, memory,
    time and parallelism cost, salt), so verification never needs to
    know how the hash was produced.
    """

    def __init__(self, hasher: Optional[PasswordHasher] = None):
        self._hasher = hasher or PasswordHasher()
        self._dummy_hash: Optional[str] = None

    def hash(self, password: Union[str, bytes]) -> str:
        """
        Hash ``password`` with a freshly generated salt.

        Raises:
            HashingFailure: On internal algorithm or encoding errors
        """
        try:
            return self._hasher.hash(password)
        except (HashingError, TypeError, UnicodeError) as e:
            raise HashingFailure(f"Password hashing failed: {e}") from e

    def verify(self, password: Union[str, bytes], stored_hash: str) -> bool:
        """
        Check ``password`` against an encoded hash in constant time.

        Returns:
            True on a match; False on mismatch or an unparseable hash
        """
        try:
            return self._hasher.verify(stored_hash, password)
        except (VerificationError, InvalidHashError, TypeError, UnicodeError):
            return False

    @property
    def is_warm(self) -> bool:
        return self._dummy_hash is not None

    def warm_up(self) -> None:
        """Precompute the dummy hash so the first unknown-user login costs no extra hash."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(_DUMMY_PASSWORD)

    def dummy_verify(self, password: Union[str, bytes]) -> bool:
        """
        Spend one verification's worth of work for an unknown user.

        Always returns False.
        """
        self.warm_up()
        self.verify(password, self._dummy_hash)
        return False
