"""
Tests for the authentication core

Test strategy:
1. CredentialVault: round trips, salt randomness, fail-closed verification
2. TokenService: pinned clock for expiry, tampering, malformed claims
3. IdentityGate: every rejection path and the target-identity check
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from argon2 import PasswordHasher
from argon2.exceptions import HashingError
from jose import jwt

from conftest import FIXED_NOW, OTHER_SECRET, TEST_SECRET, fixed_clock
from financetracker.auth import (
    CredentialVault,
    Expired,
    GateRejection,
    HashingFailure,
    IdentityGate,
    InvalidSignature,
    MalformedSubject,
    RejectionKind,
    TokenService,
    VerificationError,
)


DAY_SECONDS = 86400
BASE64URL_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"


class TestCredentialVault:
    """Tests for Argon2 hashing and verification."""

    def test_hash_then_verify(self):
        """A password verifies against its own hash."""
        vault = CredentialVault()
        stored = vault.hash("correct horse battery staple")
        assert vault.verify("correct horse battery staple", stored) is True

    def test_wrong_password_does_not_verify(self):
        vault = CredentialVault()
        stored = vault.hash("password-one")
        assert vault.verify("password-two", stored) is False

    def test_hash_is_salted(self):
        """Two hashes of one password differ but both verify."""
        vault = CredentialVault()
        first = vault.hash("same-password")
        second = vault.hash("same-password")
        assert first != second
        assert vault.verify("same-password", first)
        assert vault.verify("same-password", second)

    def test_hash_is_self_describing_argon2id(self):
        stored = CredentialVault().hash("pw")
        assert stored.startswith("$argon2id$")

    def test_bytes_password(self):
        vault = CredentialVault()
        stored = vault.hash(b"bytes-password")
        assert vault.verify(b"bytes-password", stored) is True

    def test_verify_fails_closed_on_garbage_hash(self):
        """An unparseable stored hash is 'not verified', never an exception."""
        vault = CredentialVault()
        assert vault.verify("anything", "not-a-hash") is False
        assert vault.verify("anything", "") is False
        assert vault.verify("anything", "$argon2id$v=19$broken") is False

    def test_dummy_verify_is_always_false(self):
        vault = CredentialVault()
        assert vault.dummy_verify("whatever") is False
        assert vault.dummy_verify("whatever") is False

    def test_warm_up_precomputes_dummy_hash(self):
        """After warm_up, dummy_verify costs a verify and never a hash."""
        class CountingHasher(PasswordHasher):
            hash_calls = 0

            def hash(self, password, *, salt=None):
                CountingHasher.hash_calls += 1
                return super().hash(password, salt=salt)

        vault = CredentialVault(hasher=CountingHasher())
        assert vault.is_warm is False

        vault.warm_up()
        vault.dummy_verify("first")
        vault.dummy_verify("second")

        assert vault.is_warm is True
        assert CountingHasher.hash_calls == 1

    def test_internal_failure_raises_hashing_failure(self):
        class BrokenHasher(PasswordHasher):
            def hash(self, password, *, salt=None):
                raise HashingError("boom")

        vault = CredentialVault(hasher=BrokenHasher())
        with pytest.raises(HashingFailure):
            vault.hash("pw")


class TestTokenService:
    """Tests for HS256 token issue and verify."""

    def test_round_trip_returns_identity_and_expiry(self, token_service):
        identity = uuid4()
        token = token_service.issue(identity, now=FIXED_NOW)

        verified = token_service.verify(token)

        assert verified.identity == identity
        assert verified.expires_at == int(FIXED_NOW.timestamp()) + DAY_SECONDS

    def test_issue_is_deterministic_for_pinned_now(self, token_service):
        identity = uuid4()
        assert token_service.issue(identity, now=FIXED_NOW) == token_service.issue(identity, now=FIXED_NOW)

    def test_issue_accepts_unix_seconds(self, token_service):
        identity = uuid4()
        now = int(FIXED_NOW.timestamp())
        assert token_service.issue(identity, now=now) == token_service.issue(identity, now=FIXED_NOW)

    def test_claims_shape(self, token_service):
        identity = uuid4()
        token = token_service.issue(identity, now=FIXED_NOW)
        claims = jwt.get_unverified_claims(token)
        assert claims == {
            "sub": str(identity),
            "exp": int(FIXED_NOW.timestamp()) + DAY_SECONDS,
        }
        assert jwt.get_unverified_header(token)["alg"] == "HS256"

    def test_valid_one_second_before_expiry(self):
        identity = uuid4()
        token = TokenService(TEST_SECRET).issue(identity, now=FIXED_NOW)
        later = TokenService(
            TEST_SECRET,
            clock=fixed_clock(FIXED_NOW + timedelta(seconds=DAY_SECONDS - 1)),
        )
        assert later.verify(token).identity == identity

    def test_expired_exactly_at_expiry(self):
        token = TokenService(TEST_SECRET).issue(uuid4(), now=FIXED_NOW)
        at_expiry = TokenService(
            TEST_SECRET,
            clock=fixed_clock(FIXED_NOW + timedelta(seconds=DAY_SECONDS)),
        )
        with pytest.raises(Expired):
            at_expiry.verify(token)

    def test_expired_after_expiry(self):
        token = TokenService(TEST_SECRET).issue(uuid4(), now=FIXED_NOW)
        much_later = TokenService(TEST_SECRET, clock=fixed_clock(FIXED_NOW + timedelta(days=3)))
        with pytest.raises(Expired):
            much_later.verify(token)

    def test_custom_ttl(self, token_service):
        token = token_service.issue(uuid4(), now=FIXED_NOW, ttl_hours=1)
        assert token_service.verify(token).expires_at == int(FIXED_NOW.timestamp()) + 3600

    def test_tampered_signature_is_rejected(self, token_service):
        """Changing any one character of the signature segment fails verification."""
        token = token_service.issue(uuid4(), now=FIXED_NOW)
        header, payload, signature = token.split(".")

        for position in range(len(signature)):
            index = BASE64URL_ALPHABET.index(signature[position])
            replacement = BASE64URL_ALPHABET[index ^ 1]
            tampered_signature = signature[:position] + replacement + signature[position + 1:]
            tampered = ".".join([header, payload, tampered_signature])

            with pytest.raises(InvalidSignature):
                token_service.verify(tampered)

    def test_last_signature_character_padding_bits(self, token_service):
        """The final character's unused bits are part of the signature too."""
        token = token_service.issue(uuid4(), now=FIXED_NOW)
        header, payload, signature = token.split(".")
        assert len(signature) == 43

        index = BASE64URL_ALPHABET.index(signature[-1])
        for flipped in (index ^ 1, index ^ 2, index ^ 3):
            tampered = ".".join([header, payload, signature[:-1] + BASE64URL_ALPHABET[flipped]])
            with pytest.raises(InvalidSignature):
                token_service.verify(tampered)

    def test_tampered_payload_is_rejected(self, token_service):
        token = token_service.issue(uuid4(), now=FIXED_NOW)
        header, _, signature = token.split(".")
        forged_payload = jwt.encode(
            {"sub": str(uuid4()), "exp": int(FIXED_NOW.timestamp()) + DAY_SECONDS},
            OTHER_SECRET,
            algorithm="HS256",
        ).split(".")[1]

        with pytest.raises(InvalidSignature):
            token_service.verify(".".join([header, forged_payload, signature]))

    def test_foreign_secret_is_rejected(self, token_service):
        foreign = TokenService(OTHER_SECRET).issue(uuid4(), now=FIXED_NOW)
        with pytest.raises(InvalidSignature):
            token_service.verify(foreign)

    def test_garbage_token_is_rejected(self, token_service):
        with pytest.raises(InvalidSignature):
            token_service.verify("not.a.token")
        with pytest.raises(InvalidSignature):
            token_service.verify("garbage")

    def test_tampered_and_expired_still_rejected(self):
        token = TokenService(TEST_SECRET).issue(uuid4(), now=FIXED_NOW)
        tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")
        late = TokenService(TEST_SECRET, clock=fixed_clock(FIXED_NOW + timedelta(days=2)))
        with pytest.raises(VerificationError):
            late.verify(tampered)

    def test_malformed_subject(self, token_service):
        token = jwt.encode(
            {"sub": "not-a-uuid", "exp": int(FIXED_NOW.timestamp()) + 60},
            TEST_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(MalformedSubject):
            token_service.verify(token)

    def test_missing_subject(self, token_service):
        token = jwt.encode(
            {"exp": int(FIXED_NOW.timestamp()) + 60},
            TEST_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(MalformedSubject):
            token_service.verify(token)

    def test_missing_expiry_is_treated_as_expired(self, token_service):
        token = jwt.encode({"sub": str(uuid4())}, TEST_SECRET, algorithm="HS256")
        with pytest.raises(Expired):
            token_service.verify(token)

    def test_empty_secret_is_refused(self):
        with pytest.raises(ValueError):
            TokenService("")

    def test_unsupported_algorithm_is_refused(self):
        with pytest.raises(ValueError):
            TokenService(TEST_SECRET, algorithm="RS256")

    def test_sign_prebuilt_claims(self, token_service):
        """Signing prebuilt claims reads the clock once, in build_claims."""
        identity = uuid4()
        claims = token_service.build_claims(identity, now=FIXED_NOW)

        token = token_service.sign(claims)

        assert token == token_service.issue(identity, now=FIXED_NOW)
        assert token_service.verify(token).expires_at == claims.exp


class TestIdentityGate:
    """Tests for the per-request identity gate."""

    def test_valid_bearer_header(self, gate, token_service):
        identity = uuid4()
        token = token_service.issue(identity, now=FIXED_NOW)
        assert gate.authenticate(f"Bearer {token}") == identity

    def test_missing_header(self, gate):
        with pytest.raises(GateRejection) as exc_info:
            gate.authenticate(None)
        assert exc_info.value.kind == RejectionKind.NO_HEADER
        assert exc_info.value.message == "Missing Authorization header"

    def test_empty_header(self, gate):
        with pytest.raises(GateRejection) as exc_info:
            gate.authenticate("")
        assert exc_info.value.kind == RejectionKind.NO_HEADER

    def test_header_without_bearer_prefix(self, gate, token_service):
        token = token_service.issue(uuid4(), now=FIXED_NOW)
        for header in (token, f"Token {token}", f"bearer {token}", "Basic dXNlcjpwYXNz"):
            with pytest.raises(GateRejection) as exc_info:
                gate.authenticate(header)
            assert exc_info.value.kind == RejectionKind.MALFORMED_HEADER

    def test_bearer_without_token(self, gate):
        with pytest.raises(GateRejection) as exc_info:
            gate.authenticate("Bearer ")
        assert exc_info.value.kind == RejectionKind.MALFORMED_HEADER

    def test_expired_token(self, gate):
        stale = TokenService(TEST_SECRET).issue(uuid4(), now=FIXED_NOW - timedelta(days=2))
        with pytest.raises(GateRejection) as exc_info:
            gate.authenticate(f"Bearer {stale}")
        assert exc_info.value.kind == RejectionKind.UNAUTHORIZED
        assert exc_info.value.reason == "expired"

    def test_rejections_do_not_reveal_reason_in_message(self, gate):
        """Forged and expired tokens produce the same client-facing message."""
        stale = TokenService(TEST_SECRET).issue(uuid4(), now=FIXED_NOW - timedelta(days=2))
        forged = TokenService(OTHER_SECRET).issue(uuid4(), now=FIXED_NOW)

        messages = set()
        for token in (stale, forged, "garbage"):
            with pytest.raises(GateRejection) as exc_info:
                gate.authenticate(f"Bearer {token}")
            assert exc_info.value.kind == RejectionKind.UNAUTHORIZED
            messages.add(exc_info.value.message)

        assert messages == {"Invalid or expired token"}

    def test_authorize_matching_target(self, gate):
        identity = uuid4()
        assert gate.authorize_target(identity, identity) == identity

    def test_authorize_without_target(self, gate):
        identity = uuid4()
        assert gate.authorize_target(identity, None) == identity

    def test_authorize_mismatched_target(self, gate):
        with pytest.raises(GateRejection) as exc_info:
            gate.authorize_target(uuid4(), uuid4())
        assert exc_info.value.kind == RejectionKind.UNAUTHORIZED
        assert exc_info.value.reason == "identity_mismatch"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
