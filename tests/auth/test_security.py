"""Tests for auth security functions."""

from datetime import timedelta
from uuid import uuid4

import pytest
from jose import JWTError

from coursemart.auth.actors import ActorType
from coursemart.auth.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)


def _claims() -> dict[str, str]:
    return {"sub": str(uuid4()), "username": "asha", "email": "asha@coursemart.io"}


class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_hash_password_creates_hash(self) -> None:
        """Hash should be different from plain password."""
        password = "SecureP@ssword123"
        hashed = hash_password(password)
        assert hashed != password
        assert hashed.startswith("$argon2")

    def test_hash_password_unique_hashes(self) -> None:
        """Same password should produce different hashes (due to salt)."""
        password = "SecureP@ssword123"
        assert hash_password(password) != hash_password(password)

    def test_verify_password_correct(self) -> None:
        password = "SecureP@ssword123"
        is_valid, new_hash = verify_password(password, hash_password(password))
        assert is_valid is True
        assert new_hash is None

    def test_verify_password_incorrect(self) -> None:
        is_valid, new_hash = verify_password("WrongP@ss456", hash_password("SecureP@ss123"))
        assert is_valid is False
        assert new_hash is None

    def test_verify_password_garbage_hash(self) -> None:
        """A malformed stored hash fails verification instead of raising."""
        is_valid, _ = verify_password("whatever1", "not-a-hash")
        assert is_valid is False


class TestAccessToken:
    """Tests for access token creation and decoding."""

    @pytest.mark.parametrize("actor_type", list(ActorType))
    def test_round_trip(self, actor_type: ActorType) -> None:
        """Issued token verifies for the same actor type and keeps the identity."""
        claims = _claims()
        payload = decode_access_token(create_access_token(actor_type, claims), actor_type)

        assert payload["sub"] == claims["sub"]
        assert payload["username"] == "asha"
        assert payload["type"] == "access"
        assert payload["actor"] == actor_type.value
        assert "exp" in payload
        assert "iat" in payload

    def test_learner_token_rejected_by_administrator_verifier(self) -> None:
        token = create_access_token(ActorType.LEARNER, _claims())
        with pytest.raises(JWTError):
            decode_access_token(token, ActorType.ADMINISTRATOR)

    def test_administrator_token_rejected_by_learner_verifier(self) -> None:
        token = create_access_token(ActorType.ADMINISTRATOR, _claims())
        with pytest.raises(JWTError):
            decode_access_token(token, ActorType.LEARNER)

    def test_expired(self) -> None:
        token = create_access_token(
            ActorType.LEARNER, _claims(), expires_delta=timedelta(seconds=-1)
        )
        with pytest.raises(JWTError):
            decode_access_token(token, ActorType.LEARNER)

    def test_malformed(self) -> None:
        with pytest.raises(JWTError):
            decode_access_token("invalid.token.here", ActorType.LEARNER)

    def test_refresh_token_is_not_an_access_token(self) -> None:
        token = create_refresh_token(ActorType.LEARNER, _claims())
        with pytest.raises(JWTError):
            decode_access_token(token, ActorType.LEARNER)

    def test_missing_subject(self) -> None:
        token = create_access_token(ActorType.LEARNER, {"username": "asha"})
        with pytest.raises(JWTError, match="Missing subject"):
            decode_access_token(token, ActorType.LEARNER)


class TestRefreshToken:
    """Tests for refresh token creation and decoding."""

    def test_round_trip(self) -> None:
        claims = _claims()
        token = create_refresh_token(ActorType.ADMINISTRATOR, claims)
        payload = decode_refresh_token(token, ActorType.ADMINISTRATOR)

        assert payload["sub"] == claims["sub"]
        assert payload["type"] == "refresh"
        assert "jti" in payload

    def test_tokens_differ_within_same_second(self) -> None:
        """Two issuances for the same claims never collide."""
        claims = _claims()
        assert create_refresh_token(ActorType.LEARNER, claims) != create_refresh_token(
            ActorType.LEARNER, claims
        )

    def test_access_token_is_not_a_refresh_token(self) -> None:
        token = create_access_token(ActorType.LEARNER, _claims())
        with pytest.raises(JWTError):
            decode_refresh_token(token, ActorType.LEARNER)

    def test_cross_actor_rejected(self) -> None:
        token = create_refresh_token(ActorType.LEARNER, _claims())
        with pytest.raises(JWTError):
            decode_refresh_token(token, ActorType.ADMINISTRATOR)

    def test_expired(self) -> None:
        token = create_refresh_token(
            ActorType.LEARNER, _claims(), expires_delta=timedelta(seconds=-1)
        )
        with pytest.raises(JWTError):
            decode_refresh_token(token, ActorType.LEARNER)
