"""Unit tests for password hashing, password lifecycle and session tokens."""

from datetime import timedelta

import jwt
import pytest

from core.errors import ExpiredTokenError, InvalidTokenError
from core.security import (
    TokenIssuer,
    as_utc,
    clear_password_reset_token,
    create_password_reset_token,
    find_user_by_reset_token,
    hash_password,
    hash_reset_token,
    password_changed_after,
    set_password,
    utcnow,
    verify_password,
)
from models.user import User

SECRET = "unit-test-secret-0123456789-abcdefghijklmnopqrstuvwxyz"


def _new_user(**overrides) -> User:
    values = dict(
        first_name="Grace",
        last_name="Hopper",
        email="grace@citylog.io",
        phone_number="9123456789",
    )
    values.update(overrides)
    return User(**values)


class TestPasswordHashing:
    def test_hash_is_not_plaintext_and_verifies(self):
        stored = hash_password("Secret123", rounds=1000)
        assert stored != "Secret123"
        assert stored.startswith("$pbkdf2-sha256$")
        assert verify_password("Secret123", stored)

    def test_wrong_password_is_false(self):
        stored = hash_password("Secret123", rounds=1000)
        assert verify_password("Secret124", stored) is False

    def test_malformed_hash_is_false_not_an_error(self):
        assert verify_password("Secret123", "not-a-hash") is False

    def test_same_password_hashes_differently(self):
        assert hash_password("Secret123", rounds=1000) != hash_password("Secret123", rounds=1000)


class TestPasswordLifecycle:
    def test_initial_password_does_not_record_a_change(self):
        user = _new_user()
        set_password(user, "Secret123", rounds=1000)
        assert verify_password("Secret123", user.password_hash)
        assert user.password_changed_at is None

    def test_changing_a_stored_password_records_the_change(self, db):
        user = _new_user()
        set_password(user, "Secret123", rounds=1000)
        db.add(user)
        db.commit()

        before = utcnow()
        set_password(user, "Another123", rounds=1000)
        db.commit()

        changed = as_utc(user.password_changed_at)
        # stamped one second before the write
        assert before - timedelta(seconds=2) < changed < before
        assert verify_password("Another123", user.password_hash)

    def test_password_changed_after(self):
        user = _new_user()
        assert password_changed_after(user, 0) is False

        now = utcnow()
        user.password_changed_at = now
        assert password_changed_after(user, int(now.timestamp()) - 60) is True
        assert password_changed_after(user, int(now.timestamp())) is False

    def test_reset_token_is_stored_hashed(self):
        user = _new_user()
        token = create_password_reset_token(user, ttl_minutes=10)

        assert len(token) == 64
        assert user.password_reset_token == hash_reset_token(token)
        assert user.password_reset_token != token
        remaining = as_utc(user.password_reset_expires) - utcnow()
        assert timedelta(minutes=9) < remaining <= timedelta(minutes=10)

    def test_clear_reset_token(self):
        user = _new_user()
        create_password_reset_token(user)
        clear_password_reset_token(user)
        assert user.password_reset_token is None
        assert user.password_reset_expires is None

    def test_find_user_by_reset_token(self, db):
        user = _new_user()
        set_password(user, "Secret123", rounds=1000)
        token = create_password_reset_token(user)
        db.add(user)
        db.commit()

        assert find_user_by_reset_token(db, token).id == user.id
        assert find_user_by_reset_token(db, "0" * 64) is None

        user.password_reset_expires = utcnow() - timedelta(seconds=1)
        db.commit()
        assert find_user_by_reset_token(db, token) is None
        assert user.password_reset_token is None
        assert user.password_reset_expires is None


class TestTokenIssuer:
    def test_issue_and_verify(self):
        issuer = TokenIssuer(SECRET, timedelta(minutes=5))
        token = issuer.issue(42)

        claims = issuer.verify(token)
        assert claims.subject == 42
        assert abs(claims.issued_at - int(utcnow().timestamp())) <= 2

    def test_issued_at_can_be_backdated(self):
        issuer = TokenIssuer(SECRET, timedelta(minutes=5))
        issued = utcnow() - timedelta(minutes=2)
        claims = issuer.verify(issuer.issue(7, issued_at=issued))
        assert claims.issued_at == int(issued.timestamp())

    def test_expired_token(self):
        issuer = TokenIssuer(SECRET, timedelta(minutes=5))
        token = issuer.issue(1, issued_at=utcnow() - timedelta(minutes=10))
        with pytest.raises(ExpiredTokenError):
            issuer.verify(token)

    def test_foreign_signature_is_invalid_not_expired(self):
        other = TokenIssuer("another-secret-0123456789-abcdefghijklmnopqrstuvwxyz", timedelta(minutes=5))
        with pytest.raises(InvalidTokenError):
            TokenIssuer(SECRET, timedelta(minutes=5)).verify(other.issue(1))

    def test_garbage_is_invalid(self):
        with pytest.raises(InvalidTokenError):
            TokenIssuer(SECRET, timedelta(minutes=5)).verify("loggedout")

    def test_non_numeric_subject_is_invalid(self):
        now = int(utcnow().timestamp())
        token = jwt.encode({"sub": "abc", "iat": now, "exp": now + 60}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            TokenIssuer(SECRET, timedelta(minutes=5)).verify(token)

    def test_from_settings_uses_configured_ttl(self, settings):
        issuer = TokenIssuer.from_settings(settings)
        assert issuer.ttl == timedelta(minutes=settings.jwt_expires_minutes)
