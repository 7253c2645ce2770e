# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Central security module.  All cryptographic primitives live here.  No other
module should touch raw crypto directly.

Responsibilities
----------------
1. Password hashing / verification          (passlib pbkdf2_sha256)
2. Password lifecycle on the User row       (change tracking, reset tokens)
3. JWT creation / verification              (PyJWT / HS256)
4. Token delivery                           (http-only ``jwt`` cookie)
5. Client IP extraction                     (rate limiting, logging)
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import jwt as _jwt        # PyJWT
from fastapi import Request, Response
from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from core.config import Settings
from core.errors import ExpiredTokenError, InvalidTokenError
from models.user import User

TOKEN_COOKIE = "jwt"
_ALGORITHM = "HS256"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing
# ---------------------------------------------------------------------------
# Default work factor is 600 000 rounds (Settings.password_hash_rounds);
# the salt and round count are embedded in the hash string, so verification
# never needs the configuration.
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 600_000) -> str:
    """Hash a plaintext password with PBKDF2-SHA256."""
    return _pbkdf2.using(rounds=rounds).hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of *plain* against a hash produced by
    :func:`hash_password`.  A malformed stored hash counts as a mismatch.
    """
    try:
        return _pbkdf2.verify(plain, stored_hash)
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# 2.  Password lifecycle
# ---------------------------------------------------------------------------


def set_password(user: User, plain: str, rounds: int = 600_000) -> None:
    """
    Hash-on-write.  The only code path that touches ``password_hash``.

    For an existing row the change is timestamped one second in the past so
    that a token minted in the same second as the change (JWT ``iat`` has
    one-second granularity) is still accepted.
    """
    user.password_hash = hash_password(plain, rounds)
    if inspect(user).persistent:
        user.password_changed_at = utcnow() - timedelta(seconds=1)


def password_changed_after(user: User, issued_at: int) -> bool:
    """True if *user* changed their password after a token issued at *issued_at*."""
    if user.password_changed_at is None:
        return False
    changed = int(as_utc(user.password_changed_at).timestamp())
    return issued_at < changed


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_password_reset_token(user: User, ttl_minutes: int = 10) -> str:
    """
    Generate a single-use reset token.  Only its sha256 digest and expiry are
    stored on *user*; the plaintext is returned once for out-of-band delivery.
    """
    token = secrets.token_hex(32)
    user.password_reset_token = hash_reset_token(token)
    user.password_reset_expires = utcnow() + timedelta(minutes=ttl_minutes)
    return token


def clear_password_reset_token(user: User) -> None:
    user.password_reset_token = None
    user.password_reset_expires = None


def find_user_by_reset_token(db: Session, token: str) -> Optional[User]:
    """
    Return the user owning *token* if it exists and has not expired.  A
    matching but expired token is cleared from the row (and committed).
    """
    user = (
        db.query(User)
        .filter(User.password_reset_token == hash_reset_token(token))
        .first()
    )
    if not user or user.password_reset_expires is None:
        return None
    if as_utc(user.password_reset_expires) <= utcnow():
        clear_password_reset_token(user)
        db.commit()
        return None
    return user


# ---------------------------------------------------------------------------
# 3.  JWT – session tokens
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenClaims:
    subject: int     # user id
    issued_at: int   # unix seconds


class TokenIssuer:
    """
    Mints and verifies HS256 bearer tokens ``{sub, iat, exp}``.

    Verification distinguishes an elapsed TTL (``ExpiredTokenError`` – the
    client should log in again) from everything else (``InvalidTokenError``
    – forged, truncated or foreign tokens).
    """

    def __init__(self, secret: str, ttl: timedelta):
        self._secret = secret
        self._ttl = ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        return cls(settings.jwt_secret_key, timedelta(minutes=settings.jwt_expires_minutes))

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, user_id: int, issued_at: Optional[datetime] = None) -> str:
        iat = issued_at or utcnow()
        payload = {
            "sub": str(user_id),
            "iat": int(iat.timestamp()),
            "exp": int((iat + self._ttl).timestamp()),
        }
        return _jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = _jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={"require": ["sub", "iat", "exp"]},
            )
        except _jwt.ExpiredSignatureError:
            raise ExpiredTokenError("Your token has expired! Please login again")
        except _jwt.InvalidTokenError:
            raise InvalidTokenError("Invalid token! Please login again")

        try:
            return TokenClaims(subject=int(payload["sub"]), issued_at=int(payload["iat"]))
        except (TypeError, ValueError):
            raise InvalidTokenError("Invalid token! Please login again")


def get_token_issuer(request: Request) -> TokenIssuer:
    """FastAPI dependency: the app-wide TokenIssuer."""
    return request.app.state.token_issuer


# ---------------------------------------------------------------------------
# 4.  Token delivery
# ---------------------------------------------------------------------------


def send_token_cookie(response: Response, token: str, settings: Settings) -> None:
    """Attach *token* as an http-only cookie; secure-only in production."""
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.jwt_cookie_expires_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def expire_token_cookie(response: Response, settings: Settings) -> None:
    """Logout: overwrite the cookie with a dummy value that dies in a second."""
    response.set_cookie(
        TOKEN_COOKIE,
        "loggedout",
        max_age=1,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


# ---------------------------------------------------------------------------
# 5.  IP Address extraction
# ---------------------------------------------------------------------------


def get_client_ip(request: Request, trusted_proxies: Iterable[str] = ()) -> str:
    """
    The client address of *request*.  ``X-Forwarded-For`` is honoured only
    when the peer itself is one of *trusted_proxies*.
    """
    peer = request.client.host if request.client else "unknown"
    if peer in trusted_proxies:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            # first hop is the original client
            return forwarded.split(",")[0].strip()
    return peer
