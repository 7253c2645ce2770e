# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Request authentication and authorization.

The pipeline is a fixed sequence of small stages, each with a typed result,
composed by :func:`authenticate`:

    extract_token          -> str | None
    TokenIssuer.verify     -> TokenClaims        (InvalidToken / ExpiredToken)
    resolve_identity       -> User               (UserGone)
    ensure_fresh_session   -> None               (StaleSession)

FastAPI dependencies wrap the pipeline:

* ``get_current_user``   – protected routes; any failure rejects with 401.
* ``get_optional_user``  – anonymous allowed; any failure yields ``None``.
* ``require_roles(...)`` – role gate applied on top of ``get_current_user``.
"""

from typing import Optional

from fastapi import Cookie, Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from core.errors import (
    AppError,
    ForbiddenError,
    NotAuthenticatedError,
    StaleSessionError,
    UserGoneError,
)
from core.security import TOKEN_COOKIE, TokenClaims, TokenIssuer, get_token_issuer, password_changed_after
from database import get_db
from models.user import Role, User

# auto_error=False: a missing header falls through to the cookie lookup.
# The tokenUrl is only used by the auto-generated OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/users/login", auto_error=False)


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------


def extract_token(bearer: Optional[str], cookie: Optional[str]) -> Optional[str]:
    """The ``Authorization: Bearer`` token wins over the ``jwt`` cookie."""
    return bearer or cookie or None


def resolve_identity(db: Session, claims: TokenClaims) -> User:
    user = db.get(User, claims.subject)
    if user is None:
        raise UserGoneError("The user belonging to this token does no longer exist")
    return user


def ensure_fresh_session(user: User, claims: TokenClaims) -> None:
    if password_changed_after(user, claims.issued_at):
        raise StaleSessionError("User recently changed password! Please login again")


def authenticate(db: Session, issuer: TokenIssuer, token: Optional[str]) -> User:
    """Run the whole pipeline for *token*; returns the live User or raises."""
    if not token:
        raise NotAuthenticatedError("You are not logged in! Please login to get access")
    claims = issuer.verify(token)
    user = resolve_identity(db, claims)
    ensure_fresh_session(user, claims)
    return user


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def get_current_user(
    bearer: Optional[str] = Depends(oauth2_scheme),
    jwt_cookie: Optional[str] = Cookie(None, alias=TOKEN_COOKIE),
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> User:
    """Dependency: the authenticated User, or a 401 rejection."""
    return authenticate(db, issuer, extract_token(bearer, jwt_cookie))


def get_optional_user(
    bearer: Optional[str] = Depends(oauth2_scheme),
    jwt_cookie: Optional[str] = Cookie(None, alias=TOKEN_COOKIE),
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> Optional[User]:
    """Dependency: the authenticated User, or ``None`` for anonymous callers."""
    token = extract_token(bearer, jwt_cookie)
    if not token:
        return None
    try:
        return authenticate(db, issuer, token)
    except AppError:
        return None


def require_roles(*roles: Role):
    """
    Dependency factory: wraps :func:`get_current_user` and additionally
    asserts the caller's role is one of *roles*.  Raises 403 otherwise.
    """
    allowed = frozenset(roles)

    def _guard(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError("You do not have permission to perform this action")
        return current_user

    return _guard


require_admin = require_roles(Role.ADMIN)
