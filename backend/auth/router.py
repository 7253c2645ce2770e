# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – signup, login, logout, forgot/reset password, password
change.

Security notes
--------------
* Login returns the *same* error message whether the email doesn't exist or
  the password is wrong.  This prevents user-enumeration attacks.
* forgotPassword answers identically whether or not the email is known.
* updateMyPassword verifies the current password before accepting the new
  one, so a stolen (but not yet expired) token alone cannot change it.
* Every password change stamps ``password_changed_at``; tokens issued
  before it are rejected by ``get_current_user``.
"""

import smtplib

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from database import get_db
from core.access import get_current_user
from core.config import Settings, get_settings
from core.errors import (
    DuplicateValueError,
    EmailDeliveryFailedError,
    NotAuthenticatedError,
    ResetTokenInvalidError,
)
from core.logger import logger
from core.mailer import Mailer, get_mailer
from core.security import (
    TokenIssuer,
    clear_password_reset_token,
    create_password_reset_token,
    expire_token_cookie,
    find_user_by_reset_token,
    get_token_issuer,
    send_token_cookie,
    set_password,
    verify_password,
)
from models.user import Role, User
from auth.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    TokenResponse,
    UpdatePasswordRequest,
)
from users.schemas import UserResponse

router = APIRouter(prefix="/api/v1/users", tags=["auth"])

# Generic message used for both "no such email" and "wrong password"
_LOGIN_FAIL = "Incorrect email or password"

_RESET_SENT = "If an account exists for this email, a password reset link has been sent"


def _token_response(
    user: User,
    response: Response,
    issuer: TokenIssuer,
    settings: Settings,
    message: str | None = None,
) -> TokenResponse:
    """Mint a token for *user*, set the cookie and build the JSON body."""
    token = issuer.issue(user.id)
    send_token_cookie(response, token, settings)
    return TokenResponse(
        message=message,
        token=token,
        user=UserResponse.model_validate(user),
    )


# ---------------------------------------------------------------------------
# POST /api/v1/users/signup
# ---------------------------------------------------------------------------


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def signup(
    body: SignupRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
):
    """Create a USER account and log it in."""
    if db.query(User).filter(User.email == body.email).first():
        raise DuplicateValueError("A user exists with this email; if it's you, please login.")

    user = User(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        phone_number=body.phone_number,
        role=Role.USER,
    )
    set_password(user, body.password, settings.password_hash_rounds)
    db.add(user)
    # A duplicate phone number surfaces here as IntegrityError
    db.commit()
    db.refresh(user)
    logger.info("New account user_id=%d", user.id)

    try:
        mailer.send_welcome(user, str(request.base_url))
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("Welcome mail to user_id=%d failed: %s", user.id, exc)

    return _token_response(
        user, response, issuer, settings,
        message="Your account has been created successfully.",
    )


# ---------------------------------------------------------------------------
# POST /api/v1/users/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=TokenResponse)
def login(
    body: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
):
    """Authenticate and return a signed JWT (body + cookie)."""
    user = db.query(User).filter(User.email == body.email).first()

    # Unified failure path – no information leaks about whether the email exists
    if not user or not verify_password(body.password, user.password_hash):
        logger.warning("Failed login for %s", body.email)
        raise NotAuthenticatedError(_LOGIN_FAIL)

    logger.info("Login user_id=%d", user.id)
    return _token_response(user, response, issuer, settings)


# ---------------------------------------------------------------------------
# GET /api/v1/users/logout
# ---------------------------------------------------------------------------


@router.get("/logout", response_model=MessageResponse)
def logout(response: Response, settings: Settings = Depends(get_settings)):
    """Client-side logout: the session cookie is overwritten and expires."""
    expire_token_cookie(response, settings)
    return MessageResponse(message="You have been successfully logged out")


# ---------------------------------------------------------------------------
# POST /api/v1/users/forgotPassword
# ---------------------------------------------------------------------------


@router.post("/forgotPassword", response_model=MessageResponse)
def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Issue a single-use reset token and mail the reset link.  If delivery
    fails the token is cleared again so no valid link is left dangling.
    """
    user = db.query(User).filter(User.email == body.email).first()
    if not user:
        logger.info("Password reset requested for unknown email")
        return MessageResponse(message=_RESET_SENT)

    token = create_password_reset_token(user, settings.reset_token_expires_minutes)
    db.commit()

    reset_url = f"{str(request.base_url).rstrip('/')}{router.prefix}/resetPassword/{token}"
    try:
        mailer.send_password_reset(user, reset_url)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Reset mail to user_id=%d failed: %s", user.id, exc)
        clear_password_reset_token(user)
        db.commit()
        raise EmailDeliveryFailedError("There was an error in sending the email, Try again later.")

    logger.info("Password reset issued for user_id=%d", user.id)
    return MessageResponse(message=_RESET_SENT)


# ---------------------------------------------------------------------------
# PATCH /api/v1/users/resetPassword/{token}
# ---------------------------------------------------------------------------


@router.patch("/resetPassword/{token}", response_model=MessageResponse)
def reset_password(
    token: str,
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Consume a reset token and set a new password without the old one."""
    user = find_user_by_reset_token(db, token)
    if not user:
        raise ResetTokenInvalidError("Token is invalid or link has expired")

    set_password(user, body.password, settings.password_hash_rounds)
    clear_password_reset_token(user)
    db.commit()

    logger.info("Password reset completed for user_id=%d", user.id)
    return MessageResponse(message="Your password reset was successful. Now login")


# ---------------------------------------------------------------------------
# PATCH /api/v1/users/updateMyPassword
# ---------------------------------------------------------------------------


@router.patch("/updateMyPassword", response_model=TokenResponse)
def update_my_password(
    body: UpdatePasswordRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
):
    """
    Change the authenticated user's password.  Every token issued before
    this call stops working; a fresh one is returned.
    """
    if not verify_password(body.current_password, current_user.password_hash):
        raise NotAuthenticatedError("Your current password is wrong.")

    set_password(current_user, body.password, settings.password_hash_rounds)
    db.commit()

    logger.info("Password changed for user_id=%d", current_user.id)
    return _token_response(
        current_user, response, issuer, settings,
        message="Your password has been updated successfully",
    )
