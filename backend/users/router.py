# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Self-service account endpoints – view, update and delete one's own profile.

``updateMe`` writes only the fields allow-listed in ``ProfileUpdate``;
password changes must go through ``/updateMyPassword`` so that the current
password is checked and older sessions are invalidated.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from database import get_db
from core.access import get_current_user, get_optional_user
from core.config import Settings, get_settings
from core.errors import ValidationFailedError
from core.logger import logger
from core.security import expire_token_cookie
from models.user import User
from users.schemas import ProfileUpdate, UserResponse

router = APIRouter(prefix="/api/v1/users", tags=["users"])


# ---------------------------------------------------------------------------
# GET /api/v1/users/me  – who am I (anonymous allowed)
# ---------------------------------------------------------------------------


@router.get("/me")
def me(current_user: Optional[User] = Depends(get_optional_user)):
    """Return the caller's public profile, or ``user: null`` when anonymous."""
    if current_user is None:
        return {"success": True, "authenticated": False, "user": None}
    return {
        "success": True,
        "authenticated": True,
        "user": UserResponse.model_validate(current_user).model_dump(mode="json", by_alias=True),
    }


# ---------------------------------------------------------------------------
# PATCH /api/v1/users/updateMe
# ---------------------------------------------------------------------------


@router.patch("/updateMe")
def update_me(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update name, email or phone number.  Never touches the password."""
    if body.touches_password:
        raise ValidationFailedError(
            "This route is not for password updates, Please use /updateMyPassword"
        )

    changes = body.changes()
    for field, value in changes.items():
        setattr(current_user, field, value)
    # Email / phone collisions surface here as IntegrityError
    db.commit()
    db.refresh(current_user)

    logger.info("Profile updated for user_id=%d fields=%s", current_user.id, sorted(changes))
    return {
        "success": True,
        "message": "Information updated successfully",
        "user": UserResponse.model_validate(current_user).model_dump(mode="json", by_alias=True),
    }


# ---------------------------------------------------------------------------
# DELETE /api/v1/users/deleteMe
# ---------------------------------------------------------------------------


@router.delete("/deleteMe")
def delete_me(
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Remove the caller's account and every city they logged."""
    user_id = current_user.id
    db.delete(current_user)
    db.commit()
    expire_token_cookie(response, settings)

    logger.info("Account deleted user_id=%d", user_id)
    return {"success": True, "message": "Your account was successfully deleted"}
