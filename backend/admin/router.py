# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Admin endpoints – user directory and role management.

Every endpoint in this router is guarded by ``require_admin``.  A request
that carries a valid JWT but belongs to a non-ADMIN role will receive 403
before any business logic runs.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from core.access import require_admin
from core.errors import NotFoundError, ValidationFailedError
from core.logger import logger
from models.user import Role, User
from admin.schemas import ChangeRoleRequest, UserDetailResponse, UserListResponse
from users.schemas import UserResponse

router = APIRouter(prefix="/api/v1/users", tags=["admin"])

_ROLE_CHOICES = ", ".join(role.value for role in Role)


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("No user found with that ID")
    return user


# ---------------------------------------------------------------------------
# GET /api/v1/users/allUsers  – list all users
# ---------------------------------------------------------------------------


@router.get("/allUsers", response_model=UserListResponse)
def list_users(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Return every user (no password data – handled by the schema)."""
    users = db.query(User).order_by(User.id).all()
    return UserListResponse(
        results=len(users),
        users=[UserResponse.model_validate(u) for u in users],
    )


# ---------------------------------------------------------------------------
# GET /api/v1/users/allUsers/{id}
# ---------------------------------------------------------------------------


@router.get("/allUsers/{user_id}", response_model=UserDetailResponse)
def get_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return UserDetailResponse(user=UserResponse.model_validate(_get_user(db, user_id)))


# ---------------------------------------------------------------------------
# PATCH /api/v1/users/updateRole/{id}  – promote or demote a user
# ---------------------------------------------------------------------------


@router.patch("/updateRole/{user_id}", response_model=UserDetailResponse)
def update_role(
    user_id: int,
    body: ChangeRoleRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Change the role of an existing user.  Guards:
    * Role value must be one of the persisted roles (GUEST, USER, ADMIN).
    * An admin cannot change their own role (prevents accidental self-lockout).
    """
    if not body.role:
        raise ValidationFailedError("Role is required")

    try:
        role = Role(body.role.strip().upper())
    except ValueError:
        raise ValidationFailedError(f"Invalid role! Please choose one of: {_ROLE_CHOICES}")

    if user_id == admin.id:
        raise ValidationFailedError("Cannot change your own role")

    target = _get_user(db, user_id)
    target.role = role
    db.commit()
    db.refresh(target)

    logger.info("Admin user_id=%d set role of user_id=%d to %s", admin.id, user_id, role.value)
    return UserDetailResponse(
        message="User role has been updated",
        user=UserResponse.model_validate(target),
    )
