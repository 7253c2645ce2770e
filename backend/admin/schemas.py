# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the admin endpoints."""

from typing import List, Optional

from core.schemas import ApiModel
from users.schemas import UserResponse


# -- Requests --------------------------------------------------------------


class ChangeRoleRequest(ApiModel):
    role: Optional[str] = None  # GUEST, USER or ADMIN (case-insensitive)


# -- Responses -------------------------------------------------------------


class UserListResponse(ApiModel):
    success: bool = True
    results: int
    users: List[UserResponse]


class UserDetailResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None
    user: UserResponse
