# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for user profiles."""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from core.schemas import ApiModel, normalize_email, strip_name, validate_phone_number
from models.user import Role


# -- Requests --------------------------------------------------------------

# The only columns a user may change about themselves through /updateMe.
PROFILE_FIELDS = frozenset({"first_name", "last_name", "email", "phone_number"})


class ProfileUpdate(ApiModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    # Accepted only so that they can be refused with a pointer to the
    # password-change route; never written.
    password: Optional[str] = None
    confirm_password: Optional[str] = None

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, value):
        return strip_name(value)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, value):
        return normalize_email(value)

    @field_validator("phone_number")
    @classmethod
    def check_phone(cls, value):
        return validate_phone_number(value)

    @property
    def touches_password(self) -> bool:
        return self.password is not None or self.confirm_password is not None

    def changes(self) -> dict:
        """Allow-listed, explicitly supplied, non-null fields."""
        return self.model_dump(include=set(PROFILE_FIELDS), exclude_unset=True, exclude_none=True)


# -- Responses -------------------------------------------------------------
# No password hash, reset token or reset expiry – ever.


class UserResponse(ApiModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone_number: str
    role: Role
    created_at: Optional[datetime] = None
