# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth endpoints."""

from typing import Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from core.schemas import ApiModel, normalize_email, strip_name, validate_phone_number
from users.schemas import UserResponse


class _NewPassword(ApiModel):
    """A freshly chosen password: 8-16 characters, typed twice."""

    password: str = Field(min_length=8, max_length=16)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords are not same")
        return self


# -- Requests --------------------------------------------------------------


class SignupRequest(_NewPassword):
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    phone_number: str

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


class LoginRequest(ApiModel):
    email: str
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, value):
        return normalize_email(value)


class ForgotPasswordRequest(ApiModel):
    email: str

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, value):
        return normalize_email(value)


class ResetPasswordRequest(_NewPassword):
    pass


class UpdatePasswordRequest(_NewPassword):
    current_password: str


# -- Responses -------------------------------------------------------------


class MessageResponse(ApiModel):
    success: bool = True
    message: str


class TokenResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None
    token: str
    user: UserResponse
