# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Shared pydantic base and field validators for request / response models."""

import re

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Indian mobile numbers, optionally prefixed with +91 / 0091 / 0
_PHONE_RE = re.compile(r"^(?:(?:\+|0{0,2})91(\s*[\-]\s*)?|[0]?)?[789]\d{9}$")


class ApiModel(BaseModel):
    """JSON uses camelCase; Python code and ORM attributes use snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def normalize_email(value):
    return value.strip().lower() if isinstance(value, str) else value


def validate_phone_number(value):
    if value is None:
        return value
    value = value.strip()
    if not _PHONE_RE.match(value):
        raise ValueError("Invalid phone number! Please provide a valid phone number")
    return value


def strip_name(value):
    return value.strip() if isinstance(value, str) else value
