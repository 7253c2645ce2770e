# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the city endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from core.schemas import ApiModel


class Position(ApiModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


# -- Requests --------------------------------------------------------------
# The owner is always the authenticated caller; a ``user`` key in the body
# is ignored.


class CityCreate(ApiModel):
    city_name: str = Field(min_length=1, max_length=255)
    country: str = Field(min_length=1, max_length=255)
    emoji: str = Field(min_length=1, max_length=16)
    date: datetime
    notes: str = Field(min_length=1)
    position: Position


# -- Responses -------------------------------------------------------------


class CityResponse(ApiModel):
    id: int
    user_id: int = Field(alias="user")
    city_name: str
    country: str
    emoji: str
    date: datetime
    notes: str
    position: Position
    created_at: Optional[datetime] = None


class CityDetailResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None
    city: CityResponse


# Public names accepted by ``fields`` on the list endpoint
CITY_FIELDS: List[str] = [
    "id", "user", "cityName", "country", "emoji", "date", "notes", "position", "createdAt",
]
