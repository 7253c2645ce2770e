# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
City endpoints – the caller's trip log.

Security invariants enforced by every handler
---------------------------------------------
* JWT is required on every endpoint (router-level ``get_current_user``).
* Lists only ever contain the caller's own cities.
* Every item operation first calls ``_own_city``, which loads the row and
  asserts that ``city.user_id == current_user.id``.  Guessing another
  user's city ID gets 403.
* Updating a city is not supported: PATCH always answers 501.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from core.access import get_current_user
from core.errors import ForbiddenError, NotFoundError, NotImplementedFeatureError
from core.logger import logger
from core.query import QueryShaper, project
from models.city import City
from models.user import User
from cities.schemas import CITY_FIELDS, CityCreate, CityDetailResponse, CityResponse

router = APIRouter(
    prefix="/api/v1/cities",
    tags=["cities"],
    dependencies=[Depends(get_current_user)],
)

# Public field name → column, for filtering and sorting
_CITY_COLUMNS = {
    "id": City.id,
    "cityName": City.city_name,
    "country": City.country,
    "emoji": City.emoji,
    "date": City.date,
    "notes": City.notes,
    "lat": City.lat,
    "lng": City.lng,
    "createdAt": City.created_at,
}

# ---------------------------------------------------------------------------
# Ownership helper
# ---------------------------------------------------------------------------


def _own_city(city_id: int, user_id: int, db: Session) -> City:
    """
    Load a City by ID and verify it belongs to *user_id*.

    Raises 404 if the city does not exist, 403 if it belongs to someone else.
    """
    city = db.get(City, city_id)
    if not city:
        raise NotFoundError(f"No city found with this ID => {city_id}")
    if city.user_id != user_id:
        raise ForbiddenError("Access denied")
    return city


# ---------------------------------------------------------------------------
# GET /api/v1/cities  – list the current user's cities
# ---------------------------------------------------------------------------


@router.get("")
def list_cities(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Filter / sort / project / paginate the caller's cities, e.g.
    ``?country=Portugal&sort=-date&fields=cityName,date&page=1&limit=10``.
    """
    shaper = QueryShaper(
        db.query(City).filter(City.user_id == current_user.id),
        _CITY_COLUMNS,
        request.query_params.multi_items(),
        projectable=CITY_FIELDS,
    )
    fields = shaper.fields
    cities = shaper.filter().sort().paginate().all()

    rows = [
        project(CityResponse.model_validate(c).model_dump(mode="json", by_alias=True), fields)
        for c in cities
    ]
    return {"success": True, "results": len(rows), "cities": rows}


# ---------------------------------------------------------------------------
# POST /api/v1/cities  – log a new city
# ---------------------------------------------------------------------------


@router.post("", response_model=CityDetailResponse, status_code=status.HTTP_201_CREATED)
def create_city(
    body: CityCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    city = City(
        user_id=current_user.id,
        city_name=body.city_name,
        country=body.country,
        emoji=body.emoji,
        date=body.date,
        notes=body.notes,
        lat=body.position.lat,
        lng=body.position.lng,
    )
    db.add(city)
    db.commit()
    db.refresh(city)

    logger.info("City %d added by user_id=%d", city.id, current_user.id)
    return CityDetailResponse(message="City added", city=CityResponse.model_validate(city))


# ---------------------------------------------------------------------------
# GET /api/v1/cities/{id}
# ---------------------------------------------------------------------------


@router.get("/{city_id}", response_model=CityDetailResponse)
def get_city(
    city_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    city = _own_city(city_id, current_user.id, db)
    return CityDetailResponse(city=CityResponse.model_validate(city))


# ---------------------------------------------------------------------------
# PATCH /api/v1/cities/{id}  – intentionally unsupported
# ---------------------------------------------------------------------------


@router.patch("/{city_id}")
def update_city(city_id: str):
    """Always 501, whatever the id or payload."""
    raise NotImplementedFeatureError(
        "The request method is not supported by the server and cannot be handled"
    )


# ---------------------------------------------------------------------------
# DELETE /api/v1/cities/{id}
# ---------------------------------------------------------------------------


@router.delete("/{city_id}")
def delete_city(
    city_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    city = _own_city(city_id, current_user.id, db)
    db.delete(city)
    db.commit()

    logger.info("City %d deleted by user_id=%d", city_id, current_user.id)
    return {"success": True, "message": "City deleted!"}
