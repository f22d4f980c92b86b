import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Any

from .. import repo
from ..config import DISCOVER_DEFAULT_LIMIT, DISCOVER_MAX_LIMIT, MINIMUM_AGE
from ..database import SessionLocal
from .clock import calendar_age, day_after, local_today, years_before

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
MAX_REASONABLE_AGE = 120


@dataclass
class CandidateFilters:
    theriotype: str | None = None
    min_age: int | None = None
    max_age: int | None = None
    max_distance_km: float | None = None
    limit: int = DISCOVER_DEFAULT_LIMIT


def _parse_int(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


def _parse_float(raw: Any) -> float | None:
    if raw is None or raw == "":
        return None
    try:
        value = float(str(raw).strip())
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def parse_filters(
    theriotype: Any = None,
    min_age: Any = None,
    max_age: Any = None,
    max_distance: Any = None,
    limit: Any = None,
) -> CandidateFilters:
    """Clamp or drop bad values instead of rejecting the request."""
    species = str(theriotype).strip() if theriotype is not None else ""

    lo = _parse_int(min_age)
    if lo is not None:
        lo = min(max(lo, MINIMUM_AGE), MAX_REASONABLE_AGE)
    hi = _parse_int(max_age)
    if hi is not None and hi < (lo if lo is not None else MINIMUM_AGE):
        hi = None

    distance = _parse_float(max_distance)
    if distance is not None and distance <= 0:
        distance = None

    size = _parse_int(limit)
    if size is None or size <= 0:
        size = DISCOVER_DEFAULT_LIMIT
    size = min(size, DISCOVER_MAX_LIMIT)

    return CandidateFilters(
        theriotype=species or None,
        min_age=lo,
        max_age=hi,
        max_distance_km=distance,
        limit=size,
    )


def birth_date_bounds(today: date, min_age: int | None = None, max_age: int | None = None) -> tuple[date, date | None]:
    """Translate an age range into (born_on_or_before, born_on_or_after).

    The platform floor always applies; the tighter bound wins.
    """
    effective_min = max(MINIMUM_AGE, min_age or MINIMUM_AGE)
    born_on_or_before = years_before(today, effective_min)
    born_on_or_after = None
    if max_age is not None and max_age >= effective_min:
        born_on_or_after = day_after(years_before(today, max_age + 1))
    return born_on_or_before, born_on_or_after


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = math.sin(d_lat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    a = min(1.0, a)  # rounding near antipodes
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _coordinates(row: dict[str, Any] | None) -> tuple[float, float] | None:
    if not row or row.get("latitude") is None or row.get("longitude") is None:
        return None
    return float(row["latitude"]), float(row["longitude"])


def public_profile(
    row: dict[str, Any],
    *,
    photos: list[dict[str, Any]],
    theriotypes: list[str],
    today: date,
    origin: tuple[float, float] | None = None,
) -> dict[str, Any]:
    """Shape a user row for other users; credentials, e-mail and raw coordinates never leave."""
    birth_date = row.get("birth_date")
    here = _coordinates(row)
    distance = None
    if origin and here:
        distance = round(haversine_km(origin[0], origin[1], here[0], here[1]), 1)
    return {
        "id": str(row["id"]),
        "username": row.get("username"),
        "displayName": row.get("display_name") or row.get("username"),
        "bio": row.get("bio"),
        "pronouns": row.get("pronouns"),
        "location": row.get("location"),
        "birthDate": birth_date.isoformat() if birth_date else None,
        "age": calendar_age(birth_date, today) if birth_date else None,
        "theriotypes": theriotypes,
        "photos": photos,
        "createdAt": row.get("created_at"),
        "distanceKm": distance,
    }


def list_candidates(user_id: str, filters: CandidateFilters) -> list[dict[str, Any]]:
    today = local_today()
    born_on_or_before, born_on_or_after = birth_date_bounds(today, filters.min_age, filters.max_age)
    with SessionLocal() as db:
        me = repo.get_user(db, user_id)
        origin = _coordinates(me)
        excluded = repo.list_excluded_user_ids(db, user_id)
        excluded.add(str(user_id))
        rows = repo.list_candidates(
            db,
            excluded_ids=sorted(excluded),
            born_on_or_before=born_on_or_before,
            born_on_or_after=born_on_or_after,
            theriotype=filters.theriotype,
            origin=origin,
            max_distance_km=filters.max_distance_km,
            limit=filters.limit,
        )
        ids = [str(r["id"]) for r in rows]
        photos = repo.list_photos(db, ids)
        theriotypes = repo.list_theriotypes(db, ids)

    logger.debug(f"[DISCOVER] user_id={user_id} excluded={len(excluded)} returned={len(rows)}")
    return [
        public_profile(
            r,
            photos=photos.get(str(r["id"]), []),
            theriotypes=theriotypes.get(str(r["id"]), []),
            today=today,
            origin=origin,
        )
        for r in rows[: filters.limit]
    ]
