from typing import Any

from fastapi import APIRouter, Depends, Query

from ..auth.deps import get_current_user
from ..config import RL_SWIPE_LIMIT, RL_WINDOW_SECONDS
from ..services import candidates, swipes
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()

RL_SWIPE = rate_limit_dependency("swipe", RL_SWIPE_LIMIT, RL_WINDOW_SECONDS)


@router.get("/discover")
def discover_candidates(
    theriotype: str | None = Query(default=None),
    min_age: str | None = Query(default=None, alias="minAge"),
    max_age: str | None = Query(default=None, alias="maxAge"),
    max_distance: str | None = Query(default=None, alias="maxDistance"),
    limit: str | None = Query(default=None),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> list[dict[str, Any]]:
    filters = candidates.parse_filters(
        theriotype=theriotype,
        min_age=min_age,
        max_age=max_age,
        max_distance=max_distance,
        limit=limit,
    )
    return candidates.list_candidates(str(current_user["id"]), filters)


@router.get("/discover/swipe-count")
def swipe_count(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, int]:
    return swipes.swipe_quota(str(current_user["id"]))


@router.post("/discover/swipe")
def swipe(
    payload: dict[str, Any],
    current_user: dict[str, Any] = Depends(get_current_user),
    _: None = RL_SWIPE,
) -> dict[str, Any]:
    result = swipes.record_swipe(str(current_user["id"]), payload.get("targetId"), payload.get("type"))
    return result.to_dict()
