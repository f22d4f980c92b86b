from typing import Any

from fastapi import APIRouter, Depends, Query

from ..auth.deps import get_current_user
from ..config import RL_MESSAGE_LIMIT, RL_WINDOW_SECONDS
from ..services import matches
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()

RL_MESSAGE = rate_limit_dependency("match_message", RL_MESSAGE_LIMIT, RL_WINDOW_SECONDS)


@router.get("/matches")
def list_matches(current_user: dict[str, Any] = Depends(get_current_user)) -> list[dict[str, Any]]:
    return matches.list_matches(str(current_user["id"]))


@router.delete("/matches/{match_id}")
def delete_match(match_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return matches.unmatch(str(current_user["id"]), match_id)


@router.get("/matches/{match_id}/messages")
def get_messages(
    match_id: str,
    limit: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> list[dict[str, Any]]:
    return matches.list_messages(str(current_user["id"]), match_id, limit=limit, cursor=cursor)


@router.post("/matches/{match_id}/messages")
def post_message(
    match_id: str,
    payload: dict[str, Any],
    current_user: dict[str, Any] = Depends(get_current_user),
    _: None = RL_MESSAGE,
) -> dict[str, Any]:
    return matches.send_message(str(current_user["id"]), match_id, payload.get("content"))


@router.put("/matches/{match_id}/messages/read")
def read_messages(match_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return matches.mark_read(str(current_user["id"]), match_id)
