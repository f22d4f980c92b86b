from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..config import RL_BLOCK_LIMIT, RL_WINDOW_SECONDS
from ..services import blocks
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()

RL_BLOCK = rate_limit_dependency("block", RL_BLOCK_LIMIT, RL_WINDOW_SECONDS)


@router.post("/blocks")
def create_block(
    payload: dict[str, Any],
    current_user: dict[str, Any] = Depends(get_current_user),
    _: None = RL_BLOCK,
) -> dict[str, Any]:
    return blocks.block_user(str(current_user["id"]), payload.get("targetId"))


@router.delete("/blocks/{target_id}")
def remove_block(target_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return blocks.unblock_user(str(current_user["id"]), target_id)


@router.get("/blocks")
def get_blocks(current_user: dict[str, Any] = Depends(get_current_user)) -> list[dict[str, Any]]:
    return blocks.list_blocks(str(current_user["id"]))
