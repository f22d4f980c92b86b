import logging
from typing import Any

from .. import repo
from ..database import SessionLocal
from ..errors import ConflictError, NotFoundError, ValidationError
from .events import log_product_event
from .pairing import canonical_pair

logger = logging.getLogger(__name__)


def block_user(blocker_id: str, blocked_id: str) -> dict[str, Any]:
    blocked_id = str(blocked_id or "").strip()
    if not blocked_id:
        raise ValidationError("targetId required")
    if blocked_id == str(blocker_id):
        raise ValidationError("Cannot block yourself")

    user_a, user_b = canonical_pair(blocker_id, blocked_id)
    with SessionLocal() as db:
        if not repo.get_user(db, blocked_id):
            raise NotFoundError("User not found")
        inserted = repo.insert_block(db, blocker_id, blocked_id)
        # A match is retracted even when the block row already existed.
        removed = repo.delete_match_for_pair(db, user_a, user_b)
        if inserted:
            log_product_event(
                db,
                event_name="block_created",
                user_id=blocker_id,
                properties={"blocked_id": blocked_id, "match_removed": removed > 0},
            )
        db.commit()

    if removed:
        logger.info(f"[BLOCK] {blocker_id} blocked {blocked_id}; match retracted")
    if not inserted:
        raise ConflictError("User already blocked")
    return {"success": True, "matchRemoved": removed > 0}


def unblock_user(blocker_id: str, blocked_id: str) -> dict[str, Any]:
    with SessionLocal() as db:
        removed = repo.delete_block(db, blocker_id, str(blocked_id or "").strip())
        db.commit()
    if not removed:
        raise NotFoundError("Block not found")
    return {"success": True}


def list_blocks(blocker_id: str) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = repo.list_blocks(db, blocker_id)
    return [
        {
            "id": str(r["id"]),
            "blockedUser": {
                "id": str(r["blocked_id"]),
                "username": r.get("username"),
                "displayName": r.get("display_name"),
            },
            "createdAt": r.get("created_at"),
        }
        for r in rows
    ]
