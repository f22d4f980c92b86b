import logging
from typing import Any

from .. import repo
from ..database import SessionLocal
from ..errors import AuthorizationError, NotFoundError, ValidationError
from . import notifications
from .candidates import public_profile
from .clock import local_today
from .events import log_product_event

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000
DEFAULT_MESSAGE_PAGE = 50
MAX_MESSAGE_PAGE = 100


def _message(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(row["id"]),
        "matchId": str(row["match_id"]),
        "senderId": str(row["sender_id"]),
        "content": row["content"],
        "createdAt": row.get("created_at"),
        "readAt": row.get("read_at"),
    }


def _require_participant(db, match_id: str, user_id: str, action: str) -> dict[str, Any]:
    match = repo.get_match_by_id(db, match_id)
    if not match:
        raise NotFoundError("Match not found")
    if str(user_id) not in {str(match["user_a_id"]), str(match["user_b_id"])}:
        raise AuthorizationError(f"Not authorized to {action}")
    return match


def _other_party(match: dict[str, Any], user_id: str) -> str:
    a, b = str(match["user_a_id"]), str(match["user_b_id"])
    return b if str(user_id) == a else a


def list_matches(user_id: str) -> list[dict[str, Any]]:
    today = local_today()
    with SessionLocal() as db:
        rows = repo.list_matches_for_user(db, user_id)
        ids = [str(r["id"]) for r in rows]
        photos = repo.list_photos(db, ids)
        theriotypes = repo.list_theriotypes(db, ids)

    result = []
    for r in rows:
        other_id = str(r["id"])
        last_message = None
        if r.get("last_message_id"):
            last_message = {
                "id": str(r["last_message_id"]),
                "matchId": str(r["match_id"]),
                "senderId": str(r["last_message_sender_id"]),
                "content": r["last_message_content"],
                "createdAt": r["last_message_created_at"],
                "readAt": r.get("last_message_read_at"),
            }
        result.append(
            {
                "matchId": str(r["match_id"]),
                "createdAt": r["match_created_at"],
                "otherUser": public_profile(
                    r,
                    photos=photos.get(other_id, []),
                    theriotypes=theriotypes.get(other_id, []),
                    today=today,
                ),
                "lastMessage": last_message,
                "unreadCount": int(r.get("unread_count") or 0),
            }
        )

    result.sort(key=lambda m: (m["lastMessage"] or {}).get("createdAt") or m["createdAt"], reverse=True)
    return result


def unmatch(user_id: str, match_id: str) -> dict[str, Any]:
    with SessionLocal() as db:
        match = _require_participant(db, match_id, user_id, "delete this match")
        repo.delete_match(db, match_id)
        log_product_event(
            db,
            event_name="unmatched",
            user_id=user_id,
            properties={"match_id": match_id, "other_user_id": _other_party(match, user_id)},
        )
        db.commit()
    logger.info(f"[MATCH] user_id={user_id} removed match_id={match_id}")
    return {"success": True}


def list_messages(user_id: str, match_id: str, *, limit: Any = None, cursor: str | None = None) -> list[dict[str, Any]]:
    try:
        size = int(limit) if limit not in (None, "") else DEFAULT_MESSAGE_PAGE
    except (TypeError, ValueError):
        size = DEFAULT_MESSAGE_PAGE
    if size <= 0:
        size = DEFAULT_MESSAGE_PAGE
    size = min(size, MAX_MESSAGE_PAGE)

    with SessionLocal() as db:
        _require_participant(db, match_id, user_id, "view these messages")
        rows = repo.list_messages(db, match_id, cursor=cursor, limit=size)
    # oldest -> newest for display
    return [_message(r) for r in reversed(rows)]


def send_message(user_id: str, match_id: str, content: Any) -> dict[str, Any]:
    body = str(content or "").strip()
    if not body:
        raise ValidationError("Message content cannot be empty")
    if len(body) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message too long. Maximum {MAX_MESSAGE_LENGTH} characters")

    with SessionLocal() as db:
        match = _require_participant(db, match_id, user_id, "send messages in this match")
        row = repo.create_message(db, match_id, user_id, body)
        db.commit()

    notifications.dispatcher.notify_message(user_id, _other_party(match, user_id), body)
    return _message(row)


def mark_read(user_id: str, match_id: str) -> dict[str, Any]:
    with SessionLocal() as db:
        _require_participant(db, match_id, user_id, "update this match")
        count = repo.mark_messages_read(db, match_id, user_id)
        db.commit()
    return {"success": True, "count": count}
