import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .. import repo
from ..config import DAILY_SWIPE_LIMIT
from ..database import SessionLocal
from ..errors import NotFoundError, QuotaExceededError, ValidationError
from . import clock, matching, notifications
from .events import log_product_event

logger = logging.getLogger(__name__)

SWIPE_TYPES = ("like", "pass", "super_like")
POSITIVE_SWIPE_TYPES = frozenset(repo.POSITIVE_SWIPE_TYPES)


@dataclass
class SwipeResult:
    matched: bool
    match_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.matched:
            return {"matched": True, "matchId": self.match_id}
        return {"matched": False}


def swipe_quota(user_id: str, now: datetime | None = None) -> dict[str, int]:
    since = clock.start_of_local_day(now or clock.now_utc())
    with SessionLocal() as db:
        used = repo.count_swipes_since(db, user_id, since)
    return {"used": used, "remaining": max(0, DAILY_SWIPE_LIMIT - used), "limit": DAILY_SWIPE_LIMIT}


def record_swipe(swiper_id: str, target_id: str, swipe_type: str) -> SwipeResult:
    swipe_type = str(swipe_type or "").strip().lower()
    target_id = str(target_id or "").strip()
    if swipe_type not in SWIPE_TYPES:
        raise ValidationError("Invalid swipe type")
    if not target_id:
        raise ValidationError("targetId required")
    if target_id == str(swiper_id):
        raise ValidationError("Cannot swipe on yourself")

    since = clock.start_of_local_day(clock.now_utc())
    with SessionLocal() as db:
        used = repo.count_swipes_since(db, swiper_id, since)
        if used >= DAILY_SWIPE_LIMIT:
            logger.info(f"[SWIPE] quota exhausted user_id={swiper_id} used={used}")
            raise QuotaExceededError(DAILY_SWIPE_LIMIT)

        target = repo.get_user(db, target_id)
        # Blocked and banned targets look exactly like missing ones.
        if not target or target.get("is_banned") or repo.is_blocked_either_way(db, swiper_id, target_id):
            raise NotFoundError("Target user not found")

        row = repo.upsert_swipe(db, swiper_id, target_id, swipe_type)
        log_product_event(
            db,
            event_name="swipe_recorded",
            user_id=swiper_id,
            properties={"target_id": target_id, "type": swipe_type, "previous_type": row.get("previous_type")},
        )
        db.commit()

    if swipe_type == "super_like" and row.get("previous_type") != "super_like":
        notifications.dispatcher.notify_super_like(swiper_id, target_id)

    if swipe_type not in POSITIVE_SWIPE_TYPES:
        return SwipeResult(matched=False)
    outcome = matching.try_match(swiper_id, target_id)
    return SwipeResult(matched=outcome.matched, match_id=outcome.match_id)
