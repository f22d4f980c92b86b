import logging
from dataclasses import dataclass

from .. import repo
from ..database import SessionLocal
from . import notifications
from .events import log_product_event
from .pairing import canonical_pair

logger = logging.getLogger(__name__)


@dataclass
class MatchOutcome:
    matched: bool
    match_id: str | None = None
    created: bool = False


def try_match(user_id: str, target_id: str) -> MatchOutcome:
    """Run after ``user_id``'s positive swipe on ``target_id`` has been committed.

    The pair's unique key decides which of two racing requests creates the
    match; only that one fans out notifications.
    """
    user_a, user_b = canonical_pair(user_id, target_id)
    with SessionLocal() as db:
        if not repo.has_positive_swipe(db, target_id, user_id):
            return MatchOutcome(matched=False)
        if repo.is_blocked_either_way(db, user_a, user_b):
            logger.info(f"[MATCH] pair {user_a}/{user_b} is blocked; not matching")
            return MatchOutcome(matched=False)

        row, created = repo.insert_match_if_absent(db, user_a, user_b)
        if row is None:
            return MatchOutcome(matched=False)
        match_id = str(row["id"])
        if created:
            log_product_event(
                db,
                event_name="match_created",
                user_id=user_id,
                properties={"match_id": match_id, "user_a_id": user_a, "user_b_id": user_b},
            )
        db.commit()

    if created:
        # a block committed while the insert was in flight would not have been visible to it
        with SessionLocal() as db:
            if repo.is_blocked_either_way(db, user_a, user_b):
                repo.delete_match_for_pair(db, user_a, user_b)
                db.commit()
                logger.info(f"[MATCH] pair {user_a}/{user_b} blocked during insert; retracted match_id={match_id}")
                return MatchOutcome(matched=False)
        logger.info(f"[MATCH] created match_id={match_id} users={user_a},{user_b}")
        notifications.dispatcher.notify_match(user_a, user_b)
    return MatchOutcome(matched=True, match_id=match_id, created=created)
