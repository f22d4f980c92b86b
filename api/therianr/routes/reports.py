from typing import Any

from fastapi import APIRouter, Depends

from .. import repo
from ..auth.deps import get_current_user
from ..config import RL_REPORT_LIMIT, RL_WINDOW_SECONDS
from ..database import SessionLocal
from ..errors import NotFoundError, ValidationError
from ..services.events import log_product_event
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()

VALID_REASONS = ("zoophilia", "harassment", "minor", "fake", "spam", "other")
MAX_DETAILS_LENGTH = 1000

RL_REPORT = rate_limit_dependency("report", RL_REPORT_LIMIT, RL_WINDOW_SECONDS)


@router.post("/reports")
def create_report(
    payload: dict[str, Any],
    current_user: dict[str, Any] = Depends(get_current_user),
    _: None = RL_REPORT,
) -> dict[str, Any]:
    user_id = str(current_user["id"])
    target_id = str(payload.get("targetId") or "").strip()
    reason = str(payload.get("reason") or "").strip().lower()
    details_raw = payload.get("details")
    details = str(details_raw).strip() if details_raw is not None else None

    if reason not in VALID_REASONS:
        raise ValidationError(f"Invalid reason. Must be one of: {', '.join(VALID_REASONS)}")
    if not target_id:
        raise ValidationError("targetId required")
    if target_id == user_id:
        raise ValidationError("Cannot report yourself")
    if details and len(details) > MAX_DETAILS_LENGTH:
        raise ValidationError(f"details must be {MAX_DETAILS_LENGTH} characters or fewer")

    with SessionLocal() as db:
        if not repo.get_user(db, target_id):
            raise NotFoundError("Target user not found")
        report = repo.create_report(db, user_id, target_id, reason, details or None)
        log_product_event(
            db,
            event_name="report_created",
            user_id=user_id,
            properties={"target_id": target_id, "reason": reason},
        )
        db.commit()
    return {"success": True, "id": str(report["id"])}
