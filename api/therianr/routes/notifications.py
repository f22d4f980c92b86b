from typing import Any

from fastapi import APIRouter, Depends

from .. import repo
from ..auth.deps import get_current_user
from ..database import SessionLocal
from ..errors import ValidationError

router = APIRouter()

PUSH_PLATFORMS = ("android", "ios", "web")


@router.post("/notifications/register-token")
def register_token(payload: dict[str, Any], current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    token = str(payload.get("token") or "").strip()
    platform = str(payload.get("platform") or "").strip().lower()
    if not token or not platform:
        raise ValidationError("Token and platform are required")
    if platform not in PUSH_PLATFORMS:
        raise ValidationError("Invalid platform. Must be android, ios, or web")

    with SessionLocal() as db:
        repo.upsert_push_token(db, str(current_user["id"]), token, platform)
        db.commit()
    return {"success": True}


@router.post("/notifications/remove-token")
def remove_token(payload: dict[str, Any], current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    token = str(payload.get("token") or "").strip()
    if not token:
        raise ValidationError("Token is required")

    with SessionLocal() as db:
        repo.delete_push_token(db, str(current_user["id"]), token)
        db.commit()
    return {"success": True}
