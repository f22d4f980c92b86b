"""
Authentication dependencies for FastAPI.

The identity provider issues HS256 tokens whose subject is the user id.
Two transports are accepted:
1. Cookie-based session (web): httpOnly cookie carries the access token
2. Bearer token (mobile/API): Authorization header
"""

import logging
import uuid
from typing import Any

from fastapi import Cookie, Header, HTTPException
from pydantic import BaseModel

from .. import repo
from ..config import DEV_MODE
from ..database import SessionLocal
from .security import decode_access_token

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "therianr_session"


class AuthErrorDetail(BaseModel):
    message: str = "unauthorized"
    reason: str
    trace_id: str


class AuthError(Exception):
    """Raised when authentication fails with detailed reason."""

    def __init__(self, reason: str, detail: str = "unauthorized"):
        self.reason = reason
        self.detail = detail
        self.trace_id = str(uuid.uuid4())
        super().__init__(detail)


def _log_auth_failure(
    reason: str,
    trace_id: str,
    token_prefix: str | None = None,
    auth_source: str | None = None,
    user_id: str | None = None,
) -> None:
    log_data = {
        "trace_id": trace_id,
        "reason": reason,
        "auth_source": auth_source,
        "token_prefix": token_prefix,
        "resolved_user_id": user_id,
    }
    logger.warning(f"[AUTH_FAILURE] {log_data}")


def _auth_http_error(status_code: int, message: str, reason: str, trace_id: str) -> HTTPException:
    if DEV_MODE:
        detail: dict[str, Any] = AuthErrorDetail(message=message, reason=reason, trace_id=trace_id).model_dump()
    else:
        detail = {"message": message, "trace_id": trace_id}
    return HTTPException(status_code=status_code, detail=detail)


def _extract_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthError(reason="missing_token", detail="Missing Authorization header")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError(reason="malformed_token", detail="Invalid Authorization header")
    return parts[1].strip()


def load_user(user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        return repo.get_user(db, user_id)


def _validate_token_and_get_user(token: str, trace_id: str, auth_source: str) -> dict[str, Any]:
    token_prefix = token[:8] + "..." if len(token) > 8 else token

    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        if e.status_code >= 500:
            raise
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        _log_auth_failure(reason, trace_id, token_prefix, auth_source)
        raise _auth_http_error(401, "unauthorized", reason, trace_id)

    user_id = str(payload.get("sub") or "")
    if not user_id:
        _log_auth_failure("token_missing_subject", trace_id, token_prefix, auth_source)
        raise _auth_http_error(401, "unauthorized", "token_missing_subject", trace_id)

    user = load_user(user_id)
    if not user:
        _log_auth_failure("token_user_not_found", trace_id, token_prefix, auth_source, user_id)
        raise _auth_http_error(401, "unauthorized", "token_user_not_found", trace_id)

    if user.get("is_banned"):
        _log_auth_failure("account_banned", trace_id, token_prefix, auth_source, user_id)
        raise _auth_http_error(403, "Account banned", "account_banned", trace_id)

    logger.debug(f"[auth] SUCCESS user_id={user_id} source={auth_source}")
    return {
        "id": str(user["id"]),
        "username": user.get("username"),
        "display_name": user.get("display_name"),
    }


def get_current_user(
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """Resolve the caller from the session cookie, falling back to a bearer token."""
    trace_id = str(uuid.uuid4())

    if session_token:
        return _validate_token_and_get_user(session_token, trace_id, "cookie")

    if authorization:
        try:
            token = _extract_bearer(authorization)
        except AuthError as e:
            _log_auth_failure(e.reason, e.trace_id, auth_source="bearer")
            raise _auth_http_error(401, e.detail, e.reason, e.trace_id)
        return _validate_token_and_get_user(token, trace_id, "bearer")

    _log_auth_failure("missing_token", trace_id, auth_source="none")
    raise _auth_http_error(401, "Authentication required", "missing_token", trace_id)
