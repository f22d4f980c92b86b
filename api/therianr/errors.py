from typing import Any


class TherianrError(Exception):
    """Base class for errors reported back to the caller."""

    status_code = 400

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)

    def to_body(self) -> dict[str, Any]:
        return {"error": self.detail}


class ValidationError(TherianrError):
    status_code = 400


class AuthorizationError(TherianrError):
    status_code = 403


class NotFoundError(TherianrError):
    status_code = 404


class ConflictError(TherianrError):
    status_code = 409


class QuotaExceededError(TherianrError):
    status_code = 429

    def __init__(self, limit: int, detail: str = "Daily swipe limit reached. Come back tomorrow!"):
        self.limit = limit
        super().__init__(detail)

    def to_body(self) -> dict[str, Any]:
        return {"error": self.detail, "code": "daily_quota_exceeded", "limit": self.limit}
