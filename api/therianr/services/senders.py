import logging
import random
import time
from typing import Any, Callable, Iterable

import requests

from ..config import (
    EMAIL_MAX_RETRIES,
    EMAIL_MIN_INTERVAL_MS,
    ONESIGNAL_API_KEY,
    ONESIGNAL_APP_ID,
    RESEND_API_KEY,
    RESEND_FROM_EMAIL,
    SENDER_TIMEOUT_SECONDS,
)
from .rate_limit import IntervalGate

logger = logging.getLogger(__name__)

RESEND_API_BASE = "https://api.resend.com"
ONESIGNAL_API_URL = "https://onesignal.com/api/v1/notifications"


class EmailSender:
    """Resend API client. One shared gate keeps us under the provider's request rate."""

    def __init__(
        self,
        api_key: str = RESEND_API_KEY,
        from_email: str = RESEND_FROM_EMAIL,
        *,
        gate: IntervalGate | None = None,
        max_retries: int = EMAIL_MAX_RETRIES,
        timeout: float = SENDER_TIMEOUT_SECONDS,
        session: Any = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = api_key
        self.from_email = from_email
        self.gate = gate or IntervalGate(EMAIL_MIN_INTERVAL_MS / 1000.0)
        self.max_retries = max_retries
        self.timeout = timeout
        self.http = session or requests
        self.sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def send(self, to: str, subject: str, html: str) -> bool:
        if not self.configured:
            logger.warning("[EMAIL] RESEND_API_KEY not set; skipping email send to %s", to)
            return False
        for attempt in range(self.max_retries + 1):
            self.gate.wait()
            resp = self.http.post(
                f"{RESEND_API_BASE}/emails",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={"from": self.from_email, "to": to, "subject": subject, "html": html},
                timeout=self.timeout,
            )
            if resp.status_code == 429 and attempt < self.max_retries:
                backoff = 5 + random.random() * 3
                logger.info("[EMAIL] rate limited by provider, retrying in %.1fs (attempt %s)", backoff, attempt + 1)
                self.sleep(backoff)
                continue
            if resp.status_code not in (200, 201):
                logger.error("[EMAIL] Resend email failed (%s): %s", resp.status_code, resp.text)
                return False
            return True
        return False


class PushSender:
    """OneSignal client. Tokens the provider rejects are handed to ``on_invalid_tokens``."""

    def __init__(
        self,
        app_id: str = ONESIGNAL_APP_ID,
        api_key: str = ONESIGNAL_API_KEY,
        *,
        on_invalid_tokens: Callable[[list[str]], None] | None = None,
        timeout: float = SENDER_TIMEOUT_SECONDS,
        session: Any = None,
    ) -> None:
        self.app_id = app_id
        self.api_key = api_key
        self.on_invalid_tokens = on_invalid_tokens
        self.timeout = timeout
        self.http = session or requests

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.api_key)

    def send(self, tokens: Iterable[str], heading: str, content: str, data: dict[str, str] | None = None) -> bool:
        player_ids = [t for t in tokens if t]
        if not self.configured:
            logger.warning("[PUSH] OneSignal not configured; skipping push to %s device(s)", len(player_ids))
            return False
        if not player_ids:
            logger.info("[PUSH] No player IDs to send notification to")
            return False

        resp = self.http.post(
            ONESIGNAL_API_URL,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Basic {self.api_key}",
            },
            json={
                "app_id": self.app_id,
                "include_player_ids": player_ids,
                "headings": {"en": heading},
                "contents": {"en": content},
                "data": data or {},
                "android_channel_id": "therianr_default",
                "priority": 10,
            },
            timeout=self.timeout,
        )
        try:
            result = resp.json()
        except ValueError:
            result = {}

        errors = result.get("errors") if isinstance(result, dict) else None
        invalid = errors.get("invalid_player_ids") if isinstance(errors, dict) else None
        if invalid:
            logger.info("[PUSH] Removing %s invalid player IDs", len(invalid))
            if self.on_invalid_tokens:
                self.on_invalid_tokens(list(invalid))

        if resp.status_code >= 400:
            logger.error("[PUSH] OneSignal API error (%s): %s", resp.status_code, result)
            return False
        logger.info("[PUSH] Notification sent to %s device(s)", len(player_ids) - len(invalid or []))
        return True
