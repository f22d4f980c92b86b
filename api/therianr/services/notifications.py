"""
Match / super-like / message notification fan-out.

The request path only *submits* work here. Intents are resolved and handed to
the e-mail and push senders on a background thread pool; every failure is
logged and dropped so it can never affect the swipe or match that caused it.
"""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable

from .. import repo
from ..config import NOTIFY_WORKERS
from ..database import SessionLocal
from .email_templates import get_match_email, get_super_like_email
from .senders import EmailSender, PushSender

logger = logging.getLogger(__name__)

MATCH = "match"
SUPER_LIKE = "super_like"
MESSAGE = "message"


@dataclass(frozen=True)
class NotificationIntent:
    kind: str
    user_id: str
    username: str
    email: str | None
    push_tokens: tuple[str, ...]
    other_user_id: str
    other_display_name: str
    preview: str | None = None
    channels: tuple[str, ...] = field(default=("email", "push"))


def display_name(contact: dict[str, Any]) -> str:
    return str(contact.get("display_name") or contact.get("username") or "Someone")


def load_contact(user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        return repo.get_notification_contact(db, user_id)


def forget_push_tokens(tokens: list[str]) -> None:
    with SessionLocal() as db:
        removed = repo.delete_push_tokens(db, tokens)
        db.commit()
    logger.info("[PUSH] removed %s stale push tokens", removed)


def _intent(kind: str, recipient: dict[str, Any], other: dict[str, Any], **extra: Any) -> NotificationIntent:
    return NotificationIntent(
        kind=kind,
        user_id=str(recipient["id"]),
        username=str(recipient.get("username") or ""),
        email=recipient.get("email"),
        push_tokens=tuple(recipient.get("push_tokens") or ()),
        other_user_id=str(other["id"]),
        other_display_name=display_name(other),
        **extra,
    )


class NotificationDispatcher:
    def __init__(
        self,
        email_sender: EmailSender | None = None,
        push_sender: PushSender | None = None,
        executor: Executor | None = None,
        contact_loader: Callable[[str], dict[str, Any] | None] = load_contact,
    ) -> None:
        self.email_sender = email_sender or EmailSender()
        self.push_sender = push_sender or PushSender(on_invalid_tokens=forget_push_tokens)
        self.executor = executor or ThreadPoolExecutor(max_workers=NOTIFY_WORKERS, thread_name_prefix="notify")
        self.contact_loader = contact_loader

    # -- request path -------------------------------------------------------

    def notify_match(self, user_a: str, user_b: str) -> Future | None:
        return self._submit(self.deliver_match, user_a, user_b)

    def notify_super_like(self, sender_id: str, recipient_id: str) -> Future | None:
        return self._submit(self.deliver_super_like, sender_id, recipient_id)

    def notify_message(self, sender_id: str, recipient_id: str, preview: str) -> Future | None:
        return self._submit(self.deliver_message, sender_id, recipient_id, preview)

    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future | None:
        try:
            return self.executor.submit(self._guarded, fn, *args)
        except RuntimeError as exc:
            logger.error("[NOTIFY] could not schedule %s%s: %s", fn.__name__, args, exc)
            return None

    def _guarded(self, fn: Callable[..., Any], *args: Any) -> list[NotificationIntent]:
        try:
            return fn(*args)
        except Exception:
            logger.exception("[NOTIFY] %s%s failed", fn.__name__, args)
            return []

    # -- worker side --------------------------------------------------------

    def build_match_intents(self, user_a: str, user_b: str) -> list[NotificationIntent]:
        a = self.contact_loader(user_a)
        b = self.contact_loader(user_b)
        if not a or not b:
            logger.warning("[NOTIFY] match %s/%s: missing profile, nothing sent", user_a, user_b)
            return []
        return [_intent(MATCH, a, b), _intent(MATCH, b, a)]

    def build_super_like_intent(self, sender_id: str, recipient_id: str) -> NotificationIntent | None:
        sender = self.contact_loader(sender_id)
        recipient = self.contact_loader(recipient_id)
        if not sender or not recipient:
            logger.warning("[NOTIFY] super like %s->%s: missing profile, nothing sent", sender_id, recipient_id)
            return None
        return _intent(SUPER_LIKE, recipient, sender)

    def deliver_match(self, user_a: str, user_b: str) -> list[NotificationIntent]:
        intents = self.build_match_intents(user_a, user_b)
        for intent in intents:
            self.deliver(intent)
        return intents

    def deliver_super_like(self, sender_id: str, recipient_id: str) -> list[NotificationIntent]:
        intent = self.build_super_like_intent(sender_id, recipient_id)
        if intent is None:
            return []
        self.deliver(intent)
        return [intent]

    def deliver_message(self, sender_id: str, recipient_id: str, preview: str) -> list[NotificationIntent]:
        sender = self.contact_loader(sender_id)
        recipient = self.contact_loader(recipient_id)
        if not sender or not recipient:
            return []
        intent = _intent(MESSAGE, recipient, sender, preview=preview[:100], channels=("push",))
        self.deliver(intent)
        return [intent]

    def deliver(self, intent: NotificationIntent) -> dict[str, bool]:
        """Each channel is attempted independently; one failing never stops the other."""
        outcome: dict[str, bool] = {}
        if "email" in intent.channels:
            outcome["email"] = self._send_email(intent)
        if "push" in intent.channels:
            outcome["push"] = self._send_push(intent)
        return outcome

    def _send_email(self, intent: NotificationIntent) -> bool:
        if not intent.email:
            logger.warning("[NOTIFY] user %s has no email for %s notice", intent.user_id, intent.kind)
            return False
        if intent.kind == MATCH:
            subject, html = get_match_email(intent.username, intent.other_display_name)
        else:
            subject, html = get_super_like_email(intent.username, intent.other_display_name)
        try:
            return self.email_sender.send(intent.email, subject, html)
        except Exception:
            logger.exception("[NOTIFY] email %s notice to user %s failed", intent.kind, intent.user_id)
            return False

    def _send_push(self, intent: NotificationIntent) -> bool:
        if intent.kind == MATCH:
            heading, body = "It's a Match!", f"You and {intent.other_display_name} liked each other!"
            data = {"type": "match", "screen": "matches"}
        elif intent.kind == SUPER_LIKE:
            heading, body = "Super Like!", f"{intent.other_display_name} sent you a Super Like!"
            data = {"type": "super_like", "screen": "discover"}
        else:
            heading, body = intent.other_display_name, intent.preview or ""
            data = {"type": "message", "screen": "matches"}
        try:
            return self.push_sender.send(intent.push_tokens, heading, body, data)
        except Exception:
            logger.exception("[NOTIFY] push %s notice to user %s failed", intent.kind, intent.user_id)
            return False

    def shutdown(self, wait: bool = True) -> None:
        shutdown = getattr(self.executor, "shutdown", None)
        if shutdown:
            shutdown(wait=wait)


dispatcher = NotificationDispatcher()
