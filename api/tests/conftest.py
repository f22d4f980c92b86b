import threading
import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from therianr import repo
from therianr.auth import deps as auth_deps
from therianr.services import blocks, candidates, clock, matches, matching, notifications, rate_limit, swipes
from therianr.services.pairing import canonical_pair

FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class _DummyResult:
    def __init__(self, rowcount=0):
        self.rowcount = rowcount

    def mappings(self):
        return self

    def first(self):
        return None

    def all(self):
        return []

    def scalar(self):
        return None


class _DummySession:
    """Stands in for a SQLAlchemy session; only product events reach ``execute``."""

    def __init__(self, store):
        self.store = store

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, stmt, params=None):
        if params and "event_name" in params:
            self.store.events.append(params)
        return _DummyResult()

    def commit(self):
        self.store.commits += 1

    def rollback(self):
        return None

    def close(self):
        return None


class RecordingDispatcher:
    def __init__(self):
        self.calls = []

    def notify_match(self, user_a, user_b):
        self.calls.append(("match", user_a, user_b))

    def notify_super_like(self, sender_id, recipient_id):
        self.calls.append(("super_like", sender_id, recipient_id))

    def notify_message(self, sender_id, recipient_id, preview):
        self.calls.append(("message", sender_id, recipient_id, preview))

    def kinds(self):
        return [c[0] for c in self.calls]

    def shutdown(self, wait=True):
        return None


class FakeStore:
    """In-memory tables behind the same function names as ``therianr.repo``."""

    def __init__(self):
        self.now = FIXED_NOW
        self.users = {}
        self.photos = {}
        self.theriotypes = {}
        self.swipes = {}
        self.matches = {}
        self.blocks = {}
        self.messages = []
        self.reports = []
        self.push_tokens = {}
        self.events = []
        self.commits = 0
        self.candidate_queries = []
        self._lock = threading.RLock()
        self._seq = 0

    # -- fixtures ------------------------------------------------------------

    def add_user(
        self,
        user_id,
        *,
        age=25,
        birth_date=None,
        photos=1,
        theriotypes=("wolf",),
        latitude=52.52,
        longitude=13.405,
        is_banned=False,
        email=None,
        created_offset_minutes=0,
    ):
        today = self.now.date()
        if birth_date is None:
            birth_date = date(today.year - age, 1, 1)
        self.users[user_id] = {
            "id": user_id,
            "username": user_id.lower(),
            "display_name": f"{user_id} Display",
            "email": email if email is not None else f"{user_id.lower()}@example.test",
            "bio": f"hi from {user_id}",
            "pronouns": "they/them",
            "location": "Berlin",
            "birth_date": birth_date,
            "latitude": latitude,
            "longitude": longitude,
            "is_banned": is_banned,
            "created_at": self.now - timedelta(minutes=created_offset_minutes),
        }
        self.photos[user_id] = [
            {"id": f"{user_id}-p{i}", "url": f"https://cdn.test/{user_id}/{i}.jpg", "order": i, "visible": True}
            for i in range(photos)
        ]
        self.theriotypes[user_id] = list(theriotypes)
        return self.users[user_id]

    def add_swipe(self, swiper_id, target_id, swipe_type="like", created_at=None):
        stamp = created_at or self.now
        self.swipes[(swiper_id, target_id)] = {
            "id": str(uuid.uuid4()),
            "swiper_id": swiper_id,
            "target_id": target_id,
            "type": swipe_type,
            "created_at": stamp,
            "updated_at": stamp,
        }

    def add_match(self, user_x, user_y, created_at=None):
        a, b = canonical_pair(user_x, user_y)
        row = {"id": str(uuid.uuid4()), "user_a_id": a, "user_b_id": b, "created_at": created_at or self.now}
        self.matches[(a, b)] = row
        return row

    def event_names(self):
        return [e["event_name"] for e in self.events]

    def _tick(self):
        with self._lock:
            self._seq += 1
            return self.now + timedelta(seconds=self._seq)

    # -- users ---------------------------------------------------------------

    def get_user(self, db, user_id):
        user = self.users.get(str(user_id))
        return dict(user) if user else None

    def get_notification_contact(self, db, user_id):
        user = self.get_user(db, user_id)
        if not user:
            return None
        user["push_tokens"] = [token for (uid, token) in self.push_tokens if uid == user_id]
        return user

    def list_photos(self, db, user_ids):
        return {
            uid: [{"id": p["id"], "url": p["url"], "order": p["order"]} for p in self.photos.get(uid, []) if p["visible"]]
            for uid in user_ids
            if self.photos.get(uid)
        }

    def list_theriotypes(self, db, user_ids):
        return {uid: list(self.theriotypes[uid]) for uid in user_ids if self.theriotypes.get(uid)}

    # -- discovery -----------------------------------------------------------

    def list_excluded_user_ids(self, db, user_id):
        out = {target for (swiper, target) in self.swipes if swiper == user_id}
        for blocker, blocked in self.blocks:
            if blocker == user_id:
                out.add(blocked)
            if blocked == user_id:
                out.add(blocker)
        return out

    def list_candidates(
        self, db, *, excluded_ids, born_on_or_before, born_on_or_after, theriotype, origin, max_distance_km, limit
    ):
        self.candidate_queries.append(
            {
                "excluded_ids": list(excluded_ids),
                "born_on_or_before": born_on_or_before,
                "born_on_or_after": born_on_or_after,
                "theriotype": theriotype,
                "origin": origin,
                "max_distance_km": max_distance_km,
                "limit": limit,
            }
        )
        excluded = set(excluded_ids)
        rows = []
        for user in self.users.values():
            if user["id"] in excluded or user["is_banned"]:
                continue
            if not any(p["visible"] for p in self.photos.get(user["id"], [])):
                continue
            if user["birth_date"] > born_on_or_before:
                continue
            if born_on_or_after is not None and user["birth_date"] < born_on_or_after:
                continue
            if theriotype and not any(theriotype.lower() in s.lower() for s in self.theriotypes.get(user["id"], [])):
                continue
            if origin is not None and max_distance_km is not None and user["latitude"] is not None and user["longitude"] is not None:
                if candidates.haversine_km(origin[0], origin[1], user["latitude"], user["longitude"]) > max_distance_km:
                    continue
            rows.append(dict(user))
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows[:limit]

    # -- swipes --------------------------------------------------------------

    def count_swipes_since(self, db, swiper_id, since):
        return sum(1 for s in list(self.swipes.values()) if s["swiper_id"] == swiper_id and s["created_at"] >= since)

    def upsert_swipe(self, db, swiper_id, target_id, swipe_type):
        with self._lock:
            existing = self.swipes.get((swiper_id, target_id))
            previous = existing["type"] if existing else None
            if existing:
                existing["type"] = swipe_type
                existing["updated_at"] = self.now
            else:
                self.add_swipe(swiper_id, target_id, swipe_type)
            row = dict(self.swipes[(swiper_id, target_id)])
        row["previous_type"] = previous
        return row

    def get_swipe(self, db, swiper_id, target_id):
        row = self.swipes.get((swiper_id, target_id))
        return dict(row) if row else None

    def has_positive_swipe(self, db, swiper_id, target_id):
        row = self.swipes.get((swiper_id, target_id))
        return bool(row and row["type"] in repo.POSITIVE_SWIPE_TYPES)

    # -- blocks and matches --------------------------------------------------

    def is_blocked_either_way(self, db, user_a, user_b):
        return (user_a, user_b) in self.blocks or (user_b, user_a) in self.blocks

    def insert_match_if_absent(self, db, user_a_id, user_b_id):
        with self._lock:
            existing = self.matches.get((user_a_id, user_b_id))
            if existing:
                return dict(existing), False
            if self.is_blocked_either_way(db, user_a_id, user_b_id):
                return None, False
            return dict(self.add_match(user_a_id, user_b_id)), True

    def get_match_for_pair(self, db, user_a_id, user_b_id):
        row = self.matches.get((user_a_id, user_b_id))
        return dict(row) if row else None

    def get_match_by_id(self, db, match_id):
        for row in self.matches.values():
            if row["id"] == match_id:
                return dict(row)
        return None

    def delete_match_for_pair(self, db, user_a_id, user_b_id):
        row = self.matches.pop((user_a_id, user_b_id), None)
        if row is None:
            return 0
        self.messages = [m for m in self.messages if m["match_id"] != row["id"]]
        return 1

    def delete_match(self, db, match_id):
        row = self.get_match_by_id(db, match_id)
        if not row:
            return 0
        return self.delete_match_for_pair(db, row["user_a_id"], row["user_b_id"])

    def list_matches_for_user(self, db, user_id):
        out = []
        for match in self.matches.values():
            if user_id not in (match["user_a_id"], match["user_b_id"]):
                continue
            other_id = match["user_b_id"] if match["user_a_id"] == user_id else match["user_a_id"]
            other = self.users.get(other_id)
            if not other:
                continue
            thread = [m for m in self.messages if m["match_id"] == match["id"]]
            last = max(thread, key=lambda m: m["created_at"]) if thread else None
            row = dict(other)
            row.update(
                {
                    "match_id": match["id"],
                    "match_created_at": match["created_at"],
                    "last_message_id": last["id"] if last else None,
                    "last_message_sender_id": last["sender_id"] if last else None,
                    "last_message_content": last["content"] if last else None,
                    "last_message_created_at": last["created_at"] if last else None,
                    "last_message_read_at": last["read_at"] if last else None,
                    "unread_count": sum(1 for m in thread if m["sender_id"] != user_id and m["read_at"] is None),
                }
            )
            out.append(row)
        return out

    def insert_block(self, db, blocker_id, blocked_id):
        with self._lock:
            if (blocker_id, blocked_id) in self.blocks:
                return False
            self.blocks[(blocker_id, blocked_id)] = {"id": str(uuid.uuid4()), "created_at": self._tick()}
            return True

    def delete_block(self, db, blocker_id, blocked_id):
        return 1 if self.blocks.pop((blocker_id, blocked_id), None) else 0

    def list_blocks(self, db, blocker_id):
        rows = []
        for (blocker, blocked), row in self.blocks.items():
            if blocker != blocker_id:
                continue
            user = self.users.get(blocked, {})
            rows.append(
                {
                    "id": row["id"],
                    "created_at": row["created_at"],
                    "blocked_id": blocked,
                    "username": user.get("username"),
                    "display_name": user.get("display_name"),
                }
            )
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows

    # -- messages, reports, push tokens --------------------------------------

    def list_messages(self, db, match_id, *, cursor, limit):
        thread = sorted((m for m in self.messages if m["match_id"] == match_id), key=lambda m: m["created_at"], reverse=True)
        if cursor:
            anchor = next((m for m in thread if m["id"] == cursor), None)
            if anchor:
                thread = [m for m in thread if m["created_at"] < anchor["created_at"]]
        return [dict(m) for m in thread[:limit]]

    def create_message(self, db, match_id, sender_id, content):
        row = {
            "id": str(uuid.uuid4()),
            "match_id": match_id,
            "sender_id": sender_id,
            "content": content,
            "created_at": self._tick(),
            "read_at": None,
        }
        self.messages.append(row)
        return dict(row)

    def mark_messages_read(self, db, match_id, reader_id):
        count = 0
        for m in self.messages:
            if m["match_id"] == match_id and m["sender_id"] != reader_id and m["read_at"] is None:
                m["read_at"] = self.now
                count += 1
        return count

    def create_report(self, db, reporter_id, target_id, reason, details):
        row = {
            "id": str(uuid.uuid4()),
            "reporter_id": reporter_id,
            "target_id": target_id,
            "reason": reason,
            "details": details,
            "created_at": self.now,
        }
        self.reports.append(row)
        return dict(row)

    def upsert_push_token(self, db, user_id, token, platform):
        self.push_tokens[(user_id, token)] = platform

    def delete_push_token(self, db, user_id, token):
        return 1 if self.push_tokens.pop((user_id, token), None) else 0

    def delete_push_tokens(self, db, tokens):
        doomed = [key for key in self.push_tokens if key[1] in set(tokens)]
        for key in doomed:
            del self.push_tokens[key]
        return len(doomed)


REPO_FUNCTIONS = [
    "get_user",
    "get_notification_contact",
    "list_photos",
    "list_theriotypes",
    "list_excluded_user_ids",
    "list_candidates",
    "count_swipes_since",
    "upsert_swipe",
    "get_swipe",
    "has_positive_swipe",
    "is_blocked_either_way",
    "insert_match_if_absent",
    "get_match_for_pair",
    "get_match_by_id",
    "delete_match_for_pair",
    "delete_match",
    "list_matches_for_user",
    "insert_block",
    "delete_block",
    "list_blocks",
    "list_messages",
    "create_message",
    "mark_messages_read",
    "create_report",
    "upsert_push_token",
    "delete_push_token",
    "delete_push_tokens",
]


@pytest.fixture
def store(monkeypatch):
    from therianr.routes import notifications as notification_routes
    from therianr.routes import reports as report_routes

    fake = FakeStore()
    for name in REPO_FUNCTIONS:
        monkeypatch.setattr(repo, name, getattr(fake, name))
    for module in (candidates, swipes, matching, blocks, matches, notifications, auth_deps, report_routes, notification_routes):
        monkeypatch.setattr(module, "SessionLocal", lambda: _DummySession(fake))
    monkeypatch.setattr(clock, "now_utc", lambda: fake.now)
    rate_limit.limiter.reset()
    yield fake
    rate_limit.limiter.reset()


@pytest.fixture
def dispatcher(monkeypatch):
    recorder = RecordingDispatcher()
    monkeypatch.setattr(notifications, "dispatcher", recorder)
    return recorder
