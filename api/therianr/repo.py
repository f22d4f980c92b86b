import uuid
from datetime import date, datetime
from typing import Any, Iterable

from sqlalchemy import text

POSITIVE_SWIPE_TYPES = ("like", "super_like")

_PUBLIC_USER_COLUMNS = """
    u.id, u.username, u.display_name, u.bio, u.pronouns, u.location,
    u.birth_date, u.latitude, u.longitude, u.created_at
"""

_HAVERSINE_KM_SQL = """
    6371.0 * 2 * ASIN(LEAST(1.0, SQRT(
      POWER(SIN(RADIANS(u.latitude - :origin_lat) / 2), 2)
      + COS(RADIANS(:origin_lat)) * COS(RADIANS(u.latitude))
        * POWER(SIN(RADIANS(u.longitude - :origin_lng) / 2), 2)
    )))
"""


def _new_id() -> str:
    return str(uuid.uuid4())


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def get_user(db, user_id: str) -> dict[str, Any] | None:
    row = db.execute(
        text(
            """
            SELECT id, username, display_name, email, birth_date, latitude, longitude, is_banned, created_at
            FROM user_account
            WHERE id = :id
            """
        ),
        {"id": user_id},
    ).mappings().first()
    return dict(row) if row else None


def get_notification_contact(db, user_id: str) -> dict[str, Any] | None:
    row = db.execute(
        text(
            """
            SELECT u.id, u.username, u.display_name, u.email,
                   COALESCE(ARRAY_AGG(p.token) FILTER (WHERE p.token IS NOT NULL), ARRAY[]::text[]) AS push_tokens
            FROM user_account u
            LEFT JOIN push_token p ON p.user_id = u.id
            WHERE u.id = :id
            GROUP BY u.id
            """
        ),
        {"id": user_id},
    ).mappings().first()
    if not row:
        return None
    out = dict(row)
    out["push_tokens"] = list(out.get("push_tokens") or [])
    return out


def list_photos(db, user_ids: Iterable[str]) -> dict[str, list[dict[str, Any]]]:
    ids = list(user_ids)
    if not ids:
        return {}
    rows = db.execute(
        text(
            """
            SELECT id, user_id, url, sort_order
            FROM user_photo
            WHERE user_id = ANY(:ids) AND is_visible = true
            ORDER BY user_id, sort_order ASC, created_at ASC
            """
        ),
        {"ids": ids},
    ).mappings().all()
    out: dict[str, list[dict[str, Any]]] = {}
    for r in rows:
        out.setdefault(str(r["user_id"]), []).append({"id": str(r["id"]), "url": r["url"], "order": r["sort_order"]})
    return out


def list_theriotypes(db, user_ids: Iterable[str]) -> dict[str, list[str]]:
    ids = list(user_ids)
    if not ids:
        return {}
    rows = db.execute(
        text(
            """
            SELECT user_id, species
            FROM user_theriotype
            WHERE user_id = ANY(:ids)
            ORDER BY user_id, created_at ASC
            """
        ),
        {"ids": ids},
    ).mappings().all()
    out: dict[str, list[str]] = {}
    for r in rows:
        out.setdefault(str(r["user_id"]), []).append(r["species"])
    return out


def list_excluded_user_ids(db, user_id: str) -> set[str]:
    """Users already swiped on, blocked by, or blocking ``user_id``."""
    rows = db.execute(
        text(
            """
            SELECT target_id AS other_id FROM swipe WHERE swiper_id = :user_id
            UNION
            SELECT blocked_id FROM user_block WHERE blocker_id = :user_id
            UNION
            SELECT blocker_id FROM user_block WHERE blocked_id = :user_id
            """
        ),
        {"user_id": user_id},
    ).mappings().all()
    return {str(r["other_id"]) for r in rows}


def list_candidates(
    db,
    *,
    excluded_ids: Iterable[str],
    born_on_or_before: date,
    born_on_or_after: date | None,
    theriotype: str | None,
    origin: tuple[float, float] | None,
    max_distance_km: float | None,
    limit: int,
) -> list[dict[str, Any]]:
    params: dict[str, Any] = {
        "excluded_ids": list(excluded_ids),
        "born_on_or_before": born_on_or_before,
        "born_on_or_after": born_on_or_after,
        "theriotype_pattern": f"%{_escape_like(theriotype)}%" if theriotype else "",
        "limit": limit,
    }
    distance_clause = ""
    if max_distance_km is not None and origin is not None:
        # Candidates without coordinates are never excluded for missing data.
        distance_clause = f"AND (u.latitude IS NULL OR u.longitude IS NULL OR {_HAVERSINE_KM_SQL} <= :max_distance_km)"
        params.update({"origin_lat": origin[0], "origin_lng": origin[1], "max_distance_km": max_distance_km})
    rows = db.execute(
        text(
            f"""
            SELECT {_PUBLIC_USER_COLUMNS}
            FROM user_account u
            WHERE NOT (u.id = ANY(:excluded_ids))
              AND u.is_banned = false
              AND EXISTS (SELECT 1 FROM user_photo p WHERE p.user_id = u.id AND p.is_visible = true)
              AND u.birth_date <= :born_on_or_before
              AND (CAST(:born_on_or_after AS date) IS NULL OR u.birth_date >= CAST(:born_on_or_after AS date))
              AND (
                :theriotype_pattern = ''
                OR EXISTS (
                  SELECT 1 FROM user_theriotype t
                  WHERE t.user_id = u.id AND t.species ILIKE :theriotype_pattern
                )
              )
              {distance_clause}
            ORDER BY u.created_at DESC
            LIMIT :limit
            """
        ),
        params,
    ).mappings().all()
    return [dict(r) for r in rows]


def count_swipes_since(db, swiper_id: str, since: datetime) -> int:
    total = db.execute(
        text("SELECT COUNT(1) FROM swipe WHERE swiper_id = :swiper_id AND created_at >= :since"),
        {"swiper_id": swiper_id, "since": since},
    ).scalar()
    return int(total or 0)


def upsert_swipe(db, swiper_id: str, target_id: str, swipe_type: str) -> dict[str, Any]:
    """Insert or overwrite the swiper's decision; reports the type it replaced."""
    row = db.execute(
        text(
            """
            WITH prev AS (
              SELECT type FROM swipe WHERE swiper_id = :swiper_id AND target_id = :target_id
            )
            INSERT INTO swipe (id, swiper_id, target_id, type, created_at, updated_at)
            VALUES (:id, :swiper_id, :target_id, :type, NOW(), NOW())
            ON CONFLICT (swiper_id, target_id)
            DO UPDATE SET type = EXCLUDED.type, updated_at = NOW()
            RETURNING id, swiper_id, target_id, type, created_at, updated_at, (SELECT type FROM prev) AS previous_type
            """
        ),
        {"id": _new_id(), "swiper_id": swiper_id, "target_id": target_id, "type": swipe_type},
    ).mappings().first()
    return dict(row)


def get_swipe(db, swiper_id: str, target_id: str) -> dict[str, Any] | None:
    row = db.execute(
        text(
            """
            SELECT id, swiper_id, target_id, type, created_at, updated_at
            FROM swipe
            WHERE swiper_id = :swiper_id AND target_id = :target_id
            """
        ),
        {"swiper_id": swiper_id, "target_id": target_id},
    ).mappings().first()
    return dict(row) if row else None


def has_positive_swipe(db, swiper_id: str, target_id: str) -> bool:
    row = db.execute(
        text(
            """
            SELECT 1
            FROM swipe
            WHERE swiper_id = :swiper_id AND target_id = :target_id AND type IN ('like', 'super_like')
            """
        ),
        {"swiper_id": swiper_id, "target_id": target_id},
    ).first()
    return row is not None


def is_blocked_either_way(db, user_a: str, user_b: str) -> bool:
    row = db.execute(
        text(
            """
            SELECT 1
            FROM user_block
            WHERE (blocker_id = :a AND blocked_id = :b)
               OR (blocker_id = :b AND blocked_id = :a)
            LIMIT 1
            """
        ),
        {"a": user_a, "b": user_b},
    ).first()
    return row is not None


def insert_match_if_absent(db, user_a_id: str, user_b_id: str) -> tuple[dict[str, Any] | None, bool]:
    """Atomic insert-or-get on the canonical pair.

    Returns ``(row, created)``. ``row`` is None only when a block between the
    pair suppressed the insert and no match existed.
    """
    created = db.execute(
        text(
            """
            INSERT INTO user_match (id, user_a_id, user_b_id, created_at)
            SELECT :id, :user_a_id, :user_b_id, NOW()
            WHERE NOT EXISTS (
              SELECT 1 FROM user_block
              WHERE (blocker_id = :user_a_id AND blocked_id = :user_b_id)
                 OR (blocker_id = :user_b_id AND blocked_id = :user_a_id)
            )
            ON CONFLICT (user_a_id, user_b_id) DO NOTHING
            RETURNING id, user_a_id, user_b_id, created_at
            """
        ),
        {"id": _new_id(), "user_a_id": user_a_id, "user_b_id": user_b_id},
    ).mappings().first()
    if created:
        return dict(created), True
    return get_match_for_pair(db, user_a_id, user_b_id), False


def get_match_for_pair(db, user_a_id: str, user_b_id: str) -> dict[str, Any] | None:
    row = db.execute(
        text(
            """
            SELECT id, user_a_id, user_b_id, created_at
            FROM user_match
            WHERE user_a_id = :user_a_id AND user_b_id = :user_b_id
            """
        ),
        {"user_a_id": user_a_id, "user_b_id": user_b_id},
    ).mappings().first()
    return dict(row) if row else None


def get_match_by_id(db, match_id: str) -> dict[str, Any] | None:
    row = db.execute(
        text("SELECT id, user_a_id, user_b_id, created_at FROM user_match WHERE id = :id"),
        {"id": match_id},
    ).mappings().first()
    return dict(row) if row else None


def delete_match_for_pair(db, user_a_id: str, user_b_id: str) -> int:
    res = db.execute(
        text("DELETE FROM user_match WHERE user_a_id = :user_a_id AND user_b_id = :user_b_id"),
        {"user_a_id": user_a_id, "user_b_id": user_b_id},
    )
    return int(res.rowcount or 0)


def delete_match(db, match_id: str) -> int:
    res = db.execute(text("DELETE FROM user_match WHERE id = :id"), {"id": match_id})
    return int(res.rowcount or 0)


def list_matches_for_user(db, user_id: str) -> list[dict[str, Any]]:
    rows = db.execute(
        text(
            f"""
            SELECT m.id AS match_id,
                   m.created_at AS match_created_at,
                   {_PUBLIC_USER_COLUMNS},
                   lm.id AS last_message_id,
                   lm.sender_id AS last_message_sender_id,
                   lm.content AS last_message_content,
                   lm.created_at AS last_message_created_at,
                   lm.read_at AS last_message_read_at,
                   (
                     SELECT COUNT(1) FROM match_message um
                     WHERE um.match_id = m.id AND um.sender_id <> :user_id AND um.read_at IS NULL
                   ) AS unread_count
            FROM user_match m
            JOIN user_account u
              ON u.id = CASE WHEN m.user_a_id = :user_id THEN m.user_b_id ELSE m.user_a_id END
            LEFT JOIN LATERAL (
              SELECT id, sender_id, content, created_at, read_at
              FROM match_message mm
              WHERE mm.match_id = m.id
              ORDER BY mm.created_at DESC
              LIMIT 1
            ) lm ON true
            WHERE m.user_a_id = :user_id OR m.user_b_id = :user_id
            ORDER BY COALESCE(lm.created_at, m.created_at) DESC
            """
        ),
        {"user_id": user_id},
    ).mappings().all()
    return [dict(r) for r in rows]


def insert_block(db, blocker_id: str, blocked_id: str) -> bool:
    """False when the directional block already existed."""
    row = db.execute(
        text(
            """
            INSERT INTO user_block (id, blocker_id, blocked_id, created_at)
            VALUES (:id, :blocker_id, :blocked_id, NOW())
            ON CONFLICT (blocker_id, blocked_id) DO NOTHING
            RETURNING id
            """
        ),
        {"id": _new_id(), "blocker_id": blocker_id, "blocked_id": blocked_id},
    ).first()
    return row is not None


def delete_block(db, blocker_id: str, blocked_id: str) -> int:
    res = db.execute(
        text("DELETE FROM user_block WHERE blocker_id = :blocker_id AND blocked_id = :blocked_id"),
        {"blocker_id": blocker_id, "blocked_id": blocked_id},
    )
    return int(res.rowcount or 0)


def list_blocks(db, blocker_id: str) -> list[dict[str, Any]]:
    rows = db.execute(
        text(
            """
            SELECT b.id, b.created_at, u.id AS blocked_id, u.username, u.display_name
            FROM user_block b
            JOIN user_account u ON u.id = b.blocked_id
            WHERE b.blocker_id = :blocker_id
            ORDER BY b.created_at DESC
            """
        ),
        {"blocker_id": blocker_id},
    ).mappings().all()
    return [dict(r) for r in rows]


def list_messages(db, match_id: str, *, cursor: str | None, limit: int) -> list[dict[str, Any]]:
    """Newest first, strictly older than ``cursor`` when it names a message of this match."""
    rows = db.execute(
        text(
            """
            SELECT id, match_id, sender_id, content, created_at, read_at
            FROM match_message
            WHERE match_id = :match_id
              AND created_at < COALESCE(
                (SELECT c.created_at FROM match_message c WHERE c.id = :cursor AND c.match_id = :match_id),
                'infinity'::timestamptz
              )
            ORDER BY created_at DESC
            LIMIT :limit
            """
        ),
        {"match_id": match_id, "cursor": cursor or "", "limit": limit},
    ).mappings().all()
    return [dict(r) for r in rows]


def create_message(db, match_id: str, sender_id: str, content: str) -> dict[str, Any]:
    row = db.execute(
        text(
            """
            INSERT INTO match_message (id, match_id, sender_id, content, created_at)
            VALUES (:id, :match_id, :sender_id, :content, NOW())
            RETURNING id, match_id, sender_id, content, created_at, read_at
            """
        ),
        {"id": _new_id(), "match_id": match_id, "sender_id": sender_id, "content": content},
    ).mappings().first()
    return dict(row)


def mark_messages_read(db, match_id: str, reader_id: str) -> int:
    res = db.execute(
        text(
            """
            UPDATE match_message
            SET read_at = NOW()
            WHERE match_id = :match_id AND sender_id <> :reader_id AND read_at IS NULL
            """
        ),
        {"match_id": match_id, "reader_id": reader_id},
    )
    return int(res.rowcount or 0)


def create_report(db, reporter_id: str, target_id: str, reason: str, details: str | None) -> dict[str, Any]:
    row = db.execute(
        text(
            """
            INSERT INTO user_report (id, reporter_id, target_id, reason, details, created_at)
            VALUES (:id, :reporter_id, :target_id, :reason, :details, NOW())
            RETURNING id, reporter_id, target_id, reason, details, created_at
            """
        ),
        {"id": _new_id(), "reporter_id": reporter_id, "target_id": target_id, "reason": reason, "details": details},
    ).mappings().first()
    return dict(row)


def upsert_push_token(db, user_id: str, token: str, platform: str) -> None:
    db.execute(
        text(
            """
            INSERT INTO push_token (id, user_id, token, platform, created_at, updated_at)
            VALUES (:id, :user_id, :token, :platform, NOW(), NOW())
            ON CONFLICT (user_id, token)
            DO UPDATE SET platform = EXCLUDED.platform, updated_at = NOW()
            """
        ),
        {"id": _new_id(), "user_id": user_id, "token": token, "platform": platform},
    )


def delete_push_token(db, user_id: str, token: str) -> int:
    res = db.execute(
        text("DELETE FROM push_token WHERE user_id = :user_id AND token = :token"),
        {"user_id": user_id, "token": token},
    )
    return int(res.rowcount or 0)


def delete_push_tokens(db, tokens: Iterable[str]) -> int:
    values = list(tokens)
    if not values:
        return 0
    res = db.execute(text("DELETE FROM push_token WHERE token = ANY(:tokens)"), {"tokens": values})
    return int(res.rowcount or 0)
