import json
import uuid
from typing import Any

from sqlalchemy import text


def log_product_event(
    db,
    *,
    event_name: str,
    user_id: str | None = None,
    properties: dict[str, Any] | None = None,
) -> None:
    properties = properties or {}
    db.execute(
        text(
            """
            INSERT INTO product_event (id, user_id, event_name, properties, created_at)
            VALUES (:id, NULLIF(:user_id, ''), :event_name, CAST(:properties AS jsonb), NOW())
            """
        ),
        {
            "id": str(uuid.uuid4()),
            "user_id": user_id or "",
            "event_name": event_name,
            "properties": json.dumps(properties, default=str),
        },
    )
