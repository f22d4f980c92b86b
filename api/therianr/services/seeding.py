import random
import uuid
from datetime import date
from typing import Any

from sqlalchemy import text

from .clock import years_before

THERIOTYPES = ["wolf", "fox", "cat", "dog", "deer", "raven", "dragon", "lion", "coyote", "horse", "owl", "bear"]
PRONOUNS = ["she/her", "he/him", "they/them", "it/its", "any"]

# (name, latitude, longitude)
CITIES = [
    ("Berlin", 52.52, 13.405),
    ("Hamburg", 53.551, 9.993),
    ("Amsterdam", 52.367, 4.904),
    ("Copenhagen", 55.676, 12.568),
    ("Vienna", 48.208, 16.373),
    ("Prague", 50.075, 14.437),
]

SEED_PREFIX = "seed-"


def _jitter(rng: random.Random, value: float) -> float:
    return round(value + rng.uniform(-0.15, 0.15), 5)


def _seed_birth_date(rng: random.Random, today: date) -> date:
    age = rng.randint(18, 45)
    born = years_before(today, age)
    return date.fromordinal(born.toordinal() - rng.randint(0, 300))


def build_seed_user(rng: random.Random, idx: int, today: date) -> dict[str, Any]:
    city, lat, lng = rng.choice(CITIES)
    species = rng.sample(THERIOTYPES, k=rng.randint(1, 2))
    user_id = f"{SEED_PREFIX}{idx:04d}"
    return {
        "id": user_id,
        "username": f"seed_{species[0]}_{idx:04d}",
        "display_name": f"{species[0].title()} {idx}",
        "email": f"seed{idx:04d}@example.test",
        "bio": f"{species[0].title()} from {city}.",
        "pronouns": rng.choice(PRONOUNS),
        "location": city,
        "birth_date": _seed_birth_date(rng, today),
        "latitude": _jitter(rng, lat),
        "longitude": _jitter(rng, lng),
        "theriotypes": species,
        "photo_count": rng.randint(0, 3),
    }


def reset_seed_data(db) -> int:
    """Seeded rows cascade from user_account, so dropping the accounts is enough."""
    result = db.execute(text("DELETE FROM user_account WHERE id LIKE :prefix"), {"prefix": f"{SEED_PREFIX}%"})
    return result.rowcount or 0


def seed_demo_users(db, *, n_users: int = 50, seed: int = 42, reset: bool = False, today: date | None = None) -> dict[str, Any]:
    rng = random.Random(seed)
    today = today or date.today()
    removed = reset_seed_data(db) if reset else 0

    created = 0
    photos = 0
    for idx in range(n_users):
        user = build_seed_user(rng, idx, today)
        inserted = db.execute(
            text(
                """
                INSERT INTO user_account
                  (id, username, display_name, email, bio, pronouns, location, birth_date, latitude, longitude)
                VALUES
                  (:id, :username, :display_name, :email, :bio, :pronouns, :location, :birth_date, :latitude, :longitude)
                ON CONFLICT (id) DO NOTHING
                RETURNING id
                """
            ),
            {k: v for k, v in user.items() if k not in ("theriotypes", "photo_count")},
        ).first()
        # already seeded on an earlier run; its children are in place
        if inserted is None:
            continue
        created += 1
        for species in user["theriotypes"]:
            db.execute(
                text("INSERT INTO user_theriotype (id, user_id, species) VALUES (:id, :user_id, :species)"),
                {"id": str(uuid.uuid4()), "user_id": user["id"], "species": species},
            )
        for order in range(user["photo_count"]):
            db.execute(
                text("INSERT INTO user_photo (id, user_id, url, sort_order) VALUES (:id, :user_id, :url, :sort_order)"),
                {
                    "id": str(uuid.uuid4()),
                    "user_id": user["id"],
                    "url": f"https://picsum.photos/seed/{user['id']}-{order}/600/800",
                    "sort_order": order,
                },
            )
            photos += 1
    db.commit()
    return {"users": created, "skipped": n_users - created, "photos": photos, "removed": removed, "seed": seed}
