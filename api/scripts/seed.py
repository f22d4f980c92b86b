import argparse
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from therianr.auth.security import create_access_token
from therianr.database import SessionLocal
from therianr.services.seeding import SEED_PREFIX, seed_demo_users


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo Therianr profiles for local discovery testing")
    parser.add_argument("--n-users", type=int, default=50)
    parser.add_argument("--reset", action="store_true")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--tokens", type=int, default=2, help="print session tokens for the first N seeded users")
    args = parser.parse_args()

    with SessionLocal() as db:
        summary = seed_demo_users(db, n_users=args.n_users, seed=args.seed, reset=args.reset)

    print("Seed completed")
    for k, v in summary.items():
        print(f"- {k}: {v}")
    for idx in range(min(args.tokens, args.n_users)):
        user_id = f"{SEED_PREFIX}{idx:04d}"
        print(f"- token {user_id}: {create_access_token(user_id)}")


if __name__ == "__main__":
    main()
