"""
python -m scripts.seed [--overwrite-roles]
"""

import sys

sys.path.insert(0, ".")

from dotenv import load_dotenv
load_dotenv()

from app.database import SessionLocal
from app.seed import seed_plans, seed_system_roles


def seed(overwrite_roles: bool = False):
    """Seed built-in roles and default plans."""
    db = SessionLocal()

    try:
        roles = seed_system_roles(db, overwrite=overwrite_roles)
        for role in roles:
            print(f"Role: {role.slug} ({len(role.permissions)} permissions)")

        plans = seed_plans(db)
        for plan in plans:
            print(f"Plan: {plan.slug} - {plan.monthly_token_limit} tokens/month")

        print("\nSeed completed")

    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed(overwrite_roles="--overwrite-roles" in sys.argv[1:])
