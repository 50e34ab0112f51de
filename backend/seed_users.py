"""Seed sample users.

Idempotent: each user is keyed by email and only created when absent, so
the script can run at any point in every environment.

Usage:
    cd backend
    alembic upgrade head
    python seed_users.py
"""

import logging
import os
import sys

from sqlalchemy import inspect
from sqlalchemy.orm import Session

# Ensure the backend app is importable
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.core.config import settings
from app.core.logging_config import configure_logging
from app.db.session import SessionLocal, engine
from app.services.user_service import UserService

logger = logging.getLogger("seed")

SAMPLE_USERS = [
    {
        "name": "John Smith",
        "email": "john.smith@example.com",
        "role": "admin",
        "status": "active",
        "hobbies": ["reading", "travel"],
    },
    {
        "name": "Sarah Johnson",
        "email": "sarah.johnson@example.com",
        "role": "manager",
        "status": "active",
        "hobbies": ["cooking", "music"],
    },
    {
        "name": "Michael Brown",
        "email": "michael.brown@example.com",
        "role": "employee",
        "status": "active",
        "hobbies": ["sports", "gaming"],
    },
    {
        "name": "Emily Davis",
        "email": "emily.davis@example.com",
        "role": "employee",
        "status": "inactive",
        "hobbies": ["reading", "cooking", "travel"],
    },
    {
        "name": "David Wilson",
        "email": "david.wilson@example.com",
        "role": "intern",
        "status": "active",
        "hobbies": ["gaming"],
    },
    {
        "name": "Jennifer Martinez",
        "email": "jennifer.martinez@example.com",
        "role": "manager",
        "status": "suspended",
        "hobbies": ["music", "sports", "travel"],
    },
]


def seed_users(db: Session) -> int:
    """Create every sample user that does not exist yet; return the user count."""
    service = UserService(db)
    for user_data in SAMPLE_USERS:
        attrs = {key: value for key, value in user_data.items() if key != "email"}
        service.find_or_create_by_email(user_data["email"], **attrs)
    return service.count()


def seed() -> int:
    if "users" not in inspect(engine).get_table_names():
        raise RuntimeError("users table not found; run 'alembic upgrade head' first")

    db = SessionLocal()
    try:
        total = seed_users(db)
        print(f"Created {total} users.")
        return total
    except Exception:
        db.rollback()
        logger.exception("Error seeding users")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging(settings)
    seed()
