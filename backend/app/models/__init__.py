"""SQLAlchemy models."""

from app.models.user import HOBBIES, ROLE, STATUS, User, user_enums

__all__ = [
    "User",
    "user_enums",
    "ROLE",
    "STATUS",
    "HOBBIES",
]
