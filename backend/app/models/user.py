"""User model."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, validates

from app.core.enumerize import EnumRegistry, EnumValue, install_predicates, install_scopes
from app.db.base import Base, TimestampMixin
from app.db.types import EnumeratedList, EnumeratedType
from app.models.validators import require_present

user_enums = EnumRegistry()

ROLE = user_enums.declare(
    "role",
    ["admin", "manager", "employee", "intern"],
    default="employee",
    predicates=True,
)

# Code 2 is reserved.
STATUS = user_enums.declare(
    "status",
    {"active": 0, "inactive": 1, "suspended": 3},
    default="active",
    scope=True,
)

HOBBIES = user_enums.declare(
    "hobbies",
    ["reading", "sports", "cooking", "gaming", "music", "travel"],
    multiple=True,
)


class User(Base, TimestampMixin):
    """Application user with enumerated role, status and hobbies."""

    __tablename__ = "users"

    enums = user_enums

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    role: Mapped[EnumValue] = mapped_column(
        EnumeratedType(ROLE),
        default=ROLE.default,
        server_default=str(ROLE.default.value),
        nullable=False,
    )
    status: Mapped[EnumValue] = mapped_column(
        EnumeratedType(STATUS),
        default=STATUS.default,
        server_default=str(STATUS.default.value),
        nullable=False,
    )
    hobbies: Mapped[list[EnumValue]] = mapped_column(
        EnumeratedList(HOBBIES),
        default=list,
        nullable=True,
    )

    def __init__(self, **kwargs):
        for key, value in user_enums.defaults().items():
            kwargs.setdefault(key, value)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email} role={self.role} status={self.status}>"

    @validates("name", "email")
    def _validate_presence(self, key, value):
        return require_present(key, value)

    @validates(*user_enums)
    def _normalize_enum(self, key, value):
        return user_enums[key].normalize(value)


install_predicates(User, "role", ROLE)
install_scopes(User, "status", STATUS)
