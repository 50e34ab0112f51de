"""User Service - single-row and batch writes for the users table.

Every write path ends in a statement whose enumerated columns are typed by
``EnumeratedType`` / ``EnumeratedList``, so symbolic values are encoded by
the same declaration table whether a row is created one at a time or as
part of an ``insert_all`` / ``upsert_all`` batch.

Batch rules:
- every row carries the same keys;
- every row passes the same presence checks as ``create``;
- every enumerated value is normalized independently, and one bad row
  fails the whole batch before any SQL is issued;
- enumerated columns a row omits fall back to their declared defaults.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Optional, Union

from sqlalchemy import Insert, Table, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import UnsupportedDialectError, ValidationError
from app.models.user import User, user_enums
from app.models.validators import require_fields, require_present

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "email")

DEFAULT_BATCH_SIZE = 500

# Bound parameters allowed in one statement. 999 is the SQLite default
# before 3.32; chunks shrink so rows x columns stays within it.
_MAX_BINDS = {
    "sqlite": 999,
    "postgresql": 65535,
}

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class UserService:
    """Service for creating, updating and bulk-loading users."""

    def __init__(self, db: Session):
        self.db = db

    @property
    def table(self) -> Table:
        return User.__table__

    # ===== READS =====

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def list_by_status(self, *statuses: Any) -> list[User]:
        return self.db.query(User).filter(User.with_status(*statuses)).order_by(User.id).all()

    def count(self) -> int:
        return self.db.query(User).count()

    # ===== SINGLE-ROW WRITES =====

    def create(self, data: Mapping[str, Any]) -> User:
        """Create one user through the full ORM validation path."""
        self._check_columns(data.keys())
        require_fields(data, REQUIRED_FIELDS)
        self._ensure_unique_email(data["email"])

        user = User(**data)
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        logger.info("Created user %s (%s)", user.id, user.email)
        return user

    def update(self, user: User, data: Mapping[str, Any]) -> User:
        self._check_columns(data.keys())
        if "email" in data:
            self._ensure_unique_email(data["email"], exclude_id=user.id)
        # Validate every value before touching the session-attached instance.
        values = {}
        for key, value in data.items():
            if key in user_enums:
                value = user_enums[key].normalize(value)
            elif key in REQUIRED_FIELDS:
                require_present(key, value)
            values[key] = value

        for key, value in values.items():
            setattr(user, key, value)
        self._commit()
        self.db.refresh(user)
        return user

    def find_or_create_by_email(self, email: str, **attrs: Any) -> User:
        """Return the user with *email*, creating it from *attrs* if absent.

        Existing rows are returned untouched.
        """
        user = self.find_by_email(email)
        if user is not None:
            return user
        return self.create({**attrs, "email": email})

    def delete_by_email(self, *emails: str) -> int:
        deleted = (
            self.db.query(User)
            .filter(User.email.in_(emails))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    # ===== BATCH WRITES =====

    def insert_all(
        self,
        rows: Iterable[Mapping[str, Any]],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> int:
        """Insert many rows; rows whose unique key already exists are skipped.

        Returns the number of rows actually inserted.
        """
        prepared, _ = self._prepare_rows(rows)
        if not prepared:
            return 0

        inserted = 0
        try:
            for chunk in _chunks(prepared, self._chunk_size(batch_size, len(prepared[0]))):
                stmt = self._insert().values(chunk).on_conflict_do_nothing()
                inserted += self.db.execute(stmt).rowcount
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("insert_all rolled back (%d rows)", len(prepared))
            raise

        logger.info("insert_all: %d rows submitted, %d inserted", len(prepared), inserted)
        return inserted

    def upsert_all(
        self,
        rows: Iterable[Mapping[str, Any]],
        unique_by: Union[str, Sequence[str]] = "email",
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> int:
        """Insert many rows, updating those that match on *unique_by*.

        On conflict only the columns the caller supplied are overwritten,
        plus ``updated_at``. Returns the number of rows inserted or updated.
        """
        index_elements = [unique_by] if isinstance(unique_by, str) else list(unique_by)
        unknown = set(index_elements) - self._unique_columns()
        if unknown:
            raise ValidationError(
                ", ".join(sorted(unknown)), "is not backed by a unique index on users"
            )

        prepared, keys = self._prepare_rows(rows)
        if not prepared:
            return 0
        missing = [column for column in index_elements if column not in keys]
        if missing:
            raise ValidationError(", ".join(missing), "must be present in every row to upsert")

        updated_columns = [key for key in keys if key not in index_elements and key != "id"]

        affected = 0
        try:
            for chunk in _chunks(prepared, self._chunk_size(batch_size, len(prepared[0]))):
                stmt = self._insert().values(chunk)
                set_ = {column: stmt.excluded[column] for column in updated_columns}
                set_["updated_at"] = func.now()
                stmt = stmt.on_conflict_do_update(index_elements=index_elements, set_=set_)
                affected += self.db.execute(stmt).rowcount
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("upsert_all rolled back (%d rows)", len(prepared))
            raise

        logger.info(
            "upsert_all: %d rows submitted, %d affected (unique_by=%s)",
            len(prepared),
            affected,
            ",".join(index_elements),
        )
        return affected

    # ===== HELPERS =====

    def _insert(self) -> Insert:
        dialect = self.db.get_bind().dialect.name
        try:
            insert = _DIALECT_INSERTS[dialect]
        except KeyError:
            raise UnsupportedDialectError(dialect) from None
        return insert(self.table)

    def _chunk_size(self, batch_size: int, columns: int) -> int:
        limit = _MAX_BINDS.get(self.db.get_bind().dialect.name)
        if limit is None:
            return batch_size
        return max(1, min(batch_size, limit // max(columns, 1)))

    def _prepare_rows(
        self, rows: Iterable[Mapping[str, Any]]
    ) -> tuple[list[dict[str, Any]], list[str]]:
        """Validate and normalize batch rows.

        Returns the prepared rows and the keys the caller supplied.
        """
        rows = list(rows)
        if not rows:
            return [], []

        keys = list(rows[0].keys())
        self._check_columns(keys)
        defaults = user_enums.defaults()

        prepared = []
        for index, row in enumerate(rows):
            if set(row.keys()) != set(keys):
                raise ValidationError(
                    "rows", f"must all have the same keys (row {index} differs from row 0)"
                )
            require_fields(row, REQUIRED_FIELDS)

            values = dict(row)
            for name in user_enums:
                if name in values:
                    values[name] = user_enums[name].normalize(values[name])
                elif name in defaults:
                    values[name] = defaults[name]
            prepared.append(values)

        return prepared, keys

    def _check_columns(self, keys: Iterable[str]) -> None:
        unknown = set(keys) - set(self.table.columns.keys())
        if unknown:
            raise ValidationError(", ".join(sorted(unknown)), "is not a column of users")

    def _unique_columns(self) -> set[str]:
        columns = {column.name for column in self.table.primary_key.columns}
        for index in self.table.indexes:
            if index.unique and len(index.columns) == 1:
                columns.update(column.name for column in index.columns)
        return columns

    def _ensure_unique_email(self, email: str, exclude_id: Optional[int] = None) -> None:
        query = self.db.query(User.id).filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first() is not None:
            raise ValidationError("email", "has already been taken")

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("Integrity error writing user: %s", exc.orig)
            if not _violates_email_index(exc):
                raise
            raise ValidationError("email", "has already been taken") from exc


def _violates_email_index(exc: IntegrityError) -> bool:
    # SQLite names the column (users.email), PostgreSQL the index (ix_users_email).
    message = str(exc.orig)
    return "users.email" in message or "ix_users_email" in message


def _chunks(rows: list[dict[str, Any]], size: int) -> Iterable[list[dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]
