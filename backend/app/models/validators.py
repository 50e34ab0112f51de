"""Model-level validation utilities.

Used from ``@validates`` hooks on the models and from the batch write paths
in the services, so a row is checked the same way however it is written.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from app.core.errors import ValidationError


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_present(key: str, value: Any) -> Any:
    """Validate that a value is neither None nor a blank string."""
    if is_blank(value):
        raise ValidationError(key, "can't be blank")
    return value


def require_fields(row: Mapping[str, Any], fields: Iterable[str]) -> None:
    """Validate that every field in *fields* is present and non-blank in *row*."""
    for field in fields:
        require_present(field, row.get(field))
