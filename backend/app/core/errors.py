"""Error hierarchy for the user model and its enumerated attributes."""

from typing import Any


class UserModelError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(UserModelError):
    """Raised when a record fails presence or uniqueness validation."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field} {message}")


class EnumDeclarationError(UserModelError):
    """Raised for an invalid or unknown enumerated attribute declaration."""


class EnumMappingError(UserModelError, ValueError):
    """Base for failures translating between symbolic and persisted values."""


class InvalidMemberError(EnumMappingError):
    """Raised when a value is not one of an attribute's declared members."""

    def __init__(self, attribute: str, value: Any):
        self.attribute = attribute
        self.value = value
        super().__init__(f"{value!r} is not a valid value for {attribute}")


class UnknownCodeError(EnumMappingError):
    """Raised when a persisted value matches no declared member."""

    def __init__(self, attribute: str, code: Any):
        self.attribute = attribute
        self.code = code
        super().__init__(f"Stored value {code!r} does not map to any {attribute} member")


class UnsupportedDialectError(UserModelError):
    """Raised when a batch write targets a database without upsert support."""

    def __init__(self, dialect: str):
        self.dialect = dialect
        super().__init__(f"Batch writes are not supported on the '{dialect}' dialect")
