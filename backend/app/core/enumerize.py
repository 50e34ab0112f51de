"""Enumerated attribute declarations.

An ``EnumAttribute`` owns the translation between the symbolic members of an
attribute (``"inactive"``) and their persisted representation (``1``).
Declarations are grouped per model in an ``EnumRegistry`` that is built once
at import time and never changes afterwards.

The column types in ``app.db.types`` call ``encode`` and ``decode`` from
their bind and result processors, so every statement that writes an
enumerated column goes through the same table: ORM flushes, Core
``insert()`` with a list of rows, and ``ON CONFLICT`` upserts alike.

Two persistence rules are supported:

* positional: ``members`` is a sequence, the code is the member's index;
* explicit: ``members`` is a mapping of member to integer code, gaps and
  reordering allowed (``{"active": 0, "inactive": 1, "suspended": 3}``).

Multiple-valued attributes store a list of symbolic strings, so for them
the "code" of a member is its own text.
"""

import enum
from collections.abc import Iterable, Iterator, Mapping, Sequence
from types import MappingProxyType
from typing import Any, Optional, Union

from sqlalchemy.ext.hybrid import hybrid_property

from app.core.errors import EnumDeclarationError, InvalidMemberError, UnknownCodeError

Code = Union[int, str]


def _symbol(value: Any) -> Optional[str]:
    """Return the symbolic text for a string or enum token, else None."""
    if isinstance(value, enum.Enum):
        value = value.value if isinstance(value.value, str) else value.name
    if isinstance(value, str):
        return str(value)
    return None


def _is_code(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class EnumValue(str):
    """A declared member.

    Behaves as its symbolic text (``value == "inactive"``) and carries the
    persisted code in ``.value``.
    """

    value: Code
    attribute: str

    def __new__(cls, text: str, code: Code, attribute: str):
        obj = super().__new__(cls, text)
        obj.value = code
        obj.attribute = attribute
        return obj

    def __repr__(self) -> str:
        return f"<EnumValue {self.attribute}={str(self)!r} code={self.value!r}>"

    def __reduce__(self):
        return (EnumValue, (str(self), self.value, self.attribute))


class EnumAttribute:
    """Symbolic domain and persisted mapping of one enumerated attribute."""

    def __init__(
        self,
        name: str,
        members: Union[Sequence[Any], Mapping[Any, int]],
        default: Any = None,
        multiple: bool = False,
        scope: bool = False,
        predicates: bool = False,
    ):
        self.name = name
        self.multiple = multiple
        self.scope = scope
        self.predicates = predicates

        if isinstance(members, Mapping):
            if multiple:
                raise EnumDeclarationError(
                    f"{name}: multiple-valued attributes persist symbolic values "
                    "and cannot take explicit codes"
                )
            pairs = list(members.items())
        elif isinstance(members, (str, bytes)) or not isinstance(members, Iterable):
            raise EnumDeclarationError(f"{name}: members must be a sequence or a mapping")
        else:
            pairs = [(member, index) for index, member in enumerate(members)]

        if not pairs:
            raise EnumDeclarationError(f"{name}: at least one member is required")

        by_text: dict[str, EnumValue] = {}
        by_code: dict[Code, EnumValue] = {}
        for raw, code in pairs:
            text = _symbol(raw)
            if not text:
                raise EnumDeclarationError(f"{name}: invalid member {raw!r}")
            if multiple:
                code = text
            elif not _is_code(code):
                raise EnumDeclarationError(f"{name}: code for {text!r} must be an integer, got {code!r}")
            if text in by_text:
                raise EnumDeclarationError(f"{name}: duplicate member {text!r}")
            if code in by_code:
                raise EnumDeclarationError(
                    f"{name}: code {code!r} is used by both {by_code[code]!r} and {text!r}"
                )
            member = EnumValue(text, code, name)
            by_text[text] = member
            by_code[code] = member

        self._by_text = MappingProxyType(by_text)
        self._by_code = MappingProxyType(by_code)

        self.default: Optional[EnumValue] = None
        if default is not None:
            self.default = self._by_text.get(_symbol(default) or "")
            if self.default is None:
                raise EnumDeclarationError(f"{name}: default {default!r} is not a declared member")

    def __repr__(self) -> str:
        return f"<EnumAttribute {self.name} {self.values}>"

    def __iter__(self) -> Iterator[EnumValue]:
        return iter(self._by_text.values())

    def __contains__(self, value: Any) -> bool:
        return self.find_value(value) is not None

    @property
    def values(self) -> list[str]:
        """Symbolic members in declaration order."""
        return [str(member) for member in self._by_text.values()]

    @property
    def codes(self) -> dict[str, Code]:
        """Persisted representation of every member, keyed by symbolic text."""
        return {str(text): member.value for text, member in self._by_text.items()}

    def find_value(self, value: Any) -> Optional[EnumValue]:
        """Look up a member by symbolic text, enum token or persisted code."""
        text = _symbol(value)
        if text is not None:
            return self._by_text.get(text)
        if not self.multiple and _is_code(value):
            return self._by_code.get(value)
        return None

    def encode(self, value: Any) -> Union[Code, list[str]]:
        """Translate a symbolic value (or values) to the persisted form.

        Single-valued attributes also accept the persisted code itself, so
        ``encode(decode(code)) == code``.
        """
        if self.multiple:
            return [str(member) for member in self._collect(value)]
        member = self.find_value(value)
        if member is None:
            raise InvalidMemberError(self.name, value)
        return member.value

    def decode(self, persisted: Any) -> Union[EnumValue, list[EnumValue]]:
        """Translate a persisted value back to its declared member(s)."""
        if self.multiple:
            if persisted is None:
                return []
            if isinstance(persisted, str) or not isinstance(persisted, Iterable):
                raise UnknownCodeError(self.name, persisted)
            decoded = []
            for item in persisted:
                member = self._by_code.get(item) if isinstance(item, str) else None
                if member is None:
                    raise UnknownCodeError(self.name, item)
                decoded.append(member)
            return decoded
        member = self._by_code.get(persisted) if _is_code(persisted) else None
        if member is None:
            raise UnknownCodeError(self.name, persisted)
        return member

    def normalize(self, value: Any) -> Union[EnumValue, list[EnumValue]]:
        return self.decode(self.encode(value))

    def _collect(self, value: Any) -> list[EnumValue]:
        # A bare string is a single member, not an iterable of characters.
        if value is None:
            return []
        if isinstance(value, (str, enum.Enum)):
            value = [value]
        elif not isinstance(value, Iterable):
            raise InvalidMemberError(self.name, value)

        collected: list[EnumValue] = []
        for item in value:
            member = self.find_value(item)
            if member is None:
                raise InvalidMemberError(self.name, item)
            if member not in collected:
                collected.append(member)
        return collected


class EnumRegistry:
    """Declaration table for the enumerated attributes of one model."""

    def __init__(self):
        self._attributes: dict[str, EnumAttribute] = {}

    def declare(
        self,
        attribute: str,
        members: Union[Sequence[Any], Mapping[Any, int]],
        *,
        default: Any = None,
        multiple: bool = False,
        scope: bool = False,
        predicates: bool = False,
    ) -> EnumAttribute:
        if attribute in self._attributes:
            raise EnumDeclarationError(f"{attribute} is already declared")
        declared = EnumAttribute(
            attribute,
            members,
            default=default,
            multiple=multiple,
            scope=scope,
            predicates=predicates,
        )
        self._attributes[attribute] = declared
        return declared

    def __getitem__(self, attribute: str) -> EnumAttribute:
        try:
            return self._attributes[attribute]
        except KeyError:
            raise EnumDeclarationError(f"{attribute} is not an enumerated attribute") from None

    def __contains__(self, attribute: str) -> bool:
        return attribute in self._attributes

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def encode(self, attribute: str, value: Any):
        return self[attribute].encode(value)

    def decode(self, attribute: str, persisted: Any):
        return self[attribute].decode(persisted)

    def defaults(self) -> dict[str, Any]:
        """Declared defaults; multiple-valued attributes default to ``[]``."""
        result: dict[str, Any] = {}
        for name, declared in self._attributes.items():
            if declared.multiple:
                result[name] = []
            elif declared.default is not None:
                result[name] = declared.default
        return result


def _predicate(column_name: str, member: EnumValue) -> hybrid_property:
    def predicate(self):
        return getattr(self, column_name) == member

    predicate.__name__ = f"is_{member}"
    predicate.__doc__ = f"True when ``{column_name}`` is ``{member}``."
    return hybrid_property(predicate)


def install_predicates(cls: type, column_name: str, attribute: EnumAttribute) -> None:
    """Add an ``is_<member>`` hybrid property for every member.

    On an instance the property is a bool; on the class it is a SQL
    predicate comparing the persisted code.
    """
    for member in attribute:
        setattr(cls, f"is_{member}", _predicate(column_name, member))


def install_scopes(cls: type, column_name: str, attribute: EnumAttribute) -> None:
    """Add ``with_<column>(*members)`` and ``without_<column>(*members)``."""

    def members_of(values) -> list[EnumValue]:
        members = []
        for value in values:
            member = attribute.find_value(value)
            if member is None:
                raise InvalidMemberError(attribute.name, value)
            members.append(member)
        return members

    def with_(klass, *values):
        return getattr(klass, column_name).in_(members_of(values))

    def without(klass, *values):
        return getattr(klass, column_name).not_in(members_of(values))

    with_.__name__ = f"with_{column_name}"
    without.__name__ = f"without_{column_name}"
    setattr(cls, with_.__name__, classmethod(with_))
    setattr(cls, without.__name__, classmethod(without))
