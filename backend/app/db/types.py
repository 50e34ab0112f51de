"""Column types backed by an ``EnumAttribute``.

Encoding lives in the type, not in the model, so it is applied wherever
SQLAlchemy binds a value for the column: ORM flushes, ``insert()`` with a
list of parameter sets, ``on_conflict_do_update`` SET clauses and WHERE
clauses built from scopes or predicates.
"""

import json

from sqlalchemy import SmallInteger, Text
from sqlalchemy.types import TypeDecorator

from app.core.enumerize import EnumAttribute
from app.core.errors import InvalidMemberError


class EnumeratedType(TypeDecorator):
    """Single-valued enumerated column stored as a small integer code."""

    impl = SmallInteger
    cache_ok = True

    def __init__(self, attribute: EnumAttribute, *args, **kwargs):
        if attribute.multiple:
            raise TypeError(f"{attribute.name} is multiple-valued; use EnumeratedList")
        self.attribute = attribute
        super().__init__(*args, **kwargs)

    def process_bind_param(self, value, dialect):
        if value is None:
            raise InvalidMemberError(self.attribute.name, value)
        return self.attribute.encode(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.attribute.decode(value)

    def coerce_compared_value(self, op, value):
        return self

    @property
    def python_type(self):
        return str


class EnumeratedList(TypeDecorator):
    """Multiple-valued enumerated column stored as a JSON list of members."""

    impl = Text
    cache_ok = True

    def __init__(self, attribute: EnumAttribute, *args, **kwargs):
        if not attribute.multiple:
            raise TypeError(f"{attribute.name} is single-valued; use EnumeratedType")
        self.attribute = attribute
        super().__init__(*args, **kwargs)

    def process_bind_param(self, value, dialect):
        return json.dumps(self.attribute.encode(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return []
        try:
            stored = json.loads(value)
        except ValueError:
            stored = value
        return self.attribute.decode(stored)

    @property
    def python_type(self):
        return list
