"""Identifier column type shared by users, classes and bills."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy.dialects import postgresql
from sqlalchemy.types import CHAR, TypeDecorator


def _canonical(value: Any) -> str:
    """Return the lowercase hyphenated form of a UUID, or the text unchanged."""

    if isinstance(value, uuid.UUID):
        return str(value)
    text = str(value)
    try:
        return str(uuid.UUID(text))
    except ValueError:
        # Lookups with a malformed id simply find nothing.
        return text


class GUID(TypeDecorator):
    """UUID column that always hands identifiers back as strings.

    PostgreSQL stores a native ``UUID``; every other engine uses ``CHAR(36)``.
    Student, parent, class and bill ids are compared as plain text everywhere
    in the billing code, including the ids kept inside profile blobs.
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):  # type: ignore[override]
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value: Any, dialect) -> Optional[Any]:  # type: ignore[override]
        if value is None:
            return None
        canonical = _canonical(value)
        if dialect.name != "postgresql":
            return canonical
        try:
            return uuid.UUID(canonical)
        except ValueError:
            return None

    def process_result_value(self, value: Any, dialect) -> Optional[str]:  # type: ignore[override]
        if value is None:
            return None
        return _canonical(value)


def new_identifier() -> str:
    """Return a fresh identifier in the string form stored by ``GUID`` columns."""

    return str(uuid.uuid4())
