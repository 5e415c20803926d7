"""Shared response schema base."""
from datetime import datetime, UTC
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_serializer


def serialize_datetime_utc(dt: datetime) -> str:
    """``2025-01-01T12:00:00Z``. Naive values (SQLite) are read as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat().replace('+00:00', 'Z')


def to_plain(value: Any) -> Any:
    """Turn timestamps and ids into JSON strings, descending into containers.

    Party rows hand back member ids inside JSON lists (declared winners) and
    services return tuples of ids, so conversion has to recurse.
    """
    if isinstance(value, datetime):
        return serialize_datetime_utc(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    return value


class BaseSchema(BaseModel):
    """Base for every response model; accepts ORM rows and service dicts alike."""

    model_config = ConfigDict(from_attributes=True)

    @model_serializer(mode="wrap")
    def _serialize(self, handler):
        return to_plain(handler(self))
