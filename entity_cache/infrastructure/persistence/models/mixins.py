"""SQLAlchemy mixin that makes a declarative model a CacheableEntity.

Models declare indexed_fields (and primary_key_field when it is not "id");
cache_type_name defaults to the class name. Snapshots contain every mapped
column. Enums are stored by value, timedeltas as seconds, bytes as base64,
and datetimes, dates, times, decimals and UUIDs as strings; all are
converted back using the column's Python type.
"""

from __future__ import annotations

import base64
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Self

from sqlalchemy import inspect as sa_inspect


def _python_type(column: Any) -> type | None:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def _to_json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)
    return value


def _from_json_value(value: Any, python_type: type | None) -> Any:
    if value is None or python_type is None or isinstance(value, python_type):
        return value
    if python_type is datetime:
        return datetime.fromisoformat(value)
    if python_type is date:
        return date.fromisoformat(value)
    if python_type is time:
        return time.fromisoformat(value)
    if python_type is timedelta:
        return timedelta(seconds=value)
    if python_type is bytes:
        return base64.b64decode(value)
    if issubclass(python_type, Enum):
        return python_type(value)
    if python_type in (Decimal, uuid.UUID, int, float, str):
        return python_type(value)
    return value


class CacheableMixin:
    """Implements CacheableEntity for SQLAlchemy models.

    Example:
        class User(CacheableMixin, Base):
            __tablename__ = "app_user"
            indexed_fields = ("team_id", "email")
    """

    cache_type_name = "Entity"
    primary_key_field = "id"
    indexed_fields = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "cache_type_name" not in cls.__dict__:
            cls.cache_type_name = cls.__name__

    @classmethod
    def _column_types(cls) -> dict[str, type | None]:
        mapper = sa_inspect(cls)
        return {attr.key: _python_type(attr.columns[0]) for attr in mapper.column_attrs}

    def primary_key_value(self) -> Any:
        return getattr(self, self.primary_key_field)

    def indexed_values(self) -> dict[str, Any]:
        return {field: getattr(self, field) for field in self.indexed_fields}

    def to_cache_dict(self) -> dict[str, Any]:
        return {key: _to_json_value(getattr(self, key)) for key in self._column_types()}

    @classmethod
    def from_cache_dict(cls, data: dict[str, Any]) -> Self:
        """Build a transient instance from a snapshot; unknown keys are ignored."""
        types = cls._column_types()
        values = {
            key: _from_json_value(value, types[key])
            for key, value in data.items()
            if key in types
        }
        return cls(**values)

    @classmethod
    def parse_primary_key(cls, raw: str) -> Any:
        return _from_json_value(raw, cls._column_types()[cls.primary_key_field])
