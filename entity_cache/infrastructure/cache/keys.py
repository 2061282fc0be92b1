"""Cache key builders. Single place for key format (DRY).

Keys have three components: entity type name, field name and field value,
joined by CACHE_KEY_SEP (e.g. ``User:id:42`` or ``Order:user_id:42``).

Type and field names come from code and must not contain CACHE_KEY_SEP or
CACHE_KEY_ESCAPE. Field values are data, so they are escaped instead:
``%`` becomes ``%25`` and ``:`` becomes ``%3A``. None renders as
CACHE_KEY_NULL_TOKEN, which no escaped string can produce. Two keys are
equal iff all three components are equal, and parse_key recovers the
value component unambiguously.
"""

import re
from typing import Any

from entity_cache.core.constants import (
    CACHE_KEY_ESCAPE,
    CACHE_KEY_ESCAPED_ESCAPE,
    CACHE_KEY_ESCAPED_SEP,
    CACHE_KEY_NULL_TOKEN,
    CACHE_KEY_SEP,
)
from entity_cache.domain.exceptions import InvalidCacheKeyError

_UNESCAPE_RE = re.compile(r"%(25|3A)")
_UNESCAPED = {"25": CACHE_KEY_ESCAPE, "3A": CACHE_KEY_SEP}


def _validate_key_component(value: str, name: str) -> None:
    """Raise InvalidCacheKeyError if a name component is empty or reserved.

    Args:
        value: Type or field name used in a cache key.
        name: Name of the component (for error message).

    Raises:
        InvalidCacheKeyError: If value is empty or contains CACHE_KEY_SEP
            or CACHE_KEY_ESCAPE.
    """
    if not value:
        raise InvalidCacheKeyError(f"Cache key component {name!r} must not be empty", name)
    if CACHE_KEY_SEP in value or CACHE_KEY_ESCAPE in value:
        raise InvalidCacheKeyError(
            f"Cache key component {name!r} must not contain "
            f"{CACHE_KEY_SEP!r} or {CACHE_KEY_ESCAPE!r}",
            name,
        )


def escape_value(value: Any) -> str:
    """Render a field value as a key component."""
    if value is None:
        return CACHE_KEY_NULL_TOKEN
    return (
        str(value)
        .replace(CACHE_KEY_ESCAPE, CACHE_KEY_ESCAPED_ESCAPE)
        .replace(CACHE_KEY_SEP, CACHE_KEY_ESCAPED_SEP)
    )


def unescape_value(component: str) -> str | None:
    """Reverse escape_value. Returns None for the null token."""
    if component == CACHE_KEY_NULL_TOKEN:
        return None
    return _UNESCAPE_RE.sub(lambda m: _UNESCAPED[m.group(1)], component)


def build_key(type_name: str, field_name: str, field_value: Any) -> str:
    """Cache key for an entity type, field and value.

    Used for primary entries (field is the primary key field) and for
    relation indexes (field is an indexed field).

    Raises:
        InvalidCacheKeyError: If type_name or field_name is not a valid component.
    """
    _validate_key_component(type_name, "type_name")
    _validate_key_component(field_name, "field_name")
    return f"{type_name}{CACHE_KEY_SEP}{field_name}{CACHE_KEY_SEP}{escape_value(field_value)}"


def parse_key(key: str) -> tuple[str, str, str | None]:
    """Split a key built by build_key into (type_name, field_name, value).

    The value is returned as the unescaped string (or None); converting it
    back to the field's Python type is up to the entity class.

    Raises:
        InvalidCacheKeyError: If key does not have exactly three components.
    """
    parts = key.split(CACHE_KEY_SEP)
    if len(parts) != 3 or not parts[0] or not parts[1]:
        raise InvalidCacheKeyError(f"Malformed cache key: {key!r}", "key")
    type_name, field_name, value = parts
    return type_name, field_name, unescape_value(value)
