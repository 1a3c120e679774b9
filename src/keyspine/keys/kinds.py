"""
Attribute kinds and semantic field types.

STDLIB ONLY - NO PYDANTIC.

``AttributeKind`` is the encoded type a key is stored as (string, number,
binary). ``SemanticType`` is the family a source field belongs to, as named
by the schema provider; the conversion engine and the sortability advisor
dispatch on it.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum


class AttributeKind(str, Enum):
    """Target attribute type of a key value."""

    S = "S"  # String
    N = "N"  # Number
    B = "B"  # Binary


class SemanticType(str, Enum):
    """Family of a source field's type."""

    TEXT = "text"
    SIGNED_INTEGER = "signed_integer"
    UNSIGNED_INTEGER = "unsigned_integer"
    FLOAT = "float"
    TEMPORAL = "temporal"
    OTHER = "other"

    @property
    def is_integer(self) -> bool:
        return self in (SemanticType.SIGNED_INTEGER, SemanticType.UNSIGNED_INTEGER)


_TEXT_NAMES = frozenset({"str", "string", "text"})
_SIGNED_NAMES = frozenset({"int", "int8", "int16", "int32", "int64", "integer"})
_UNSIGNED_NAMES = frozenset({"uint", "uint8", "uint16", "uint32", "uint64"})
_FLOAT_NAMES = frozenset({"float", "float32", "float64", "double"})
_TEMPORAL_NAMES = frozenset({"datetime", "datetime.datetime", "time.time", "time", "timestamp"})

_PYTHON_TYPES: dict[type, SemanticType] = {
    str: SemanticType.TEXT,
    bool: SemanticType.OTHER,
    int: SemanticType.SIGNED_INTEGER,
    float: SemanticType.FLOAT,
    datetime: SemanticType.TEMPORAL,
    date: SemanticType.OTHER,
}


def classify_type(type_name: str | type | SemanticType) -> SemanticType:
    """
    Map a schema provider's type name to its semantic family.

    Accepts type names (``"int64"``, ``"time.Time"``, ``"datetime"``), Python
    types (``int``, ``datetime``) or an already classified ``SemanticType``.
    Unknown names fall back to ``OTHER``.

    Examples:
        >>> classify_type("uint32")
        <SemanticType.UNSIGNED_INTEGER: 'unsigned_integer'>
        >>> classify_type("time.Time")
        <SemanticType.TEMPORAL: 'temporal'>
        >>> classify_type("Money")
        <SemanticType.OTHER: 'other'>
    """
    if isinstance(type_name, SemanticType):
        return type_name
    if isinstance(type_name, type):
        return _PYTHON_TYPES.get(type_name, SemanticType.OTHER)

    name = type_name.strip().lower()
    if name in _TEXT_NAMES:
        return SemanticType.TEXT
    if name in _SIGNED_NAMES:
        return SemanticType.SIGNED_INTEGER
    if name in _UNSIGNED_NAMES:
        return SemanticType.UNSIGNED_INTEGER
    if name in _FLOAT_NAMES:
        return SemanticType.FLOAT
    if name in _TEMPORAL_NAMES:
        return SemanticType.TEMPORAL
    return SemanticType.OTHER


def type_label(type_name: str | type | SemanticType) -> str:
    """Human-readable name of a field type for messages."""
    if isinstance(type_name, SemanticType):
        return type_name.value
    if isinstance(type_name, type):
        return type_name.__name__
    return type_name
