"""
Value definitions: where a key attribute's value comes from.

A ``ValueDef`` names exactly one source:

- ``format``      a :class:`~keyspine.keys.pattern.PatternSpec` (``USER#{id}``)
- ``from_field``  a dotted field path copied verbatim from the record
- ``const``       a fixed :class:`ConstValue` of kind S, N or B

Examples:
    >>> ValueDef.of_format("USER#{id}").format.literal_prefix
    'USER#'
    >>> ValueDef.string("PROFILE").const.value
    'PROFILE'
    >>> ValueDef().is_zero()
    True
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Any

from keyspine.core.errors import DefinitionError

from .kinds import AttributeKind
from .pattern import PatternSpec, parse_pattern


@dataclass(frozen=True, slots=True)
class ConstValue:
    """A constant key value: ``str`` for S, ``int``/``float`` for N, ``bytes`` for B."""

    kind: AttributeKind
    value: Any

    @property
    def text(self) -> str:
        """Key text of the constant; integral floats render without ``.0``."""
        if isinstance(self.value, bytes):
            return self.value.decode("utf-8", errors="backslashreplace")
        if isinstance(self.value, float) and self.value.is_integer():
            return str(int(self.value))
        return str(self.value)


@dataclass(frozen=True, slots=True)
class ValueDef:
    """How to derive one key attribute's value."""

    format: PatternSpec | None = None
    from_field: str | None = None
    const: ConstValue | None = None

    def __post_init__(self) -> None:
        sources = [s for s in (self.format, self.from_field, self.const) if s is not None and s != ""]
        if len(sources) > 1:
            raise DefinitionError("value definition must set exactly one of format, from_field or const")

    @classmethod
    def of_format(cls, pattern: str | PatternSpec, kind: AttributeKind | str = AttributeKind.S) -> ValueDef:
        if isinstance(pattern, PatternSpec):
            return cls(format=pattern)
        return cls(format=parse_pattern(pattern, kind))

    @classmethod
    def field(cls, path: str) -> ValueDef:
        """Copy the value of ``path`` (dot notation for nested fields)."""
        if not path or any(part == "" for part in path.split(".")):
            raise DefinitionError(f"invalid field path {path!r}")
        return cls(from_field=path)

    @classmethod
    def string(cls, value: str) -> ValueDef:
        return cls(const=ConstValue(AttributeKind.S, value))

    @classmethod
    def number(cls, value: int | float) -> ValueDef:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise DefinitionError(f"number constant must be int or float, got {type(value).__name__}")
        return cls(const=ConstValue(AttributeKind.N, value))

    @classmethod
    def binary(cls, b64: str) -> ValueDef:
        """Constant binary value from a base64 string, decoded eagerly."""
        try:
            decoded = base64.b64decode(b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DefinitionError(f"invalid base64 string: {e}", cause=e) from e
        return cls(const=ConstValue(AttributeKind.B, decoded))

    @property
    def kind(self) -> AttributeKind | None:
        """Attribute kind implied by the source; None for ``from_field``."""
        if self.format is not None:
            return self.format.kind
        if self.const is not None:
            return self.const.kind
        return None

    def has_value_source(self) -> bool:
        return self.format is not None or bool(self.from_field) or self.const is not None

    def is_zero(self) -> bool:
        return not self.has_value_source()

    def describe(self) -> str:
        if self.format is not None:
            return f"fmt({self.format.raw!r})"
        if self.from_field:
            return f"field({self.from_field!r})"
        if self.const is not None:
            return f"const({self.const.value!r})"
        return "<unset>"


def as_value_def(value: ValueDef | PatternSpec | str) -> ValueDef:
    """Accept a ValueDef, a parsed spec or a raw pattern string."""
    if isinstance(value, ValueDef):
        return value
    return ValueDef.of_format(value)


__all__ = ["ConstValue", "ValueDef", "as_value_def"]
