"""
Type-aware conversion of field references into canonical key encodings.

Given a field reference and the semantic type of the field it names, the
conversion engine picks the encoding and returns a
:class:`ConversionDescriptor`: an expression tree describing how a value
becomes key text, plus capability flags an emitter uses to decide which
support code generated source needs.

Manifesto:
    Lexicographic key order must match value order. Integers, floats and
    timestamps all have encodings that look right and sort wrong, so the
    engine is strict where a silent default would be unsafe: floats and
    timestamps must name their format explicitly.

Architecture:
    ::

        ┌───────────────────────┐     ┌─────────────────────┐
        │ FieldRef + type name  │ ──▶ │ convert(ref, type,  │
        └───────────────────────┘     │         source)     │
                                      └──────────┬──────────┘
                 ┌───────────────────────────────┼───────────────────┐
                 ▼                               ▼                   ▼
            text / integer                   float               temporal
        Source | Printf | Decimal        Printf (required)   [Utc] → Epoch | Layout

        ConversionDescriptor(expression, requires_format_library,
                             requires_numeric_library, requires_temporal_library)

    The value source is abstract: :class:`ParamSource` (a named input the
    caller already holds) or :class:`FieldAccessSource` (a path into a
    structured record). Both go through the same dispatch.

Dispatch table:
    ============  ===========  =====================================
    semantic      width spec   encoding
    ============  ===========  =====================================
    text          yes / no     printf(spec) / identity
    integer       yes / no     printf(spec) / unpadded decimal
    float         required*    printf(spec)   (*or format modifier)
    temporal      optional     [utc] then unix|unixmilli|unixnano
                               (printf or decimal), rfc3339,
                               rfc3339fixed, rfc3339nano, or custom
                               reference-date layout
    other         ignored      best-effort string
    ============  ===========  =====================================

Examples:
    >>> from keyspine.keys.pattern import FieldRef
    >>> d = convert(FieldRef("count", width_spec="%020d"), "int64")
    >>> d.encode(9) < d.encode(10)
    True
    >>> d.expression.describe()
    "printf('%020d', count)"

Tags:
    conversion, encoding, sortable-keys, code-generation, keyspine

Doc-Types:
    - API Reference
    - Key Encoding Guide
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from keyspine.core.errors import EncodingError, MissingFloatFormatError, MissingTemporalFormatError

from .kinds import SemanticType, classify_type, type_label
from .layouts import NAMED_LAYOUTS, render_layout
from .pattern import UTC_MODIFIER, FieldRef

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

EPOCH_UNITS: dict[str, timedelta] = {
    "unix": timedelta(seconds=1),
    "unixmilli": timedelta(milliseconds=1),
    "unixnano": timedelta(microseconds=1),  # scaled by 1000 below
}


# =============================================================================
# VALUE SOURCES
# =============================================================================


@dataclass(frozen=True, slots=True)
class ParamSource:
    """A named input, e.g. a function parameter ``user_id``."""

    name: str

    def describe(self) -> str:
        return self.name

    def resolve(self, value: Any) -> Any:
        return value


@dataclass(frozen=True, slots=True)
class FieldAccessSource:
    """
    A field path on a structured record, e.g. ``entity.user.id``.

    ``resolve`` walks mappings by key and other objects by attribute, so the
    same descriptor encodes dicts, dataclasses and pydantic models.
    """

    path: tuple[str, ...]
    root: str = "entity"

    def describe(self) -> str:
        return ".".join((self.root, *self.path))

    def resolve(self, value: Any) -> Any:
        current = value
        for i, name in enumerate(self.path):
            if isinstance(current, Mapping):
                if name not in current:
                    raise EncodingError(f"record has no field {'.'.join(self.path[: i + 1])!r}")
                current = current[name]
            elif hasattr(current, name):
                current = getattr(current, name)
            else:
                raise EncodingError(f"record has no field {'.'.join(self.path[: i + 1])!r}")
        return current


ValueSource = ParamSource | FieldAccessSource


# =============================================================================
# EXPRESSION TREE
# =============================================================================


class Expression(ABC):
    """A step in turning a source value into key text."""

    @abstractmethod
    def evaluate(self, value: Any) -> Any:
        """Apply this expression to the value held by the source."""

    @abstractmethod
    def describe(self) -> str:
        """Readable rendering, e.g. ``printf('%020d', entity.count)``."""

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Serializable form handed to emitters."""


@dataclass(frozen=True, slots=True)
class SourceValue(Expression):
    """Direct copy of the source value."""

    source: ValueSource

    def evaluate(self, value: Any) -> Any:
        return self.source.resolve(value)

    def describe(self) -> str:
        return self.source.describe()

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.source, ParamSource):
            return {"op": "param", "name": self.source.name}
        return {"op": "field", "root": self.source.root, "path": list(self.source.path)}


@dataclass(frozen=True, slots=True)
class TextValue(Expression):
    """Identity for text fields; rejects anything that is not a string."""

    operand: Expression

    def evaluate(self, value: Any) -> str:
        result = self.operand.evaluate(value)
        if not isinstance(result, str):
            raise EncodingError(f"expected a string, got {type(result).__name__}")
        return result

    def describe(self) -> str:
        return self.operand.describe()

    def to_dict(self) -> dict[str, Any]:
        return {"op": "text", "operand": self.operand.to_dict()}


@dataclass(frozen=True, slots=True)
class PrintfFormat(Expression):
    """printf-style formatting: ``%020d``, ``%020.2f``, ``%10s``."""

    spec: str
    operand: Expression

    def evaluate(self, value: Any) -> str:
        result = self.operand.evaluate(value)
        try:
            return self.spec % (result,)
        except (TypeError, ValueError) as e:
            raise EncodingError(f"cannot format {result!r} with {self.spec!r}", cause=e) from e

    def describe(self) -> str:
        return f"printf({self.spec!r}, {self.operand.describe()})"

    def to_dict(self) -> dict[str, Any]:
        return {"op": "printf", "spec": self.spec, "operand": self.operand.to_dict()}


@dataclass(frozen=True, slots=True)
class DecimalString(Expression):
    """Canonical unpadded base-10 integer."""

    operand: Expression
    unsigned: bool = False

    def evaluate(self, value: Any) -> str:
        result = self.operand.evaluate(value)
        if isinstance(result, bool) or not isinstance(result, int):
            raise EncodingError(f"expected an integer, got {type(result).__name__}")
        if self.unsigned and result < 0:
            raise EncodingError(f"unsigned field holds negative value {result}")
        return str(result)

    def describe(self) -> str:
        return f"decimal({self.operand.describe()})"

    def to_dict(self) -> dict[str, Any]:
        return {"op": "decimal", "unsigned": self.unsigned, "operand": self.operand.to_dict()}


def _as_datetime(value: Any) -> datetime:
    if not isinstance(value, datetime):
        raise EncodingError(f"expected a datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True, slots=True)
class UtcNormalize(Expression):
    """Convert a timestamp to UTC before formatting."""

    operand: Expression

    def evaluate(self, value: Any) -> datetime:
        return _as_datetime(self.operand.evaluate(value)).astimezone(timezone.utc)

    def describe(self) -> str:
        return f"utc({self.operand.describe()})"

    def to_dict(self) -> dict[str, Any]:
        return {"op": "utc", "operand": self.operand.to_dict()}


@dataclass(frozen=True, slots=True)
class EpochCounter(Expression):
    """Integer count of seconds, milliseconds or nanoseconds since the epoch."""

    unit: str
    operand: Expression

    def evaluate(self, value: Any) -> int:
        delta = _as_datetime(self.operand.evaluate(value)) - _EPOCH
        count = delta // EPOCH_UNITS[self.unit]
        if self.unit == "unixnano":
            return count * 1000
        return count

    def describe(self) -> str:
        return f"{self.unit}({self.operand.describe()})"

    def to_dict(self) -> dict[str, Any]:
        return {"op": "epoch", "unit": self.unit, "operand": self.operand.to_dict()}


@dataclass(frozen=True, slots=True)
class TimeLayout(Expression):
    """
    Timestamp formatted with a reference-date layout.

    ``name`` is the modifier the pattern used (``rfc3339``, ``rfc3339fixed``,
    ``rfc3339nano``) or ``None`` for a custom layout.
    """

    layout: str
    operand: Expression
    name: str | None = None

    def evaluate(self, value: Any) -> str:
        return render_layout(_as_datetime(self.operand.evaluate(value)), self.layout)

    def describe(self) -> str:
        label = self.name or repr(self.layout)
        return f"layout({label}, {self.operand.describe()})"

    def to_dict(self) -> dict[str, Any]:
        return {"op": "layout", "name": self.name, "layout": self.layout, "operand": self.operand.to_dict()}


@dataclass(frozen=True, slots=True)
class BestEffortString(Expression):
    """Generic stringification for types the engine knows nothing about."""

    operand: Expression

    def evaluate(self, value: Any) -> str:
        result = self.operand.evaluate(value)
        if isinstance(result, bool):
            return "true" if result else "false"
        return str(result)

    def describe(self) -> str:
        return f"str({self.operand.describe()})"

    def to_dict(self) -> dict[str, Any]:
        return {"op": "str", "operand": self.operand.to_dict()}


# =============================================================================
# DESCRIPTOR + DISPATCH
# =============================================================================


@dataclass(frozen=True, slots=True)
class ConversionDescriptor:
    """
    How one field reference is encoded for one value source.

    Computed on demand; a pure function of (field reference, semantic type,
    value source).

    Attributes:
        expression: Root of the expression tree; evaluates to key text
        semantic_type: Semantic family the dispatch used
        requires_format_library: Uses printf-style formatting
        requires_numeric_library: Uses integer-to-decimal conversion
        requires_temporal_library: Works with timestamps
    """

    expression: Expression
    semantic_type: SemanticType
    requires_format_library: bool = False
    requires_numeric_library: bool = False
    requires_temporal_library: bool = False

    def encode(self, value: Any) -> str:
        """Evaluate the expression against a source value."""
        return str(self.expression.evaluate(value))

    def describe(self) -> str:
        return self.expression.describe()

    def to_dict(self) -> dict[str, Any]:
        return {
            "expression": self.expression.to_dict(),
            "rendered": self.expression.describe(),
            "semantic_type": self.semantic_type.value,
            "requires_format_library": self.requires_format_library,
            "requires_numeric_library": self.requires_numeric_library,
            "requires_temporal_library": self.requires_temporal_library,
        }


def convert(
    ref: FieldRef,
    field_type: str | type | SemanticType,
    source: ValueSource | None = None,
) -> ConversionDescriptor:
    """
    Choose the canonical encoding for ``ref`` given its field's type.

    Args:
        ref: Parsed field reference
        field_type: Type name from the schema provider (``"int64"``,
            ``"time.Time"``), a Python type, or a ``SemanticType``
        source: Where the value comes from; defaults to a parameter named
            after the reference's last path component

    Raises:
        MissingFloatFormatError: float without width spec or format modifier
        MissingTemporalFormatError: timestamp without a format token
    """
    semantic = classify_type(field_type)
    if source is None:
        source = ParamSource(ref.param_name)
    base = SourceValue(source)

    if semantic is SemanticType.TEXT:
        if ref.width_spec is not None:
            return ConversionDescriptor(PrintfFormat(ref.width_spec, base), semantic, requires_format_library=True)
        return ConversionDescriptor(TextValue(base), semantic)

    if semantic.is_integer:
        if ref.width_spec is not None:
            return ConversionDescriptor(PrintfFormat(ref.width_spec, base), semantic, requires_format_library=True)
        unsigned = semantic is SemanticType.UNSIGNED_INTEGER
        return ConversionDescriptor(DecimalString(base, unsigned=unsigned), semantic, requires_numeric_library=True)

    if semantic is SemanticType.FLOAT:
        spec = ref.width_spec or ref.primary_format
        if not spec:
            raise MissingFloatFormatError(ref.path, type_label(field_type))
        return ConversionDescriptor(PrintfFormat(spec, base), semantic, requires_format_library=True)

    if semantic is SemanticType.TEMPORAL:
        return _convert_temporal(ref, field_type, base)

    return ConversionDescriptor(BestEffortString(base), semantic, requires_format_library=True)


def _convert_temporal(ref: FieldRef, field_type: str | type | SemanticType, base: Expression) -> ConversionDescriptor:
    label = type_label(field_type)
    token = ref.primary_format
    if not token:
        raise MissingTemporalFormatError(ref.path, label)
    if token == UTC_MODIFIER:
        raise MissingTemporalFormatError(ref.path, label, utc_only=True)

    operand: Expression = UtcNormalize(base) if ref.is_utc else base

    if token in EPOCH_UNITS:
        counter = EpochCounter(token, operand)
        if ref.width_spec is not None:
            return ConversionDescriptor(
                PrintfFormat(ref.width_spec, counter),
                SemanticType.TEMPORAL,
                requires_format_library=True,
                requires_temporal_library=True,
            )
        return ConversionDescriptor(
            DecimalString(counter),
            SemanticType.TEMPORAL,
            requires_numeric_library=True,
            requires_temporal_library=True,
        )

    if token in NAMED_LAYOUTS:
        expression = TimeLayout(NAMED_LAYOUTS[token], operand, name=token)
    else:
        expression = TimeLayout(token, operand)
    return ConversionDescriptor(expression, SemanticType.TEMPORAL, requires_temporal_library=True)


def convert_for_sources(
    ref: FieldRef,
    field_type: str | type | SemanticType,
    sources: Sequence[ValueSource],
) -> list[ConversionDescriptor]:
    """Run :func:`convert` once per value source, sharing the dispatch."""
    return [convert(ref, field_type, source) for source in sources]


__all__ = [
    "ParamSource",
    "FieldAccessSource",
    "ValueSource",
    "Expression",
    "SourceValue",
    "TextValue",
    "PrintfFormat",
    "DecimalString",
    "UtcNormalize",
    "EpochCounter",
    "TimeLayout",
    "BestEffortString",
    "ConversionDescriptor",
    "EPOCH_UNITS",
    "convert",
    "convert_for_sources",
]
