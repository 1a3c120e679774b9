"""
Key derivation from stored records.

Records are DynamoDB-style attribute maps: every value is a one-entry dict
naming its type, e.g. ``{"id": {"S": "42"}, "user": {"M": {"id": {"N": "7"}}}}``.
Because records describe themselves, derivation needs no field type table.

Manifesto:
    An extraction tree is built once per key definition and applied to any
    number of records, from any number of threads. Nodes hold no mutable
    state, so applying the same tree twice to the same record always yields
    the same value.

Architecture:
    ::

        PatternSpec / ValueDef ──build_extractor()──▶ KeyExtractor(kind, node)
                                                           │
                        ┌──────────────────┬───────────────┴─────┐
                        ▼                  ▼                     ▼
                   LiteralNode       FieldPathNode           ConcatNode
                   fixed value       walks nested M maps     joins children

        KeyExtractor.apply(record) -> {"S": ...} | {"N": ...} | {"B": ...}

    Stored values are coerced to the key kind at the leaf: S stringifies, N
    passes the stored numeric string through, B requires a stored string or
    binary value. Width specs format stored values for S and B keys the way
    parameter encoding does; N keys copy the stored number unchanged.

Examples:
    >>> from keyspine.keys.pattern import fmt
    >>> extractor = build_extractor(fmt("USER#{id}"))
    >>> extractor.apply({"id": {"S": "42"}})
    {'S': 'USER#42'}

Tags:
    extraction, derivation, sparse-index, keyspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from keyspine.core.errors import (
    DefinitionError,
    EncodingError,
    FieldNotFoundError,
    IncompatibleBinaryValueError,
    UnsupportedAttributeError,
)
from keyspine.core.result import try_result

from .kinds import AttributeKind
from .pattern import FieldRef, LiteralSegment, PatternSpec
from .values import ValueDef

AttributeValue = dict[str, Any]
AttributeMap = Mapping[str, AttributeValue]

_SCALAR_KINDS = ("S", "N", "B")


def _attribute_kind(av: Any) -> str:
    if isinstance(av, Mapping) and len(av) == 1:
        return next(iter(av))
    return type(av).__name__


def _scalar(av: Any, path: Sequence[str]) -> str | bytes:
    kind = _attribute_kind(av)
    if kind not in _SCALAR_KINDS:
        raise UnsupportedAttributeError(path, kind)
    return av[kind]


def _as_text(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="backslashreplace")
    return str(value)


class ExtractionNode(ABC):
    """One node of an extraction tree."""

    @abstractmethod
    def resolve(self, record: AttributeMap) -> str | bytes:
        """Derive this node's raw value from a record."""

    @abstractmethod
    def describe(self) -> str:
        """Readable rendering for CLI output and logs."""


@dataclass(frozen=True, slots=True)
class LiteralNode(ExtractionNode):
    """Fixed text or bytes."""

    value: str | bytes

    def resolve(self, record: AttributeMap) -> str | bytes:
        return self.value

    def describe(self) -> str:
        return repr(self.value)


@dataclass(frozen=True, slots=True)
class FieldPathNode(ExtractionNode):
    """
    Value at a (possibly nested) field path.

    Every component but the last must name an ``M`` attribute. A width spec
    taken from an S or B pattern is applied to stored ``S`` and ``N`` values,
    so ``{seq:%08d}`` derives the same padded text the parameter encoding
    produces. Number-kind keys are built without one and pass stored numbers
    through unchanged.
    """

    path: tuple[str, ...]
    width_spec: str | None = None

    def resolve(self, record: AttributeMap) -> str | bytes:
        current: Mapping[str, Any] = record
        for i, name in enumerate(self.path[:-1]):
            if name not in current:
                raise FieldNotFoundError(self.path, missing=".".join(self.path[: i + 1]))
            av = current[name]
            if _attribute_kind(av) != "M":
                raise FieldNotFoundError(
                    self.path, missing=name, reason=f"{name!r} is {_attribute_kind(av)}, not a map"
                )
            current = av["M"]

        last = self.path[-1]
        if last not in current:
            raise FieldNotFoundError(self.path)

        av = current[last]
        value = _scalar(av, self.path)
        if self.width_spec is None or isinstance(value, bytes):
            return value
        if _attribute_kind(av) == "N":
            return _pad_number(value, self.width_spec)
        return _pad_text(value, self.width_spec)

    def describe(self) -> str:
        dotted = ".".join(self.path)
        return f"field({dotted}:{self.width_spec})" if self.width_spec else f"field({dotted})"


# printf conversions that truncate a fractional value
_INTEGER_CONVERSIONS = frozenset("diouxX")


def _pad_number(stored: Any, width_spec: str) -> str:
    text = str(stored)
    try:
        number: int | float = int(text)
    except ValueError:
        try:
            number = float(text)
        except ValueError as e:
            raise EncodingError(f"stored number {text!r} is not numeric", cause=e) from e
        if width_spec[-1] in _INTEGER_CONVERSIONS:
            if not number.is_integer():
                raise EncodingError(f"stored number {text!r} is not integral; {width_spec!r} would truncate it")
            number = int(number)
    try:
        return width_spec % (number,)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"cannot format stored number {text!r} with {width_spec!r}", cause=e) from e


def _pad_text(stored: str, width_spec: str) -> str:
    try:
        return width_spec % (stored,)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"cannot format stored text {stored!r} with {width_spec!r}", cause=e) from e


def _as_bytes(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


@dataclass(frozen=True, slots=True)
class ConcatNode(ExtractionNode):
    """Children resolved in order and joined as text, or as bytes when ``binary``."""

    children: tuple[ExtractionNode, ...]
    binary: bool = False

    def resolve(self, record: AttributeMap) -> str | bytes:
        if not self.children:
            raise DefinitionError("concatenation has no parts")
        if self.binary:
            return b"".join(_as_bytes(child.resolve(record)) for child in self.children)
        return "".join(_as_text(child.resolve(record)) for child in self.children)

    def describe(self) -> str:
        return " + ".join(child.describe() for child in self.children)


@dataclass(frozen=True, slots=True)
class KeyExtractor:
    """An extraction tree bound to the attribute kind of the key it derives."""

    kind: AttributeKind
    node: ExtractionNode

    def apply(self, record: AttributeMap) -> AttributeValue:
        """
        Derive the key attribute value from ``record``.

        Raises:
            FieldNotFoundError: a referenced field is absent
            IncompatibleBinaryValueError: kind B over a non string/binary value
            UnsupportedAttributeError: a referenced field is not S, N or B
        """
        return coerce(self.node.resolve(record), self.kind)

    def try_apply(self, record: AttributeMap):
        """:meth:`apply` returning ``Ok``/``Err`` instead of raising."""
        return try_result(lambda: self.apply(record))

    def describe(self) -> str:
        return f"{self.kind.value}: {self.node.describe()}"


def coerce(value: Any, kind: AttributeKind) -> AttributeValue:
    """Wrap a raw value as an attribute value of ``kind``."""
    if kind is AttributeKind.S:
        return {"S": _as_text(value)}
    if kind is AttributeKind.N:
        return {"N": _as_text(value)}
    if isinstance(value, bytes):
        return {"B": value}
    if isinstance(value, str):
        return {"B": value.encode("utf-8")}
    raise IncompatibleBinaryValueError(type(value).__name__)


def build_node(spec: PatternSpec, kind: AttributeKind | str | None = None) -> ExtractionNode:
    """
    Translate a parsed pattern into an extraction tree for a key of ``kind``
    (the pattern's own kind by default).

    Width specs are dropped for N keys: stored numbers are copied verbatim.
    """
    kind = AttributeKind(kind or spec.kind)
    nodes: list[ExtractionNode] = []
    for segment in spec.segments:
        if isinstance(segment, LiteralSegment):
            nodes.append(LiteralNode(segment.value))
        elif isinstance(segment, FieldRef):
            width_spec = None if kind is AttributeKind.N else segment.width_spec
            nodes.append(FieldPathNode(segment.path_components, width_spec))
    if len(nodes) == 1:
        return nodes[0]
    return ConcatNode(tuple(nodes), binary=kind is AttributeKind.B)


def build_extractor(
    source: PatternSpec | ValueDef,
    kind: AttributeKind | str | None = None,
) -> KeyExtractor:
    """
    Build a reusable extractor for a pattern or value definition.

    ``kind`` overrides the kind implied by the source; ``from_field`` sources
    without an explicit kind default to S.
    """
    if isinstance(source, PatternSpec):
        key_kind = AttributeKind(kind or source.kind)
        return KeyExtractor(key_kind, build_node(source, key_kind))

    if source.format is not None:
        key_kind = AttributeKind(kind or source.format.kind)
        return KeyExtractor(key_kind, build_node(source.format, key_kind))
    if source.from_field:
        path = tuple(source.from_field.split("."))
        return KeyExtractor(AttributeKind(kind or AttributeKind.S), FieldPathNode(path))
    if source.const is not None:
        const = source.const
        value = const.value if isinstance(const.value, bytes) else const.text
        return KeyExtractor(AttributeKind(kind or const.kind), LiteralNode(value))
    raise DefinitionError("value definition has no value source")


__all__ = [
    "AttributeValue",
    "AttributeMap",
    "ExtractionNode",
    "LiteralNode",
    "FieldPathNode",
    "ConcatNode",
    "KeyExtractor",
    "coerce",
    "build_node",
    "build_extractor",
]
