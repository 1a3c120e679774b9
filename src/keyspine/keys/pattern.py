"""
Key pattern parsing.

A pattern is a string template mixing literal text with ``{...}`` field
references. Each reference names a dot-separated field path, an ordered chain
of modifiers, and optionally a trailing printf-style width spec:

    ``{`` path (``:`` modifier)* (``:`` %printf-spec)? ``}``

Examples of valid patterns:
    - ``"PROFILE"``                    constant string
    - ``"{count}"``                    single field reference
    - ``"USER#{id}"``                  composite with one field
    - ``"ORDER#{tenant}#{id}"``        several field references, order kept
    - ``"{user.id}"``                  nested field (dot notation)
    - ``"{ts:unixnano:%020d}"``        epoch nanoseconds, zero padded
    - ``"{ts:utc:rfc3339fixed}"``      UTC-normalized fixed-width timestamp
    - ``"{seq:%08d}"``                 integer with printf padding

Manifesto:
    - **Pure:** ``parse_pattern`` depends only on its input
    - **Atomic:** a ``PatternSpec`` is either fully valid or not constructed
    - **Exact offsets:** every parse error reports where it happened
    - **No escaping:** literal ``{`` and ``}`` are rejected, not guessed at

Limitations:
    Only the *last* colon-separated token of a reference may be a width spec.
    A ``%`` token anywhere earlier in the chain is kept as a plain modifier.

Tags:
    parser, dsl, key-pattern, keyspine

Doc-Types:
    - API Reference
    - Pattern Grammar
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from keyspine.core.errors import (
    EmptyFieldReferenceError,
    EmptyPatternError,
    InvalidFieldPathError,
    PatternError,
    UnbalancedBraceError,
)
from keyspine.core.result import try_result

from .kinds import AttributeKind

if TYPE_CHECKING:
    from keyspine.core.result import Result

# Non-greedy, non-nested: a reference body never contains a brace.
_FIELD_REF = re.compile(r"\{([^{}]*)\}")

UTC_MODIFIER = "utc"


@dataclass(frozen=True, slots=True)
class LiteralSegment:
    """Fixed text between field references."""

    value: str

    @property
    def is_literal(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class FieldRef:
    """
    One ``{...}`` field reference.

    Attributes:
        path: Dotted field path, e.g. ``"user.id"``
        modifiers: Ordered modifier chain, e.g. ``("utc", "rfc3339fixed")``
        width_spec: Trailing printf-like spec, e.g. ``"%020d"``
    """

    path: str
    modifiers: tuple[str, ...] = ()
    width_spec: str | None = None

    @property
    def is_literal(self) -> bool:
        return False

    @property
    def path_components(self) -> tuple[str, ...]:
        """Split field path: ``"user.id"`` -> ``("user", "id")``."""
        return tuple(self.path.split("."))

    @property
    def param_name(self) -> str:
        """Identifier for this reference: the last path component."""
        return self.path_components[-1]

    @property
    def primary_format(self) -> str | None:
        """The encoding format: the last modifier, or None without modifiers."""
        if not self.modifiers:
            return None
        return self.modifiers[-1]

    @property
    def pre_transforms(self) -> tuple[str, ...]:
        """Modifiers applied before the primary format."""
        return self.modifiers[:-1]

    def has_modifier(self, modifier: str) -> bool:
        return modifier in self.modifiers

    @property
    def is_utc(self) -> bool:
        return self.has_modifier(UTC_MODIFIER)

    def __str__(self) -> str:
        tokens = [self.path, *self.modifiers]
        if self.width_spec is not None:
            tokens.append(self.width_spec)
        return "{" + ":".join(tokens) + "}"


Segment = LiteralSegment | FieldRef


@dataclass(frozen=True, slots=True)
class PatternSpec:
    """
    A parsed key pattern.

    Immutable and safe to share across threads. Build it with
    :func:`parse_pattern` (or :func:`fmt`, :func:`num_fmt`, :func:`byte_fmt`)
    rather than directly.

    Attributes:
        raw: Original pattern string
        kind: Target attribute kind of the derived key
        segments: Ordered literal and field-reference segments, never empty
    """

    raw: str
    kind: AttributeKind = AttributeKind.S
    segments: tuple[Segment, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.raw == "":
            raise EmptyPatternError()
        if not self.segments:
            raise PatternError("pattern has no segments", pattern=self.raw)

    @property
    def is_constant(self) -> bool:
        """True when the pattern has no field references."""
        return len(self.segments) == 1 and self.segments[0].is_literal

    @property
    def literal_prefix(self) -> str:
        """
        Literal text before the first field reference.

        ``"ORDER#{id}"`` -> ``"ORDER#"``, ``"{id}"`` -> ``""``. Range-query
        builders use it as a begins-with prefix.
        """
        first = self.segments[0]
        if isinstance(first, LiteralSegment):
            return first.value
        return ""

    def field_refs(self) -> list[FieldRef]:
        """All field references, in pattern order."""
        return [s for s in self.segments if isinstance(s, FieldRef)]

    def field_paths(self) -> list[str]:
        """All field paths, in pattern order: ``"ORDER#{tenant}#{id}"`` -> ``["tenant", "id"]``."""
        return [ref.path for ref in self.field_refs()]

    def __str__(self) -> str:
        return self.raw


def parse_pattern(raw: str, kind: AttributeKind | str = AttributeKind.S) -> PatternSpec:
    """
    Parse a pattern string into a :class:`PatternSpec`.

    Raises:
        EmptyPatternError: ``raw`` is empty
        EmptyFieldReferenceError: a ``{}`` pair encloses nothing
        InvalidFieldPathError: a path component is empty (``{a..b}``)
        UnbalancedBraceError: a ``{`` or ``}`` cannot form a reference

    Examples:
        >>> spec = parse_pattern("USER#{id}")
        >>> spec.segments
        (LiteralSegment(value='USER#'), FieldRef(path='id', modifiers=(), width_spec=None))
        >>> spec.literal_prefix
        'USER#'
    """
    if raw == "":
        raise EmptyPatternError()

    segments: list[Segment] = []
    last_end = 0
    for match in _FIELD_REF.finditer(raw):
        start, end = match.span()
        if start > last_end:
            segments.append(_literal(raw, last_end, start))

        body = match.group(1)
        if body == "":
            raise EmptyFieldReferenceError(raw, start)
        segments.append(_parse_field_ref(raw, body, match.start(1)))
        last_end = end

    if last_end < len(raw):
        segments.append(_literal(raw, last_end, len(raw)))

    return PatternSpec(raw=raw, kind=AttributeKind(kind), segments=tuple(segments))


def try_parse(raw: str, kind: AttributeKind | str = AttributeKind.S) -> Result[PatternSpec]:
    """:func:`parse_pattern` returning ``Ok``/``Err`` instead of raising."""
    return try_result(lambda: parse_pattern(raw, kind))


def _literal(raw: str, start: int, end: int) -> LiteralSegment:
    text = raw[start:end]
    for i, char in enumerate(text):
        if char in "{}":
            raise UnbalancedBraceError(raw, start + i, char)
    return LiteralSegment(text)


def _parse_field_ref(raw: str, body: str, offset: int) -> FieldRef:
    tokens = body.split(":")
    path = tokens[0]
    rest = tokens[1:]

    for i, component in enumerate(path.split(".")):
        if component == "":
            raise InvalidFieldPathError(path, i, pattern=raw, offset=offset)

    width_spec = None
    if rest and rest[-1].startswith("%"):
        width_spec = rest[-1]
        rest = rest[:-1]

    return FieldRef(path=path, modifiers=tuple(rest), width_spec=width_spec)


def fmt(raw: str) -> PatternSpec:
    """String-kind pattern: ``fmt("USER#{id}")``."""
    return parse_pattern(raw, AttributeKind.S)


def num_fmt(raw: str) -> PatternSpec:
    """Number-kind pattern: ``num_fmt("{version}")``."""
    return parse_pattern(raw, AttributeKind.N)


def byte_fmt(raw: str) -> PatternSpec:
    """Binary-kind pattern: ``byte_fmt("{digest}")``."""
    return parse_pattern(raw, AttributeKind.B)


__all__ = [
    "LiteralSegment",
    "FieldRef",
    "Segment",
    "PatternSpec",
    "UTC_MODIFIER",
    "parse_pattern",
    "try_parse",
    "fmt",
    "num_fmt",
    "byte_fmt",
]
