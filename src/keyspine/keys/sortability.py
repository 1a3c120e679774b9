"""
Sort-key safety advice.

Storage backends compare sort keys byte by byte. An encoding whose width
varies with the value (``"9"`` vs ``"10"``) or whose text depends on the
timezone it was rendered in breaks range queries without any error. The
advisor spots those encodings statically and explains how to fix them.

Diagnostics are advisory: nothing here raises, and nothing here logs. The
compiler decides whether to log them, the CLI decides whether to fail.

Examples:
    >>> from keyspine.keys.pattern import FieldRef
    >>> check_sort_safety(FieldRef("count"), "int64", "Order").condition
    <UnsafeCondition.UNPADDED_INTEGER: 'unpadded_integer'>
    >>> check_sort_safety(FieldRef("count", width_spec="%020d"), "int64", "Order") is None
    True
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .kinds import SemanticType, classify_type, type_label
from .pattern import FieldRef, PatternSpec


class UnsafeCondition(str, Enum):
    """Why an encoding does not collate in value order."""

    UNPADDED_INTEGER = "unpadded_integer"
    UNPADDED_FLOAT = "unpadded_float"
    UNPADDED_EPOCH = "unpadded_epoch"
    VARIABLE_WIDTH_TIMESTAMP = "variable_width_timestamp"
    ZONED_FIXED_TIMESTAMP = "zoned_fixed_timestamp"


@dataclass(frozen=True, slots=True)
class SortabilityDiagnostic:
    """
    One unsafe sort-key encoding.

    Attributes:
        entity: Entity label the key belongs to
        field_path: Field reference the diagnostic is about
        condition: Detected unsafe condition
        cause: One line describing what breaks
        suggestion: One line describing the fix
    """

    entity: str
    field_path: str
    condition: UnsafeCondition
    cause: str
    suggestion: str

    @property
    def message(self) -> str:
        return f"{self.entity} sort key field {self.field_path!r}: {self.cause} Fix: {self.suggestion}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "field_path": self.field_path,
            "condition": self.condition.value,
            "cause": self.cause,
            "suggestion": self.suggestion,
        }

    def __str__(self) -> str:
        return self.message


# (digits before 2001-09-09, digits after, padded width)
_EPOCH_DIGITS: dict[str, tuple[int, int, str]] = {
    "unix": (9, 10, "%011d"),
    "unixmilli": (12, 13, "%014d"),
    "unixnano": (18, 19, "%020d"),
}


def has_padding(width_spec: str | None) -> bool:
    """True for a zero-padding spec such as ``%020d`` (``%0`` plus a width)."""
    return width_spec is not None and width_spec.startswith("%0") and len(width_spec) > 2


def check_sort_safety(
    ref: FieldRef,
    field_type: str | type | SemanticType,
    entity_label: str,
) -> SortabilityDiagnostic | None:
    """
    Check one field reference used in sort-key position.

    Returns:
        A diagnostic for the first rule that matches, or None when the
        encoding collates in value order.
    """
    semantic = classify_type(field_type)
    label = type_label(field_type)

    def diagnostic(condition: UnsafeCondition, cause: str, suggestion: str) -> SortabilityDiagnostic:
        return SortabilityDiagnostic(entity_label, ref.path, condition, cause, suggestion)

    if semantic.is_integer and not has_padding(ref.width_spec):
        return diagnostic(
            UnsafeCondition.UNPADDED_INTEGER,
            f"{label} without padding format; string comparison treats \"9\" > \"10\".",
            "use a Number sort key or add padding, e.g. {field:%020d}",
        )

    if semantic is SemanticType.FLOAT and not has_padding(ref.width_spec):
        spec = ref.width_spec or ref.primary_format or ""
        return diagnostic(
            UnsafeCondition.UNPADDED_FLOAT,
            f"{label} format {spec!r} has no total width padding.",
            "specify total width, e.g. {field:%020.2f}",
        )

    if semantic is not SemanticType.TEMPORAL:
        return None

    token = ref.primary_format
    if token in _EPOCH_DIGITS and not has_padding(ref.width_spec):
        before, after, padded = _EPOCH_DIGITS[token]
        return diagnostic(
            UnsafeCondition.UNPADDED_EPOCH,
            f"{token!r} timestamp without padding changes digit count "
            f"({before} digits before 2001-09-09, {after} after).",
            f"add padding, e.g. {{field:{token}:{padded}}}",
        )
    if token == "rfc3339":
        return diagnostic(
            UnsafeCondition.VARIABLE_WIDTH_TIMESTAMP,
            "'rfc3339' has variable length and timezone-dependent ordering.",
            "use padded unix/unixmilli/unixnano or {field:utc:rfc3339fixed}",
        )
    if token == "rfc3339nano":
        return diagnostic(
            UnsafeCondition.VARIABLE_WIDTH_TIMESTAMP,
            "'rfc3339nano' has variable length because trailing zeros are stripped.",
            "use padded unix/unixmilli/unixnano or {field:utc:rfc3339fixed}",
        )
    if token == "rfc3339fixed" and not ref.is_utc:
        return diagnostic(
            UnsafeCondition.ZONED_FIXED_TIMESTAMP,
            "'rfc3339fixed' without utc keeps the local offset, so values from different zones misorder.",
            "normalize first: {field:utc:rfc3339fixed}",
        )
    return None


def check_spec_sort_safety(
    spec: PatternSpec,
    field_types: Mapping[str, str | type | SemanticType],
    entity_label: str,
) -> list[SortabilityDiagnostic]:
    """
    Run :func:`check_sort_safety` on every field reference of ``spec``.

    References whose path is missing from ``field_types`` are skipped; the
    compiler reports those as definition errors.
    """
    diagnostics = []
    for ref in spec.field_refs():
        if ref.path not in field_types:
            continue
        found = check_sort_safety(ref, field_types[ref.path], entity_label)
        if found is not None:
            diagnostics.append(found)
    return diagnostics


__all__ = [
    "UnsafeCondition",
    "SortabilityDiagnostic",
    "has_padding",
    "check_sort_safety",
    "check_spec_sort_safety",
]
