"""
Sort-key range conditions built from compiled key plans.

Values are rendered with the key plan's parameter encodings, so a range
query compares exactly the text the writer stored.

Examples:
    >>> from keyspine.keys.compiler import compile_key, SORT
    >>> from keyspine.keys.index import KeyDef
    >>> from keyspine.keys.values import ValueDef
    >>> plan = compile_key("Order", "table", SORT, KeyDef("sk"), ValueDef.of_format("ORDER#{seq:%08d}"), {"seq": "int"})
    >>> between(plan, {"seq": 1}, {"seq": 20}).values
    ('ORDER#00000001', 'ORDER#00000020')
    >>> begins_with(plan).values
    ('ORDER#',)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from keyspine.core.errors import DefinitionError

from .compiler import KeyPlan

COMPARISON_OPS = frozenset({"=", "<", "<=", ">", ">="})
SORT_KEY_OPS = COMPARISON_OPS | {"between", "begins_with"}


@dataclass(frozen=True, slots=True)
class SortKeyCondition:
    """A sort-key operator and its already encoded operands."""

    op: str
    values: tuple[str, ...]

    def __post_init__(self) -> None:
        if self.op not in SORT_KEY_OPS:
            raise DefinitionError(f"unsupported sort key operator: {self.op}")
        expected = 2 if self.op == "between" else 1
        if len(self.values) != expected:
            raise DefinitionError(f"sort key operator {self.op!r} takes {expected} value(s), got {len(self.values)}")

    def to_expression(self, name_ref: str = "#sk", value_ref: str = ":sk") -> tuple[str, dict[str, str]]:
        """
        Render as a key condition expression fragment plus its value map.

        >>> SortKeyCondition("between", ("a", "b")).to_expression()
        ('#sk BETWEEN :sk1 AND :sk2', {':sk1': 'a', ':sk2': 'b'})
        """
        if self.op == "between":
            low, high = f"{value_ref}1", f"{value_ref}2"
            return f"{name_ref} BETWEEN {low} AND {high}", {low: self.values[0], high: self.values[1]}
        if self.op == "begins_with":
            return f"begins_with({name_ref}, {value_ref})", {value_ref: self.values[0]}
        return f"{name_ref} {self.op} {value_ref}", {value_ref: self.values[0]}

    def matches(self, stored: str) -> bool:
        """Evaluate against a stored sort key using byte-wise comparison."""
        value = self.values[0]
        match self.op:
            case "=":
                return stored == value
            case "<":
                return stored < value
            case "<=":
                return stored <= value
            case ">":
                return stored > value
            case ">=":
                return stored >= value
            case "between":
                return self.values[0] <= stored <= self.values[1]
            case _:
                return stored.startswith(value)


def _compare(plan: KeyPlan, op: str, values: Mapping[str, Any]) -> SortKeyCondition:
    return SortKeyCondition(op, (plan.encode_params(**values),))


def equals(plan: KeyPlan, **values: Any) -> SortKeyCondition:
    return _compare(plan, "=", values)


def less_than(plan: KeyPlan, **values: Any) -> SortKeyCondition:
    return _compare(plan, "<", values)


def less_or_equal(plan: KeyPlan, **values: Any) -> SortKeyCondition:
    return _compare(plan, "<=", values)


def greater_than(plan: KeyPlan, **values: Any) -> SortKeyCondition:
    return _compare(plan, ">", values)


def greater_or_equal(plan: KeyPlan, **values: Any) -> SortKeyCondition:
    return _compare(plan, ">=", values)


def between(plan: KeyPlan, start: Mapping[str, Any], end: Mapping[str, Any]) -> SortKeyCondition:
    """Inclusive range between two sets of parameter values."""
    return SortKeyCondition("between", (plan.encode_params(**start), plan.encode_params(**end)))


def begins_with(plan: KeyPlan, prefix: str = "", **values: Any) -> SortKeyCondition:
    """
    Prefix condition.

    With parameter values, encodes the key up to the first missing
    parameter. Without them, uses the key's literal prefix. ``prefix`` is
    appended in both cases.
    """
    base = plan.encode_prefix(**values) if values else plan.literal_prefix
    return SortKeyCondition("begins_with", (base + prefix,))


__all__ = [
    "COMPARISON_OPS",
    "SORT_KEY_OPS",
    "SortKeyCondition",
    "equals",
    "less_than",
    "less_or_equal",
    "greater_than",
    "greater_or_equal",
    "between",
    "begins_with",
]
