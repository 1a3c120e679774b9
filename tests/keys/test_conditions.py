"""Tests for keyspine.keys.conditions."""

import pytest

from keyspine.core.errors import DefinitionError
from keyspine.keys.compiler import SORT, compile_key
from keyspine.keys.conditions import (
    SortKeyCondition,
    begins_with,
    between,
    equals,
    greater_or_equal,
    greater_than,
    less_or_equal,
    less_than,
)
from keyspine.keys.index import KeyDef
from keyspine.keys.values import ValueDef


@pytest.fixture
def order_sk():
    return compile_key(
        "Order",
        "table",
        SORT,
        KeyDef("sk"),
        ValueDef.of_format("ORDER#{region}#{seq:%08d}"),
        {"region": "string", "seq": "int64"},
    )


class TestSortKeyCondition:
    def test_unknown_operator(self):
        with pytest.raises(DefinitionError, match="unsupported"):
            SortKeyCondition("!=", ("a",))

    @pytest.mark.parametrize("op, values", [("=", ()), ("<", ("a", "b")), ("between", ("a",)), ("begins_with", ())])
    def test_arity(self, op, values):
        with pytest.raises(DefinitionError):
            SortKeyCondition(op, values)

    def test_comparison_expression(self):
        assert SortKeyCondition("<=", ("x",)).to_expression() == ("#sk <= :sk", {":sk": "x"})

    def test_begins_with_expression(self):
        condition = SortKeyCondition("begins_with", ("ORDER#",))
        assert condition.to_expression("#s", ":v") == ("begins_with(#s, :v)", {":v": "ORDER#"})

    def test_between_expression(self):
        expression, values = SortKeyCondition("between", ("a", "c")).to_expression()
        assert expression == "#sk BETWEEN :sk1 AND :sk2"
        assert values == {":sk1": "a", ":sk2": "c"}

    @pytest.mark.parametrize(
        "op, values, stored, expected",
        [
            ("=", ("b",), "b", True),
            ("<", ("b",), "a", True),
            ("<", ("b",), "b", False),
            ("<=", ("b",), "b", True),
            (">", ("b",), "c", True),
            (">=", ("b",), "a", False),
            ("between", ("b", "d"), "d", True),
            ("between", ("b", "d"), "e", False),
            ("begins_with", ("OR",), "ORDER#1", True),
            ("begins_with", ("OR",), "USER#1", False),
        ],
    )
    def test_matches(self, op, values, stored, expected):
        assert SortKeyCondition(op, values).matches(stored) is expected


class TestFromPlan:
    def test_comparisons_use_param_encoding(self, order_sk):
        assert equals(order_sk, region="eu", seq=7).values == ("ORDER#eu#00000007",)
        assert less_than(order_sk, region="eu", seq=7).op == "<"
        assert less_or_equal(order_sk, region="eu", seq=7).op == "<="
        assert greater_than(order_sk, region="eu", seq=7).op == ">"
        assert greater_or_equal(order_sk, region="eu", seq=7).op == ">="

    def test_missing_value(self, order_sk):
        with pytest.raises(DefinitionError):
            equals(order_sk, region="eu")

    def test_between(self, order_sk):
        condition = between(order_sk, {"region": "eu", "seq": 9}, {"region": "eu", "seq": 10})
        assert condition.values == ("ORDER#eu#00000009", "ORDER#eu#00000010")
        assert condition.matches("ORDER#eu#00000009")
        assert condition.matches("ORDER#eu#00000010")
        assert not condition.matches("ORDER#eu#00000011")

    def test_begins_with_literal_prefix(self, order_sk):
        assert begins_with(order_sk).values == ("ORDER#",)

    def test_begins_with_partial_values(self, order_sk):
        assert begins_with(order_sk, region="eu").values == ("ORDER#eu#",)

    def test_begins_with_extra_prefix(self, order_sk):
        assert begins_with(order_sk, "e").values == ("ORDER#e",)
