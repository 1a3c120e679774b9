"""Tests for keyspine.keys.conversion -- the type-aware conversion engine."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from keyspine.core.errors import EncodingError, MissingFloatFormatError, MissingTemporalFormatError
from keyspine.keys.conversion import (
    BestEffortString,
    DecimalString,
    EpochCounter,
    FieldAccessSource,
    ParamSource,
    PrintfFormat,
    SourceValue,
    TextValue,
    TimeLayout,
    UtcNormalize,
    convert,
    convert_for_sources,
)
from keyspine.keys.kinds import SemanticType
from keyspine.keys.pattern import parse_pattern


def ref(raw: str):
    return parse_pattern(raw).field_refs()[0]


TS = datetime(2024, 3, 9, 7, 5, 1, 123456, tzinfo=timezone.utc)


class TestDispatch:
    def test_text_identity(self):
        d = convert(ref("{name}"), "string")
        assert isinstance(d.expression, TextValue)
        assert d.encode("ada") == "ada"
        assert d.requires_format_library is False
        assert d.requires_numeric_library is False
        assert d.requires_temporal_library is False

    def test_text_width(self):
        d = convert(ref("{name:%5s}"), "string")
        assert isinstance(d.expression, PrintfFormat)
        assert d.encode("ab") == "   ab"
        assert d.requires_format_library is True

    def test_integer_unpadded(self):
        d = convert(ref("{count}"), "int64")
        assert isinstance(d.expression, DecimalString)
        assert d.encode(-12) == "-12"
        assert d.requires_numeric_library is True

    def test_integer_padded_sorts_numerically(self):
        d = convert(ref("{count:%020d}"), "int64")
        nine, ten = d.encode(9), d.encode(10)
        assert nine == "00000000000000000009"
        assert ten == "00000000000000000010"
        assert nine < ten

    def test_unsigned_rejects_negative(self):
        d = convert(ref("{count}"), "uint32")
        with pytest.raises(EncodingError):
            d.encode(-1)

    def test_float_requires_format(self):
        with pytest.raises(MissingFloatFormatError) as exc_info:
            convert(ref("{price}"), "float64")
        assert exc_info.value.context.field_path == "price"

    def test_float_width(self):
        d = convert(ref("{price:%020.2f}"), "float64")
        assert d.encode(3.14159) == "00000000000000003.14"

    def test_float_format_modifier_is_used_as_spec(self):
        d = convert(ref("{price:%.2f:x}"), float)
        # '%.2f' is not the last token, so the primary format "x" is used
        assert d.expression.spec == "x"

    def test_other_best_effort(self):
        d = convert(ref("{flag}"), "bool")
        assert isinstance(d.expression, BestEffortString)
        assert d.encode(True) == "true"
        assert convert(ref("{money}"), "Money").encode(12) == "12"

    def test_semantic_type_recorded(self):
        assert convert(ref("{c}"), "int").semantic_type is SemanticType.SIGNED_INTEGER


class TestTemporal:
    def test_requires_format(self):
        with pytest.raises(MissingTemporalFormatError) as exc_info:
            convert(ref("{ts}"), "time.Time")
        assert exc_info.value.utc_only is False

    def test_utc_alone_is_not_a_format(self):
        with pytest.raises(MissingTemporalFormatError) as exc_info:
            convert(ref("{ts:utc}"), "datetime")
        assert exc_info.value.utc_only is True

    def test_width_without_format_fails(self):
        with pytest.raises(MissingTemporalFormatError):
            convert(ref("{ts:%020d}"), "datetime")

    @pytest.mark.parametrize(
        "pattern, expected",
        [
            ("{ts:unix}", str(int(TS.timestamp()))),
            ("{ts:unixmilli}", "1709967901123"),
            ("{ts:unixnano}", "1709967901123456000"),
            ("{ts:unix:%011d}", "01709967901"),
            ("{ts:unixnano:%020d}", "01709967901123456000"),
        ],
    )
    def test_epoch_counters(self, pattern, expected):
        assert convert(ref(pattern), "datetime").encode(TS) == expected

    def test_epoch_floors_before_1970(self):
        before = datetime(1969, 12, 31, 23, 59, 59, 500000, tzinfo=timezone.utc)
        assert convert(ref("{ts:unix}"), "datetime").encode(before) == "-1"

    def test_epoch_flags(self):
        padded = convert(ref("{ts:unix:%011d}"), "datetime")
        assert padded.requires_format_library and padded.requires_temporal_library
        plain = convert(ref("{ts:unix}"), "datetime")
        assert plain.requires_numeric_library and plain.requires_temporal_library
        assert isinstance(plain.expression, DecimalString)
        assert isinstance(plain.expression.operand, EpochCounter)

    def test_rfc3339_keeps_zone(self):
        est = TS.astimezone(timezone(timedelta(hours=-5)))
        assert convert(ref("{ts:rfc3339}"), "datetime").encode(est) == "2024-03-09T02:05:01-05:00"

    def test_utc_normalizes_before_format(self):
        est = TS.astimezone(timezone(timedelta(hours=-5)))
        d = convert(ref("{ts:utc:rfc3339fixed}"), "datetime")
        assert isinstance(d.expression, TimeLayout)
        assert isinstance(d.expression.operand, UtcNormalize)
        assert d.encode(est) == "2024-03-09T07:05:01.123456000Z"

    def test_rfc3339nano(self):
        assert convert(ref("{ts:rfc3339nano}"), "datetime").encode(TS) == "2024-03-09T07:05:01.123456Z"

    def test_custom_layout(self):
        d = convert(ref("{ts:utc:2006-01-02}"), "datetime")
        assert d.expression.name is None
        assert d.encode(TS) == "2024-03-09"

    def test_naive_datetime_is_utc(self):
        naive = datetime(1970, 1, 1, 0, 0, 10)
        assert convert(ref("{ts:unix}"), "datetime").encode(naive) == "10"

    def test_non_datetime_value(self):
        with pytest.raises(EncodingError):
            convert(ref("{ts:unix}"), "datetime").encode("yesterday")


class TestValueSources:
    def test_default_source_is_param_named_after_last_component(self):
        d = convert(ref("{user.id}"), "string")
        assert d.expression.operand == SourceValue(ParamSource("id"))
        assert d.describe() == "id"

    def test_field_access_source(self):
        d = convert(ref("{user.id:%08d}"), "int", FieldAccessSource(("user", "id")))
        assert d.describe() == "printf('%08d', entity.user.id)"
        assert d.encode({"user": {"id": 7}}) == "00000007"

    def test_field_access_on_objects(self):
        @dataclass
        class User:
            id: int

        @dataclass
        class Order:
            user: User

        d = convert(ref("{user.id}"), "int", FieldAccessSource(("user", "id")))
        assert d.encode(Order(User(5))) == "5"

    def test_missing_field(self):
        d = convert(ref("{user.id}"), "string", FieldAccessSource(("user", "id")))
        with pytest.raises(EncodingError):
            d.encode({"user": {}})

    def test_both_sources_share_dispatch(self):
        param, entity = convert_for_sources(
            ref("{ts:utc:unixnano:%020d}"), "datetime", [ParamSource("ts"), FieldAccessSource(("ts",))]
        )
        assert type(param.expression) is type(entity.expression)
        assert param.encode(TS) == entity.encode({"ts": TS})
        assert param.describe() == "printf('%020d', unixnano(utc(ts)))"
        assert entity.describe() == "printf('%020d', unixnano(utc(entity.ts)))"


class TestEvaluationErrors:
    def test_text_requires_str(self):
        with pytest.raises(EncodingError):
            convert(ref("{name}"), "string").encode(5)

    def test_bad_printf(self):
        with pytest.raises(EncodingError):
            convert(ref("{count:%020d}"), "int").encode("abc")

    def test_decimal_rejects_bool(self):
        with pytest.raises(EncodingError):
            convert(ref("{count}"), "int").encode(True)


class TestSerialization:
    def test_to_dict(self):
        data = convert(ref("{ts:utc:unix:%011d}"), "datetime").to_dict()
        assert data["semantic_type"] == "temporal"
        assert data["expression"]["op"] == "printf"
        assert data["expression"]["operand"]["op"] == "epoch"
        assert data["expression"]["operand"]["operand"]["op"] == "utc"
        assert data["expression"]["operand"]["operand"]["operand"] == {"op": "param", "name": "ts"}
        assert data["rendered"] == "printf('%011d', unix(utc(ts)))"
