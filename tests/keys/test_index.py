"""Tests for keyspine.keys.index -- primary/secondary key derivation."""

import json

import pytest
import structlog

from keyspine.core.errors import DefinitionError, FieldNotFoundError, UnsupportedAttributeError
from keyspine.core.logging import configure_logging
from keyspine.keys.index import (
    GSIDefinition,
    KeyDef,
    PrimaryIndex,
    PrimaryKeyDefinition,
    SecondaryIndex,
    TableDefinition,
)
from keyspine.keys.kinds import AttributeKind
from keyspine.keys.values import ValueDef


class TestTableDefinition:
    def test_gsi_lookup(self, users_table):
        assert users_table.gsi("gsi2").key_definitions.partition_key.name == "gsi2pk"
        with pytest.raises(DefinitionError):
            users_table.gsi("nope")

    def test_ttl_key(self, users_table):
        assert users_table.ttl_key == "expires_at"


class TestValidate:
    def test_valid(self, user_index):
        user_index.validate()

    def test_table_name_required(self, users_table):
        index = PrimaryIndex(TableDefinition("", users_table.key_definitions), ValueDef.of_format("A"))
        with pytest.raises(DefinitionError, match="table name"):
            index.validate()

    def test_partition_key_required(self, users_table):
        with pytest.raises(DefinitionError, match="partition key"):
            PrimaryIndex(users_table, ValueDef()).validate()

    def test_sort_value_without_sort_key(self):
        table = TableDefinition("t", PrimaryKeyDefinition(KeyDef("pk")))
        with pytest.raises(DefinitionError):
            PrimaryIndex(table, ValueDef.of_format("A"), ValueDef.string("B")).validate()

    def test_gsi_errors_are_prefixed(self, users_table):
        bad = SecondaryIndex(users_table.gsis[1], ValueDef())
        index = PrimaryIndex(users_table, ValueDef.of_format("A"), secondary=(bad,))
        with pytest.raises(DefinitionError, match="GSI 'gsi2'"):
            index.validate()

    def test_gsi_name_required(self):
        gsi = SecondaryIndex(GSIDefinition("", PrimaryKeyDefinition(KeyDef("pk"))), ValueDef.of_format("A"))
        with pytest.raises(DefinitionError, match="GSI name"):
            gsi.validate()

    def test_gsi_partition_key_name_required(self):
        gsi = SecondaryIndex(GSIDefinition("g", PrimaryKeyDefinition(KeyDef(""))), ValueDef.of_format("A"))
        with pytest.raises(DefinitionError, match="partition key name"):
            gsi.validate()


class TestPrimaryKey:
    def test_primary_key(self, user_index, user_record):
        assert user_index.primary_key(user_record) == {"pk": {"S": "USER#42"}, "sk": {"S": "PROFILE"}}

    def test_missing_field_is_hard_failure(self, user_index):
        with pytest.raises(FieldNotFoundError) as exc_info:
            user_index.primary_key({"email": {"S": "x"}})
        context = exc_info.value.context
        assert context.entity == "User"
        assert context.index == "table"
        assert context.key == "pk"

    def test_number_kind_key(self):
        table = TableDefinition("t", PrimaryKeyDefinition(KeyDef("pk"), KeyDef("version", AttributeKind.N)))
        index = PrimaryIndex(table, ValueDef.of_format("DOC#{id}"), ValueDef.field("version"))
        assert index.primary_key({"id": {"S": "a"}, "version": {"N": "3"}}) == {
            "pk": {"S": "DOC#a"},
            "version": {"N": "3"},
        }


class TestSparseGSI:
    def test_participating(self, user_index, user_record):
        assert user_index.extract_gsi_keys(user_record) == {
            "gsi1pk": {"S": "EMAIL#ada@example.com"},
            "gsi1sk": {"S": "USER#42"},
        }

    def test_excluded_record_yields_none(self, user_index):
        gsi = user_index.secondary[0]
        assert gsi.extract_keys({"id": {"S": "42"}}) is None

    def test_excluded_when_sort_field_missing(self, user_index):
        gsi = user_index.secondary[0]
        assert gsi.extract_keys({"email": {"S": "a@b"}}) is None

    def test_other_errors_propagate(self, user_index):
        gsi = user_index.secondary[1]
        with pytest.raises(UnsupportedAttributeError):
            gsi.extract_keys({"nickname": {"L": []}})

    def test_nickname_gsi(self, user_index, user_record):
        record = {**user_record, "nickname": {"S": "ada"}}
        assert user_index.extract_gsi_keys(record)["gsi2pk"] == {"S": "ada"}

    def test_index_keys(self, user_index, user_record):
        keys = user_index.index_keys(user_record)
        assert list(keys) == ["pk", "sk", "gsi1pk", "gsi1sk"]

    def test_with_keys(self, user_index, user_record):
        item = user_index.with_keys(user_record)
        assert item["id"] == {"S": "42"}
        assert item["pk"] == {"S": "USER#42"}

    def test_exclusion_is_logged(self, user_index, capsys):
        configure_logging(level="DEBUG", json_format=True)
        try:
            assert user_index.secondary[0].extract_keys({}) is None
        finally:
            structlog.reset_defaults()
        event = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert event["event"] == "record_excluded_from_index"
        assert event["index"] == "gsi1"
        assert event["key"] == "gsi1pk"
        assert event["field_path"] == "email"
