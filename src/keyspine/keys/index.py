"""
Table and index definitions, and key derivation for whole records.

A :class:`PrimaryIndex` ties an entity's key value definitions to a table:
the table partition/sort key, and one :class:`SecondaryIndex` per GSI.
Definitions are built once (usually at import time), registered, and then
only read.

Manifesto:
    Every record has a primary key, so a missing primary key field is a hard
    failure. Secondary indexes are sparse: a record that lacks a field a GSI
    key needs simply does not appear in that index.

Examples:
    >>> table = TableDefinition(
    ...     name="users",
    ...     key_definitions=PrimaryKeyDefinition(KeyDef("pk"), KeyDef("sk")),
    ...     gsis=(GSIDefinition("gsi1", PrimaryKeyDefinition(KeyDef("gsi1pk"))),),
    ... )
    >>> index = PrimaryIndex(
    ...     table=table,
    ...     partition_key=ValueDef.of_format("USER#{id}"),
    ...     sort_key=ValueDef.string("PROFILE"),
    ...     secondary=(SecondaryIndex(table.gsis[0], ValueDef.of_format("EMAIL#{email}")),),
    ... )
    >>> index.primary_key({"id": {"S": "1"}})
    {'pk': {'S': 'USER#1'}, 'sk': {'S': 'PROFILE'}}
    >>> index.extract_gsi_keys({"id": {"S": "1"}})
    {}

Tags:
    index, gsi, sparse-index, keyspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

from keyspine.core.errors import DefinitionError, FieldNotFoundError
from keyspine.core.logging import get_logger

from .extract import AttributeMap, AttributeValue, KeyExtractor, build_extractor
from .kinds import AttributeKind
from .values import ValueDef

logger = get_logger(__name__)

TABLE_INDEX = "table"


@dataclass(frozen=True, slots=True)
class KeyDef:
    """A key attribute: its name and stored kind."""

    name: str
    kind: AttributeKind = AttributeKind.S


@dataclass(frozen=True, slots=True)
class PrimaryKeyDefinition:
    partition_key: KeyDef
    sort_key: KeyDef | None = None


@dataclass(frozen=True, slots=True)
class GSIDefinition:
    name: str
    key_definitions: PrimaryKeyDefinition


@dataclass(frozen=True, slots=True)
class TableDefinition:
    """Physical table layout."""

    name: str
    key_definitions: PrimaryKeyDefinition
    gsis: tuple[GSIDefinition, ...] = ()
    ttl_key: str | None = None

    def gsi(self, name: str) -> GSIDefinition:
        for gsi in self.gsis:
            if gsi.name == name:
                return gsi
        raise DefinitionError(f"table {self.name!r} has no GSI {name!r}")


def _key_extractor(key: KeyDef, value: ValueDef) -> KeyExtractor:
    return build_extractor(value, key.kind)


@dataclass(frozen=True)
class SecondaryIndex:
    """Key value definitions for one GSI."""

    gsi: GSIDefinition
    partition: ValueDef
    sort: ValueDef | None = None

    @property
    def name(self) -> str:
        return self.gsi.name

    def validate(self) -> None:
        """
        Raises:
            DefinitionError: missing GSI name, key names or value sources
        """
        if not self.gsi.name:
            raise DefinitionError("secondary index GSI name is required")
        if not self.gsi.key_definitions.partition_key.name:
            raise DefinitionError(f"partition key name is required for GSI {self.gsi.name!r}")
        if not self.partition.has_value_source():
            raise DefinitionError(
                f"partition key value source (format, field or const) is required for GSI {self.gsi.name!r}"
            )
        sort_key = self.gsi.key_definitions.sort_key
        if self.sort is not None and not self.sort.is_zero() and sort_key is None:
            raise DefinitionError(f"GSI {self.gsi.name!r} defines a sort value but has no sort key")

    @cached_property
    def _extractors(self) -> list[tuple[str, KeyExtractor]]:
        keys = self.gsi.key_definitions
        extractors = [(keys.partition_key.name, _key_extractor(keys.partition_key, self.partition))]
        if keys.sort_key is not None and self.sort is not None and not self.sort.is_zero():
            extractors.append((keys.sort_key.name, _key_extractor(keys.sort_key, self.sort)))
        return extractors

    def extract_keys(self, record: AttributeMap) -> dict[str, AttributeValue] | None:
        """
        Derive this GSI's key attributes, or None when the record is not in it.

        Only a missing field excludes a record; other extraction errors
        propagate.
        """
        keys: dict[str, AttributeValue] = {}
        for name, extractor in self._extractors:
            try:
                keys[name] = extractor.apply(record)
            except FieldNotFoundError as e:
                logger.debug(
                    "record_excluded_from_index",
                    index=self.name,
                    key=name,
                    field_path=e.context.field_path,
                )
                return None
        return keys


@dataclass(frozen=True)
class PrimaryIndex:
    """
    An entity's table keys plus its GSIs.

    Attributes:
        table: Table the entity lives in
        partition_key: Table partition key value definition
        sort_key: Table sort key value definition, if the table has one
        secondary: One entry per GSI the entity participates in
        entity: Entity label used in diagnostics and the registry
    """

    table: TableDefinition
    partition_key: ValueDef
    sort_key: ValueDef | None = None
    secondary: tuple[SecondaryIndex, ...] = field(default=())
    entity: str | None = None

    @property
    def table_name(self) -> str:
        return self.table.name

    def validate(self) -> None:
        """
        Raises:
            DefinitionError: the first problem found, GSI problems prefixed
        """
        if not self.table.name:
            raise DefinitionError("table name is required")
        if self.partition_key.is_zero():
            raise DefinitionError("partition key format is required")
        if self.sort_key is not None and not self.sort_key.is_zero() and self.table.key_definitions.sort_key is None:
            raise DefinitionError(f"table {self.table.name!r} has no sort key but a sort value is defined")

        for gsi in self.secondary:
            try:
                gsi.validate()
            except DefinitionError as e:
                raise DefinitionError(f"GSI {gsi.name!r}: {e.message}", cause=e) from e

    @cached_property
    def _primary_extractors(self) -> list[tuple[str, KeyExtractor]]:
        keys = self.table.key_definitions
        extractors = [(keys.partition_key.name, _key_extractor(keys.partition_key, self.partition_key))]
        if keys.sort_key is not None and self.sort_key is not None and not self.sort_key.is_zero():
            extractors.append((keys.sort_key.name, _key_extractor(keys.sort_key, self.sort_key)))
        return extractors

    def primary_key(self, record: AttributeMap) -> dict[str, AttributeValue]:
        """
        Derive the table key attributes.

        Raises:
            FieldNotFoundError: a field the primary key needs is absent
        """
        keys: dict[str, AttributeValue] = {}
        for name, extractor in self._primary_extractors:
            try:
                keys[name] = extractor.apply(record)
            except FieldNotFoundError as e:
                raise e.with_context(entity=self.entity, index=TABLE_INDEX, key=name)
        return keys

    def extract_gsi_keys(self, record: AttributeMap) -> dict[str, AttributeValue]:
        """Key attributes of every GSI the record participates in, merged."""
        keys: dict[str, AttributeValue] = {}
        for gsi in self.secondary:
            gsi_keys = gsi.extract_keys(record)
            if gsi_keys is not None:
                keys.update(gsi_keys)
        return keys

    def index_keys(self, record: AttributeMap) -> dict[str, AttributeValue]:
        """Primary key attributes followed by all participating GSI keys."""
        return {**self.primary_key(record), **self.extract_gsi_keys(record)}

    def with_keys(self, record: AttributeMap) -> dict[str, Any]:
        """A copy of ``record`` with every derived key attribute set."""
        return {**record, **self.index_keys(record)}


__all__ = [
    "TABLE_INDEX",
    "KeyDef",
    "PrimaryKeyDefinition",
    "GSIDefinition",
    "TableDefinition",
    "SecondaryIndex",
    "PrimaryIndex",
]
