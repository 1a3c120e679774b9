"""
Index compilation: every key of an entity's index, compiled against a field
type table.

``compile_index`` is where the pieces meet. For each key (table partition
and sort key, each GSI's partition and sort key) it converts every field
reference twice, once per value source, and runs the sortability advisor on
sort-key positions. The result is an :class:`IndexPlan` an emitter can turn
into source code, and which range-query helpers can evaluate directly.

Manifesto:
    - **One dispatch, two sources:** the parameter and entity encodings come
      from the same ``convert`` call with a different value source
    - **All errors at once:** every key is compiled before failing, so one
      run reports every broken pattern
    - **Advice is not failure:** diagnostics are attached to the plan and
      logged, never raised

Architecture:
    ::

        PrimaryIndex ──┐
        field_types  ──┼──▶ compile_index() ──▶ IndexPlan(entity, table, keys)
        entity label ──┘                                 │
                                                  KeyPlan per key
                                      ┌──────────────────┼──────────────────┐
                                      ▼                  ▼                  ▼
                               ParamPlan per ref   literal_prefix    diagnostics
                               (param + entity      is_constant      (sort keys)
                                descriptors)        capability flags

Examples:
    >>> from keyspine.keys.index import KeyDef, PrimaryKeyDefinition, TableDefinition, PrimaryIndex
    >>> from keyspine.keys.values import ValueDef
    >>> table = TableDefinition("orders", PrimaryKeyDefinition(KeyDef("pk"), KeyDef("sk")))
    >>> index = PrimaryIndex(table, ValueDef.of_format("TENANT#{tenant}"), ValueDef.of_format("ORDER#{seq:%08d}"))
    >>> plan = compile_index("Order", index, {"tenant": "string", "seq": "int64"}, warn_unsortable=False)
    >>> plan.key("table", "sort").encode_params(seq=42)
    'ORDER#00000042'

Tags:
    compiler, code-generation, index-plan, keyspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from keyspine.core.errors import DefinitionError, KeySpineError, UnknownFieldError
from keyspine.core.logging import get_logger
from keyspine.core.result import collect_all_errors, try_result

from .conversion import ConversionDescriptor, FieldAccessSource, ParamSource, convert
from .index import TABLE_INDEX, KeyDef, PrimaryIndex
from .kinds import AttributeKind, SemanticType
from .pattern import FieldRef, LiteralSegment, PatternSpec
from .sortability import SortabilityDiagnostic, check_sort_safety
from .values import ValueDef

logger = get_logger(__name__)

PARTITION = "partition"
SORT = "sort"

FieldTypes = Mapping[str, "str | type | SemanticType"]


@dataclass(frozen=True, slots=True)
class ParamPlan:
    """
    One field reference compiled for both value sources.

    Attributes:
        name: Parameter name (last path component, or the whole path joined
            with ``_`` when two references share a last component)
        field_path: Dotted path on the entity
        semantic_type: Semantic family of the field
        param: Encoding of a named input value
        entity: Encoding of the field read from a record
    """

    name: str
    field_path: str
    semantic_type: SemanticType
    param: ConversionDescriptor
    entity: ConversionDescriptor

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "field_path": self.field_path,
            "semantic_type": self.semantic_type.value,
            "param": self.param.to_dict(),
            "entity": self.entity.to_dict(),
        }


@dataclass(frozen=True)
class KeyPlan:
    """
    A compiled key.

    ``parts`` keeps literal text and :class:`ParamPlan` entries in pattern
    order; the expressions and encoders below are concatenations over it.
    """

    index: str
    role: str
    key_name: str
    kind: AttributeKind
    source: str
    parts: tuple[str | ParamPlan, ...]
    diagnostics: tuple[SortabilityDiagnostic, ...] = ()

    @property
    def params(self) -> tuple[ParamPlan, ...]:
        seen: dict[str, ParamPlan] = {}
        for part in self.parts:
            if isinstance(part, ParamPlan):
                seen.setdefault(part.name, part)
        return tuple(seen.values())

    @property
    def is_constant(self) -> bool:
        return all(isinstance(part, str) for part in self.parts)

    @property
    def literal_prefix(self) -> str:
        if self.parts and isinstance(self.parts[0], str):
            return self.parts[0]
        return ""

    @property
    def is_sort_key(self) -> bool:
        return self.role == SORT

    @property
    def requires_format_library(self) -> bool:
        return any(p.param.requires_format_library or p.entity.requires_format_library for p in self.params)

    @property
    def requires_numeric_library(self) -> bool:
        return any(p.param.requires_numeric_library or p.entity.requires_numeric_library for p in self.params)

    @property
    def requires_temporal_library(self) -> bool:
        return any(p.param.requires_temporal_library or p.entity.requires_temporal_library for p in self.params)

    def _render(self, rendered_param) -> str:
        return " + ".join(repr(part) if isinstance(part, str) else rendered_param(part) for part in self.parts)

    @property
    def param_expression(self) -> str:
        """e.g. ``'USER#' + user_id``."""
        return self._render(lambda p: p.param.describe())

    @property
    def entity_expression(self) -> str:
        """e.g. ``'USER#' + entity.user.id``."""
        return self._render(lambda p: p.entity.describe())

    def encode_params(self, **values: Any) -> str:
        """
        Build the key text from named parameter values.

        Raises:
            DefinitionError: a parameter value is missing
            EncodingError: a value cannot be encoded for its type
        """
        out = []
        for part in self.parts:
            if isinstance(part, str):
                out.append(part)
                continue
            if part.name not in values:
                raise DefinitionError(f"missing value for parameter {part.name!r} of key {self.key_name!r}")
            out.append(part.param.encode(values[part.name]))
        return "".join(out)

    def encode_prefix(self, **values: Any) -> str:
        """
        Key text up to the first parameter without a value.

        Used for begins-with queries over a key whose trailing fields are
        unknown, e.g. ``ORDER#{tenant}#{id}`` with only ``tenant`` given.
        """
        out = []
        for part in self.parts:
            if isinstance(part, str):
                out.append(part)
            elif part.name in values:
                out.append(part.param.encode(values[part.name]))
            else:
                break
        return "".join(out)

    def encode_entity(self, entity: Any) -> str:
        """Build the key text from a record (mapping or object)."""
        return "".join(part if isinstance(part, str) else part.entity.encode(entity) for part in self.parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "role": self.role,
            "key_name": self.key_name,
            "kind": self.kind.value,
            "source": self.source,
            "literal_prefix": self.literal_prefix,
            "is_constant": self.is_constant,
            "param_expression": self.param_expression,
            "entity_expression": self.entity_expression,
            "params": [p.to_dict() for p in self.params],
            "requires_format_library": self.requires_format_library,
            "requires_numeric_library": self.requires_numeric_library,
            "requires_temporal_library": self.requires_temporal_library,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


@dataclass(frozen=True)
class IndexPlan:
    """Every compiled key of one entity's index."""

    entity: str
    table: str
    keys: tuple[KeyPlan, ...] = field(default=())

    def key(self, index: str, role: str = PARTITION) -> KeyPlan:
        for plan in self.keys:
            if plan.index == index and plan.role == role:
                return plan
        raise DefinitionError(f"{self.entity} has no {role} key on index {index!r}")

    @property
    def diagnostics(self) -> list[SortabilityDiagnostic]:
        return [d for plan in self.keys for d in plan.diagnostics]

    @property
    def requires_format_library(self) -> bool:
        return any(k.requires_format_library for k in self.keys)

    @property
    def requires_numeric_library(self) -> bool:
        return any(k.requires_numeric_library for k in self.keys)

    @property
    def requires_temporal_library(self) -> bool:
        return any(k.requires_temporal_library for k in self.keys)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "table": self.table,
            "keys": [k.to_dict() for k in self.keys],
        }


# =============================================================================
# COMPILATION
# =============================================================================


def _param_names(refs: list[FieldRef]) -> dict[str, str]:
    by_name: dict[str, set[str]] = {}
    for ref in refs:
        by_name.setdefault(ref.param_name, set()).add(ref.path)
    names = {}
    for ref in refs:
        shared = len(by_name[ref.param_name]) > 1
        names[ref.path] = "_".join(ref.path_components) if shared else ref.param_name

    owners: dict[str, str] = {}
    for path, name in names.items():
        owner = owners.setdefault(name, path)
        if owner != path:
            raise DefinitionError(f"field paths {owner!r} and {path!r} both map to parameter {name!r}")
    return names


def compile_ref(ref: FieldRef, field_type: str | type | SemanticType, name: str | None = None) -> ParamPlan:
    """Compile one field reference for both value sources."""
    param = convert(ref, field_type, ParamSource(name or ref.param_name))
    entity = convert(ref, field_type, FieldAccessSource(ref.path_components))
    return ParamPlan(
        name=name or ref.param_name,
        field_path=ref.path,
        semantic_type=param.semantic_type,
        param=param,
        entity=entity,
    )


def compile_spec(
    spec: PatternSpec,
    field_types: FieldTypes,
) -> tuple[str | ParamPlan, ...]:
    """
    Compile the segments of one pattern.

    Raises:
        UnknownFieldError: a referenced path is missing from ``field_types``
        ConversionError: a reference cannot be encoded for its type
    """
    names = _param_names(spec.field_refs())
    parts: list[str | ParamPlan] = []
    for segment in spec.segments:
        if isinstance(segment, LiteralSegment):
            parts.append(segment.value)
            continue
        if segment.path not in field_types:
            raise UnknownFieldError(segment.path)
        parts.append(compile_ref(segment, field_types[segment.path], names[segment.path]))
    return tuple(parts)


def _value_spec(value: ValueDef, kind: AttributeKind) -> tuple[PatternSpec | None, str]:
    if value.format is not None:
        return value.format, value.format.raw
    if value.from_field:
        return PatternSpec(raw=f"{{{value.from_field}}}", kind=kind, segments=(FieldRef(value.from_field),)), (
            f"field({value.from_field})"
        )
    return None, value.describe()


def compile_key(
    entity: str,
    index_name: str,
    role: str,
    key: KeyDef,
    value: ValueDef,
    field_types: FieldTypes,
) -> KeyPlan:
    """Compile one key definition, attaching sortability advice to sort keys."""
    spec, source = _value_spec(value, key.kind)
    try:
        if spec is None:
            const = value.const
            if const is None:
                raise DefinitionError("value definition has no value source")
            parts: tuple[str | ParamPlan, ...] = (const.text,)
        else:
            parts = compile_spec(spec, field_types)
    except KeySpineError as e:
        raise e.with_context(entity=entity, index=index_name, key=key.name, pattern=source)

    diagnostics: tuple[SortabilityDiagnostic, ...] = ()
    if role == SORT and spec is not None:
        found = []
        for ref in spec.field_refs():
            diagnostic = check_sort_safety(ref, field_types[ref.path], entity)
            if diagnostic is not None:
                found.append(diagnostic)
        diagnostics = tuple(found)

    return KeyPlan(
        index=index_name,
        role=role,
        key_name=key.name,
        kind=key.kind,
        source=source,
        parts=parts,
        diagnostics=diagnostics,
    )


def _key_jobs(index: PrimaryIndex) -> list[tuple[str, str, KeyDef, ValueDef]]:
    table_keys = index.table.key_definitions
    jobs = [(TABLE_INDEX, PARTITION, table_keys.partition_key, index.partition_key)]
    if table_keys.sort_key is not None and index.sort_key is not None and not index.sort_key.is_zero():
        jobs.append((TABLE_INDEX, SORT, table_keys.sort_key, index.sort_key))
    for gsi in index.secondary:
        gsi_keys = gsi.gsi.key_definitions
        jobs.append((gsi.name, PARTITION, gsi_keys.partition_key, gsi.partition))
        if gsi_keys.sort_key is not None and gsi.sort is not None and not gsi.sort.is_zero():
            jobs.append((gsi.name, SORT, gsi_keys.sort_key, gsi.sort))
    return jobs


def compile_index(
    entity: str,
    index: PrimaryIndex,
    field_types: FieldTypes,
    *,
    warn_unsortable: bool | None = None,
) -> IndexPlan:
    """
    Compile every key of ``index`` for ``entity``.

    Args:
        entity: Entity label used in diagnostics and error context
        index: Validated index definition
        field_types: Field path to type name, as reported by a schema provider
        warn_unsortable: Log each diagnostic at WARNING; defaults to the
            ``warn_unsortable`` setting

    Raises:
        DefinitionError: the index definition is invalid
        KeySpineError: one error as-is, or an aggregate listing every failed key
    """
    index.validate()
    if warn_unsortable is None:
        from keyspine.core.settings import get_settings

        warn_unsortable = get_settings().warn_unsortable

    results = [
        try_result(lambda job=job: compile_key(entity, job[0], job[1], job[2], job[3], field_types))
        for job in _key_jobs(index)
    ]
    keys = collect_all_errors(results).unwrap()

    plan = IndexPlan(entity=entity, table=index.table.name, keys=tuple(keys))
    if warn_unsortable:
        for key_plan in plan.keys:
            for diagnostic in key_plan.diagnostics:
                logger.warning(
                    "sort_key_unsortable",
                    entity=entity,
                    index=key_plan.index,
                    key=key_plan.key_name,
                    field_path=diagnostic.field_path,
                    condition=diagnostic.condition.value,
                    cause=diagnostic.cause,
                    suggestion=diagnostic.suggestion,
                )
    return plan


def try_compile_index(entity: str, index: PrimaryIndex, field_types: FieldTypes, **kwargs: Any):
    """:func:`compile_index` returning ``Ok``/``Err`` instead of raising."""
    return try_result(lambda: compile_index(entity, index, field_types, **kwargs))


__all__ = [
    "PARTITION",
    "SORT",
    "ParamPlan",
    "KeyPlan",
    "IndexPlan",
    "compile_ref",
    "compile_spec",
    "compile_key",
    "compile_index",
    "try_compile_index",
]
