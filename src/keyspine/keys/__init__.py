"""keyspine.keys -- key pattern compiler and derivation engine.

Architecture::

    kinds.py        AttributeKind, SemanticType, classify_type
    pattern.py      parse_pattern -> PatternSpec (literal + field-ref segments)
    layouts.py      reference-date timestamp layouts
    conversion.py   convert(ref, type, source) -> ConversionDescriptor
    sortability.py  check_sort_safety -> SortabilityDiagnostic | None
    values.py       ValueDef (format | from_field | const)
    extract.py      build_extractor -> KeyExtractor over stored records
    index.py        TableDefinition, PrimaryIndex, SecondaryIndex
    compiler.py     compile_index -> IndexPlan / KeyPlan / ParamPlan
    conditions.py   SortKeyCondition helpers over KeyPlan
    registry.py     IndexRegistry (explicit, lock-guarded)
"""

from .compiler import IndexPlan, KeyPlan, ParamPlan, compile_index, try_compile_index
from .conditions import SortKeyCondition, begins_with, between, equals, greater_than, less_than
from .conversion import ConversionDescriptor, FieldAccessSource, ParamSource, convert
from .extract import ConcatNode, FieldPathNode, KeyExtractor, LiteralNode, build_extractor
from .index import GSIDefinition, KeyDef, PrimaryIndex, PrimaryKeyDefinition, SecondaryIndex, TableDefinition
from .kinds import AttributeKind, SemanticType, classify_type
from .pattern import FieldRef, LiteralSegment, PatternSpec, byte_fmt, fmt, num_fmt, parse_pattern, try_parse
from .registry import IndexRegistry
from .sortability import SortabilityDiagnostic, UnsafeCondition, check_sort_safety
from .values import ConstValue, ValueDef

__all__ = [
    # Pattern
    "AttributeKind",
    "SemanticType",
    "classify_type",
    "FieldRef",
    "LiteralSegment",
    "PatternSpec",
    "parse_pattern",
    "try_parse",
    "fmt",
    "num_fmt",
    "byte_fmt",
    # Conversion / advice
    "ConversionDescriptor",
    "ParamSource",
    "FieldAccessSource",
    "convert",
    "SortabilityDiagnostic",
    "UnsafeCondition",
    "check_sort_safety",
    # Derivation
    "ConstValue",
    "ValueDef",
    "LiteralNode",
    "FieldPathNode",
    "ConcatNode",
    "KeyExtractor",
    "build_extractor",
    # Indexes
    "KeyDef",
    "PrimaryKeyDefinition",
    "GSIDefinition",
    "TableDefinition",
    "SecondaryIndex",
    "PrimaryIndex",
    "IndexPlan",
    "KeyPlan",
    "ParamPlan",
    "compile_index",
    "try_compile_index",
    "SortKeyCondition",
    "equals",
    "begins_with",
    "between",
    "greater_than",
    "less_than",
    "IndexRegistry",
]
