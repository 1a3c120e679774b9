"""
Structured error types for keyspine.

Every failure the key compiler or the derivation engine can produce is a
typed exception carrying a category, structured context and an optional
chained cause. Errors are detected at compile or derivation time and are
never silently corrected.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure kind, grouped by stage
    - **Rich Context:** Errors carry the entity, index, key and offset involved
    - **Error Chaining:** Preserve original exceptions while adding context
    - **No logging here:** The core raises; callers decide presentation

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       KeySpineError                              │
        │  (category, context, cause)                                      │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  PatternError          ConversionError       ExtractionError     │
        │  (PATTERN)             (CONVERSION)          (EXTRACTION)        │
        │       │                     │                     │              │
        │  EmptyPatternError     MissingFloatFormat    FieldNotFound       │
        │  EmptyFieldReference   MissingTemporalFormat IncompatibleBinary  │
        │  InvalidFieldPath      EncodingError         UnsupportedAttribute│
        │  UnbalancedBrace                                                 │
        │                                                                  │
        │  DefinitionError       RegistryError         ConfigError         │
        │  (DEFINITION)          (REGISTRY)            (CONFIG)            │
        │       │                     │                                    │
        │  UnknownFieldError     IndexNotRegistered                        │
        │                        RegistryFrozen                            │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = FieldNotFoundError(["user", "id"])
    >>> error.category
    <ErrorCategory.EXTRACTION: 'EXTRACTION'>
    >>> error.with_context(index="gsi1").context.index
    'gsi1'

Guardrails:
    ❌ DON'T: Raise ValueError from the parser or the extractor
    ✅ DO: Raise the matching KeySpineError subclass

    ❌ DON'T: Catch FieldNotFoundError around primary key extraction
    ✅ DO: Catch it only where a sparse secondary index is maintained

Tags:
    error-handling, exception-hierarchy, error-context, keyspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories, one per processing stage.

    Categories let callers route failures without matching on every concrete
    class: a CLI prints PATTERN and CONVERSION errors as programmer errors,
    an index maintainer treats EXTRACTION errors per record.
    """

    PATTERN = "PATTERN"
    CONVERSION = "CONVERSION"
    EXTRACTION = "EXTRACTION"
    DEFINITION = "DEFINITION"
    REGISTRY = "REGISTRY"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured context attached to an error.

    Attributes:
        entity: Entity label the key belongs to (e.g. "User")
        index: Index name ("table" for the primary index, else the GSI name)
        key: Key attribute name (e.g. "pk", "gsi1sk")
        pattern: Raw pattern string being compiled
        field_path: Dotted field path involved in the failure
        offset: Byte offset into the pattern, when known
        metadata: Additional key-value pairs
    """

    entity: str | None = None
    index: str | None = None
    key: str | None = None
    pattern: str | None = None
    field_path: str | None = None
    offset: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging, dropping unset fields."""
        result: dict[str, Any] = {}
        for key in ["entity", "index", "key", "pattern", "field_path", "offset"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class KeySpineError(Exception):
    """
    Base exception for all keyspine errors.

    Subclasses set ``default_category``. Instances carry a message, a
    category, an :class:`ErrorContext` and an optional cause which is also
    chained into ``__cause__`` so tracebacks show the root failure.

    Examples:
        >>> error = KeySpineError("boom")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(entity="User").to_dict()["context"]
        {'entity': 'User'}
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> KeySpineError:
        """
        Add context to this error (fluent API).

        Known context fields are set directly; anything else lands in
        ``context.metadata``. Fields that are already set are kept, so an
        inner layer's more precise context is never overwritten by an outer one.
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                if getattr(self.context, key) is None:
                    setattr(self.context, key, value)
            else:
                self.context.metadata.setdefault(key, value)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# PATTERN ERRORS
# =============================================================================


class PatternError(KeySpineError):
    """A pattern string could not be parsed. Construction fails atomically."""

    default_category = ErrorCategory.PATTERN

    def __init__(self, message: str, *, pattern: str | None = None, offset: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.pattern = pattern
        self.offset = offset
        if pattern is not None or offset is not None:
            self.with_context(pattern=pattern, offset=offset)


class EmptyPatternError(PatternError):
    """The pattern string is empty."""

    def __init__(self) -> None:
        super().__init__("pattern cannot be empty", pattern="")


class EmptyFieldReferenceError(PatternError):
    """A ``{}`` pair encloses nothing."""

    def __init__(self, pattern: str, offset: int):
        super().__init__(f"empty field reference at position {offset}", pattern=pattern, offset=offset)


class InvalidFieldPathError(PatternError):
    """A dot-separated field path has an empty component (e.g. ``a..b``)."""

    def __init__(self, path: str, component_index: int, *, pattern: str | None = None, offset: int | None = None):
        super().__init__(
            f"invalid field path {path!r}: empty component at position {component_index}",
            pattern=pattern,
            offset=offset,
        )
        self.path = path
        self.component_index = component_index


class UnbalancedBraceError(PatternError):
    """A literal ``{`` or ``}`` appears where no field reference can be formed."""

    def __init__(self, pattern: str, offset: int, char: str):
        super().__init__(
            f"unbalanced {char!r} at position {offset}; literal braces are not supported in patterns",
            pattern=pattern,
            offset=offset,
        )
        self.char = char


# =============================================================================
# CONVERSION ERRORS
# =============================================================================


class ConversionError(KeySpineError):
    """A field reference cannot be converted for its semantic type."""

    default_category = ErrorCategory.CONVERSION

    def __init__(self, message: str, *, field_path: str | None = None, type_name: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.type_name = type_name
        if field_path is not None:
            self.with_context(field_path=field_path)


class MissingFloatFormatError(ConversionError):
    """Floating point fields need an explicit width/precision spec."""

    def __init__(self, field_path: str, type_name: str):
        super().__init__(
            f"float type {type_name} requires explicit format (e.g. {{field:%.2f}} or {{field:%020.2f}})",
            field_path=field_path,
            type_name=type_name,
        )


class MissingTemporalFormatError(ConversionError):
    """Temporal fields need a format token; ``utc`` alone is not one."""

    def __init__(self, field_path: str, type_name: str, *, utc_only: bool = False):
        if utc_only:
            message = f"{type_name} field with :utc modifier requires a format (e.g. {{field:utc:rfc3339fixed}})"
        else:
            message = (
                f"{type_name} field requires explicit format (e.g. {{field:unix}}, {{field:unixmilli}}, "
                "{field:unixnano}, {field:rfc3339}, {field:rfc3339fixed} or {field:2006-01-02})"
            )
        super().__init__(message, field_path=field_path, type_name=type_name)
        self.utc_only = utc_only


class EncodingError(ConversionError):
    """A runtime value could not be encoded by a conversion expression."""

    pass


# =============================================================================
# EXTRACTION ERRORS
# =============================================================================


class ExtractionError(KeySpineError):
    """A key value could not be derived from a stored record."""

    default_category = ErrorCategory.EXTRACTION


class FieldNotFoundError(ExtractionError):
    """
    A field path does not resolve inside the record.

    Recoverable when computing a secondary index key (the record is simply
    excluded from the index), fatal for a primary key.
    """

    def __init__(self, path: Sequence[str], *, missing: str | None = None, reason: str | None = None):
        self.path = list(path)
        dotted = ".".join(self.path)
        message = f"field {dotted!r} not found"
        if missing is not None and missing != dotted:
            message = f"field {missing!r} not found at path {dotted!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.with_context(field_path=dotted)


class IncompatibleBinaryValueError(ExtractionError):
    """A binary key was requested but the stored value is not string or bytes."""

    def __init__(self, value_kind: str):
        super().__init__(f"key kind B requires a string or binary value, got {value_kind}")
        self.value_kind = value_kind


class UnsupportedAttributeError(ExtractionError):
    """The stored attribute kind cannot be used as a key value."""

    def __init__(self, path: Sequence[str], value_kind: str):
        dotted = ".".join(path)
        super().__init__(f"invalid attribute kind {value_kind} at {dotted!r}, cannot extract key value")
        self.value_kind = value_kind
        self.with_context(field_path=dotted)


# =============================================================================
# DEFINITION / REGISTRY / CONFIG ERRORS
# =============================================================================


class DefinitionError(KeySpineError):
    """An index or value definition is malformed."""

    default_category = ErrorCategory.DEFINITION


class UnknownFieldError(DefinitionError):
    """A pattern references a field the schema provider does not know."""

    def __init__(self, field_path: str):
        super().__init__(f"no field found with path {field_path!r}")
        self.with_context(field_path=field_path)


class RegistryError(KeySpineError):
    """Index registry misuse."""

    default_category = ErrorCategory.REGISTRY


class IndexNotRegisteredError(RegistryError):
    """No index is registered for the requested entity."""

    def __init__(self, entity: str):
        super().__init__(f"no index registered for entity {entity!r}")
        self.with_context(entity=entity)


class RegistryFrozenError(RegistryError):
    """Registration attempted after the registry was frozen."""

    def __init__(self, entity: str):
        super().__init__(f"cannot register {entity!r}: registry is frozen")
        self.with_context(entity=entity)


class ConfigError(KeySpineError):
    """Configuration value is invalid."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_pattern_error(error: Exception) -> bool:
    """Check whether an error came from the pattern parser."""
    return isinstance(error, PatternError)


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, KeySpineError):
        return error.category
    if isinstance(error, (KeyError, LookupError)):
        return ErrorCategory.EXTRACTION
    if isinstance(error, ValueError):
        return ErrorCategory.DEFINITION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "KeySpineError",
    # Pattern
    "PatternError",
    "EmptyPatternError",
    "EmptyFieldReferenceError",
    "InvalidFieldPathError",
    "UnbalancedBraceError",
    # Conversion
    "ConversionError",
    "MissingFloatFormatError",
    "MissingTemporalFormatError",
    "EncodingError",
    # Extraction
    "ExtractionError",
    "FieldNotFoundError",
    "IncompatibleBinaryValueError",
    "UnsupportedAttributeError",
    # Definition / registry / config
    "DefinitionError",
    "UnknownFieldError",
    "RegistryError",
    "IndexNotRegisteredError",
    "RegistryFrozenError",
    "ConfigError",
    # Utilities
    "is_pattern_error",
    "categorize_error",
]
