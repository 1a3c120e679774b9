"""
Result envelope for callers that prefer values over exceptions.

The key compiler raises typed :mod:`~keyspine.core.errors` exceptions. Batch
callers (compiling every key of an index, maintaining indexes over many
records) often want to collect outcomes and decide at the end instead, so
the ``try_*`` entry points wrap those exceptions in ``Ok``/``Err``.

Manifesto:
    - **Explicit outcomes:** ``Ok[T]`` or ``Err[T]``, never a bare ``None``
    - **Only expected failures:** ``try_result`` captures ``KeySpineError``;
      programming errors still propagate
    - **Batch-friendly:** collect_results() fails fast, collect_all_errors()
      reports every failure at once

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     Result[T]                                │
        ├─────────────────┬─────────────────┬─────────────────────────┤
        │     Ok[T]       │     Err[T]      │     Utilities           │
        ├─────────────────┼─────────────────┼─────────────────────────┤
        │ • value: T      │ • error: Exc    │ • try_result()          │
        │ • map()         │ • map_err()     │ • collect_results()     │
        │ • flat_map()    │ • unwrap_or()   │ • collect_all_errors()  │
        └─────────────────┴─────────────────┴─────────────────────────┘

Examples:
    >>> from keyspine.core.result import Ok, Err, try_result
    >>> Ok(10).map(lambda x: x * 2).unwrap()
    20
    >>> from keyspine.keys.pattern import parse_pattern
    >>> try_result(lambda: parse_pattern("")).is_err()
    True

Tags:
    result-pattern, error-handling, functional, keyspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .errors import ErrorCategory, KeySpineError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Successful result containing a value.

    Examples:
        >>> ok = Ok(42)
        >>> ok.is_ok()
        True
        >>> ok.unwrap()
        42
    """

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Get value or default (always returns value for Ok)."""
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """Chain to another Result-returning function."""
        return f(self.value)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        """Transform error if Err (no-op for Ok)."""
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """
    Failed result containing the error.

    Examples:
        >>> err = Err(ValueError("bad"))
        >>> err.is_err()
        True
        >>> err.unwrap_or(0)
        0
    """

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        """Get default since this is Err."""
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        """Transform the error."""
        return Err(f(self.error))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        if isinstance(self.error, KeySpineError):
            return {"ok": False, "error": self.error.to_dict()}
        return {
            "ok": False,
            "error": {
                "error_type": type(self.error).__name__,
                "message": str(self.error),
            },
        }

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


def try_result(f: Callable[[], T]) -> Result[T]:
    """
    Run ``f`` and capture any :class:`KeySpineError` as ``Err``.

    Other exceptions are bugs, not expected failures, and propagate.

    Args:
        f: Zero-argument callable, e.g. ``lambda: parse_pattern(raw)``

    Returns:
        Ok with the return value, or Err with the raised KeySpineError
    """
    try:
        return Ok(f())
    except KeySpineError as e:
        return Err(e)


def collect_results(results: list[Result[T]]) -> Result[list[T]]:
    """Collect values, returning the first error encountered."""
    values = []
    for result in results:
        match result:
            case Ok(value):
                values.append(value)
            case Err(error):
                return Err(error)
    return Ok(values)


def collect_all_errors(results: list[Result[T]]) -> Result[list[T]]:
    """
    Collect results, accumulating ALL errors for comprehensive reporting.

    A single failure is returned as-is. Several failures are aggregated into
    one :class:`KeySpineError` whose ``context.metadata["errors"]`` lists every
    message and whose ``cause`` is the first error.
    """
    values = []
    errors: list[Exception] = []
    for result in results:
        match result:
            case Ok(value):
                values.append(value)
            case Err(error):
                errors.append(error)

    if errors:
        if len(errors) == 1:
            return Err(errors[0])
        messages = [str(e) for e in errors]
        aggregated = KeySpineError(
            f"Multiple errors ({len(errors)}): {'; '.join(messages[:3])}{'...' if len(messages) > 3 else ''}",
            category=_common_category(errors),
            cause=errors[0],
        )
        aggregated.context.metadata["error_count"] = len(errors)
        aggregated.context.metadata["errors"] = messages
        return Err(aggregated)

    return Ok(values)


def _common_category(errors: list[Exception]) -> ErrorCategory:
    if not all(isinstance(e, KeySpineError) for e in errors):
        return ErrorCategory.INTERNAL
    categories = {e.category for e in errors}  # type: ignore[attr-defined]
    return categories.pop() if len(categories) == 1 else ErrorCategory.INTERNAL


__all__ = [
    "Ok",
    "Err",
    "Result",
    "try_result",
    "collect_results",
    "collect_all_errors",
]
