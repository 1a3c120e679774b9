"""keyspine.core -- ambient primitives shared by the key compiler.

Architecture::

    errors.py      Structured error hierarchy (KeySpineError and subclasses)
    result.py      Result[T] envelope (Ok / Err / try_result)
    logging.py     structlog configuration + get_logger
    settings.py    KeySpineSettings (pydantic-settings), imported explicitly

``settings`` is not re-exported here because it depends on
:mod:`keyspine.keys.kinds`; import it as ``keyspine.core.settings``.
"""

from .errors import (
    ConversionError,
    DefinitionError,
    ErrorCategory,
    ErrorContext,
    ExtractionError,
    FieldNotFoundError,
    KeySpineError,
    PatternError,
    RegistryError,
    categorize_error,
)
from .logging import LogContext, configure_logging, get_logger
from .result import Err, Ok, Result, collect_all_errors, collect_results, try_result

__all__ = [
    "ConversionError",
    "DefinitionError",
    "ErrorCategory",
    "ErrorContext",
    "ExtractionError",
    "FieldNotFoundError",
    "KeySpineError",
    "PatternError",
    "RegistryError",
    "categorize_error",
    "LogContext",
    "configure_logging",
    "get_logger",
    "Ok",
    "Err",
    "Result",
    "try_result",
    "collect_results",
    "collect_all_errors",
]
