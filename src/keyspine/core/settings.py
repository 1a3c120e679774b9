"""
Settings for keyspine.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    The compiler itself takes no configuration; these settings govern how
    the edges behave: log output, whether sortability diagnostics are logged
    during index compilation, and whether the CLI treats them as failures.

Features:
    - **KeySpineSettings:** log_level, log_format, warn_unsortable,
      strict_sortability, default_kind
    - **env_prefix:** ``KEYSPINE_`` environment variables
    - **.env file support:** Automatic loading via pydantic-settings
    - **Cached accessor:** ``get_settings()`` / ``clear_settings_cache()``

Examples:
    >>> import os
    >>> os.environ["KEYSPINE_STRICT_SORTABILITY"] = "true"
    >>> clear_settings_cache()
    >>> get_settings().strict_sortability
    True

Tags:
    settings, configuration, pydantic, environment, keyspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from keyspine.core.errors import ConfigError
from keyspine.keys.kinds import AttributeKind

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class KeySpineSettings(BaseSettings):
    """keyspine configuration.

    Fields
    ──────
    log_level           : Structlog log level
    log_format          : "console" for humans, "json" for aggregation
    warn_unsortable     : Log advisor diagnostics while compiling indexes
    strict_sortability  : CLI exits non-zero when diagnostics exist
    default_kind        : Attribute kind used when none is given
    """

    model_config = SettingsConfigDict(
        env_prefix="KEYSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")

    # ── Sortability advisor ──────────────────────────────────────
    warn_unsortable: bool = Field(default=True, description="Log sort-key diagnostics during compile_index")
    strict_sortability: bool = Field(default=False, description="Treat sort-key diagnostics as CLI failures")

    # ── Defaults ─────────────────────────────────────────────────
    default_kind: AttributeKind = Field(default=AttributeKind.S)

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {value!r}")
        return level


_settings_cache: dict[str, KeySpineSettings] = {}


def get_settings(*, _force_reload: bool = False) -> KeySpineSettings:
    """
    Load, validate, and cache a :class:`KeySpineSettings` instance.

    Raises:
        ConfigError: an environment or .env value is invalid
    """
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    try:
        settings = KeySpineSettings()
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ConfigError(f"invalid keyspine settings: {fields}", cause=e) from e
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = ["KeySpineSettings", "get_settings", "clear_settings_cache"]
