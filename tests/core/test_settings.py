"""Tests for keyspine.core.settings."""

import pytest
from pydantic import ValidationError

from keyspine.core.errors import ConfigError, ErrorCategory
from keyspine.core.settings import KeySpineSettings, clear_settings_cache, get_settings
from keyspine.keys.kinds import AttributeKind


class TestDefaults:
    def test_defaults(self):
        settings = KeySpineSettings()
        assert settings.log_level == "INFO"
        assert settings.log_format == "console"
        assert settings.warn_unsortable is True
        assert settings.strict_sortability is False
        assert settings.default_kind == AttributeKind.S


class TestEnvironment:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("KEYSPINE_STRICT_SORTABILITY", "true")
        monkeypatch.setenv("KEYSPINE_DEFAULT_KIND", "N")
        settings = KeySpineSettings()
        assert settings.strict_sortability is True
        assert settings.default_kind == AttributeKind.N

    def test_log_level_is_normalized(self, monkeypatch):
        monkeypatch.setenv("KEYSPINE_LOG_LEVEL", "debug")
        assert KeySpineSettings().log_level == "DEBUG"

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("KEYSPINE_LOG_LEVEL", "LOUD")
        with pytest.raises(ValidationError):
            KeySpineSettings()

    def test_invalid_log_format(self, monkeypatch):
        monkeypatch.setenv("KEYSPINE_LOG_FORMAT", "xml")
        with pytest.raises(ValidationError):
            KeySpineSettings()

    def test_dotenv_file(self, tmp_path):
        # conftest chdirs into tmp_path
        (tmp_path / ".env").write_text("KEYSPINE_WARN_UNSORTABLE=false\n")
        assert KeySpineSettings().warn_unsortable is False

    def test_unrelated_variables_ignored(self, monkeypatch):
        monkeypatch.setenv("KEYSPINE_SOMETHING_ELSE", "1")
        KeySpineSettings()


class TestCache:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("KEYSPINE_WARN_UNSORTABLE", "false")
        assert get_settings() is first
        reloaded = get_settings(_force_reload=True)
        assert reloaded.warn_unsortable is False
        assert get_settings() is reloaded

    def test_clear_cache(self):
        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first


class TestInvalidSettings:
    def test_get_settings_raises_config_error(self, monkeypatch):
        monkeypatch.setenv("KEYSPINE_LOG_FORMAT", "xml")
        with pytest.raises(ConfigError, match="log_format") as exc_info:
            get_settings()
        assert exc_info.value.category == ErrorCategory.CONFIG
        assert isinstance(exc_info.value.cause, ValidationError)

    def test_invalid_settings_not_cached(self, monkeypatch):
        monkeypatch.setenv("KEYSPINE_LOG_LEVEL", "LOUD")
        with pytest.raises(ConfigError):
            get_settings()
        monkeypatch.setenv("KEYSPINE_LOG_LEVEL", "warning")
        assert get_settings().log_level == "WARNING"
