"""Unit tests for pageschema.config."""

from __future__ import annotations

from typing import TYPE_CHECKING

import platformdirs
import pytest
from pydantic import ValidationError

from pageschema.config import (
    _DEFAULT_CACHE_DIR,
    DEFAULT_RETRYABLE_ERRORS,
    CacheSettings,
    FetchSettings,
    Settings,
    _find_config_file,
)

if TYPE_CHECKING:
    from pathlib import Path


class TestDefaults:
    def test_section_defaults(self) -> None:
        settings = Settings()
        assert settings.fetch.timeout == 10.0
        assert settings.fetch.max_retries == 2
        assert settings.cache.storage == "memory"
        assert settings.cache.ttl_seconds == 3600.0
        assert settings.rate_limit.max_requests == 10
        assert settings.rate_limit.window_seconds == 60.0
        assert settings.generator.concurrency == 3
        assert settings.logging.level == "WARNING"

    def test_cache_dir_uses_platformdirs(self) -> None:
        assert platformdirs.user_cache_dir("pageschema") == _DEFAULT_CACHE_DIR
        assert CacheSettings().cache_dir == _DEFAULT_CACHE_DIR

    def test_fetch_errors_are_retryable_by_default(self) -> None:
        assert "FETCH_FAILED" in DEFAULT_RETRYABLE_ERRORS
        assert Settings().recovery.retryable_errors == list(DEFAULT_RETRYABLE_ERRORS)


class TestEnvironmentOverrides:
    def test_nested_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PAGESCHEMA__FETCH__TIMEOUT", "5")
        monkeypatch.setenv("PAGESCHEMA__CACHE__STORAGE", "file")
        settings = Settings()
        assert settings.fetch.timeout == 5.0
        assert settings.cache.storage == "file"

    def test_constructor_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PAGESCHEMA__FETCH__TIMEOUT", "5")
        settings = Settings(fetch=FetchSettings(timeout=3))
        assert settings.fetch.timeout == 3.0

    def test_invalid_value_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PAGESCHEMA__LOGGING__LEVEL", "LOUD")
        with pytest.raises(ValidationError):
            Settings()


class TestConfigFile:
    def test_found_in_working_directory(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / "pageschema.yaml").write_text("fetch:\n  timeout: 7\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        assert _find_config_file() == "pageschema.yaml"

    def test_absent(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(platformdirs, "user_config_dir", lambda _name: str(tmp_path / "cfg"))
        assert _find_config_file() is None
