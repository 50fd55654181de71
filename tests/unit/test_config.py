"""Unit tests for configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from cognitive_hypermedia.core.config import AppConfig, EngineConfig, StorageConfig
from cognitive_hypermedia.server.config import ServerSettings


def test_engine_config_defaults() -> None:
    """Test engine config default values."""
    config = EngineConfig()

    assert config.max_retries == 3
    assert config.retry_backoff_seconds == 0.0
    assert config.default_page_size == 10
    assert config.max_page_size == 100


def test_engine_config_rejects_negative_retries() -> None:
    with pytest.raises(ValidationError):
        EngineConfig(max_retries=-1)


def test_storage_config_defaults() -> None:
    config = StorageConfig()

    assert config.backend == "memory"
    assert config.path == Path(".state/resources.json")


def test_storage_config_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("COGNITIVE_STORAGE_BACKEND", "json")
    monkeypatch.setenv("COGNITIVE_STORAGE_PATH", str(tmp_path / "db.json"))

    config = StorageConfig()

    assert config.backend == "json"
    assert config.path == tmp_path / "db.json"


def test_app_config_composition() -> None:
    """Test app config with nested configs."""
    config = AppConfig(log_level="DEBUG", debug=True)

    assert config.log_level == "DEBUG"
    assert config.debug is True
    assert isinstance(config.engine, EngineConfig)
    assert isinstance(config.storage, StorageConfig)


def test_server_settings(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("COGNITIVE_STATE_MACHINE_DIR", str(tmp_path))
    monkeypatch.setenv("COGNITIVE_CORS_ORIGINS", "http://a.test, ,http://b.test")

    settings = ServerSettings()

    assert settings.state_machine_dir == tmp_path
    assert settings.parsed_cors_origins() == ["http://a.test", "http://b.test"]
