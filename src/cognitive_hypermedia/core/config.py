"""Configuration for the engine, storage and application."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cognitive_hypermedia.logging import configure_logging


class EngineConfig(BaseSettings):
    """Tuning knobs for :class:`~cognitive_hypermedia.core.store.CognitiveStore`."""

    max_retries: int = Field(
        default=3,
        ge=0,
        description="Extra read-validate-write attempts after a lost compare-and-set",
    )
    retry_backoff_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Pause between compare-and-set attempts",
    )
    default_page_size: int = Field(
        default=10,
        gt=0,
        description="Page size used when a collection request does not give one",
    )
    max_page_size: int = Field(
        default=100,
        gt=0,
        description="Largest page size a collection request may ask for",
    )

    model_config = SettingsConfigDict(
        env_prefix="COGNITIVE_ENGINE_",
        env_file=".env",
        extra="ignore",
    )


class StorageConfig(BaseSettings):
    """Configuration for the storage backend."""

    backend: Literal["memory", "json"] = Field(
        default="memory",
        description="Storage adapter to use",
    )
    path: Path = Field(
        default=Path(".state/resources.json"),
        description="Document path for the json backend",
    )

    model_config = SettingsConfigDict(
        env_prefix="COGNITIVE_STORAGE_",
        env_file=".env",
        extra="ignore",
    )


class AppConfig(BaseSettings):
    """Top-level configuration."""

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug logging for this package",
    )

    engine: EngineConfig = Field(
        default_factory=EngineConfig,
        description="Engine configuration",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Storage configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="COGNITIVE_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        configure_logging("DEBUG" if self.debug else self.log_level)
