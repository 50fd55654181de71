"""Configuration for the HTTP exposure layer."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Settings for the REST API.

    Notes:
        - Engine and storage settings come from
          :class:`cognitive_hypermedia.core.config.AppConfig`; this only covers
          what the HTTP layer itself needs.
    """

    state_machine_dir: Path = Field(
        default=Path("state_machines"),
        validation_alias="COGNITIVE_STATE_MACHINE_DIR",
        description="Directory of <type>.json state machine documents loaded at startup",
    )

    cors_origins: str = Field(
        default="",
        validation_alias="COGNITIVE_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", extra="ignore", populate_by_name=True
    )

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
