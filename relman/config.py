"""Repository configuration: env-driven.

Centralized config using pydantic-settings for environment variable
support. Reads from a .env file and RELMAN_* environment variables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SERVER_VERSION = "0.1.0"


class RelmanConfig(BaseSettings):
    """Repository configuration with environment variable overrides.

    All settings can be overridden via RELMAN_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export RELMAN_DATA_PATH=/srv/relman/data
        export RELMAN_REPOSITORY_PATH=/srv/relman/repository
        export RELMAN_LOG_LEVEL=DEBUG

    Or via .env file::

        RELMAN_ENVIRONMENT=production
        RELMAN_ID_SCHEME=hash
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="RELMAN_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    log_file_path: Path | None = None

    # Storage paths
    data_path: Path = Path("./data")
    repository_path: Path = Path("./repository")
    metadata_filename: str = "releases.json"
    id_table_filename: str = "software_ids.json"

    # "table" assigns identifiers from a persisted name->id table;
    # "hash" reproduces the legacy rolling-hash directory prefixes.
    id_scheme: Literal["table", "hash"] = "table"

    # Align metadata with the repository tree before serving anything
    reconcile_on_startup: bool = True

    @field_validator("data_path", "repository_path")
    @classmethod
    def _non_empty_path(cls, value: Path) -> Path:
        if not str(value).strip():
            raise ValueError("path cannot be empty")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def metadata_path(self) -> Path:
        """Location of the release metadata file."""
        return self.data_path / self.metadata_filename

    @property
    def id_table_path(self) -> Path:
        """Location of the persisted software identifier table."""
        return self.data_path / self.id_table_filename

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


# Module-level singleton, import as `from relman.config import config`
config = RelmanConfig()
