"""Configuration loading for the engine.

Pydantic-based settings read from environment variables and an optional
``.env`` file. Every variable carries the ``LOBSTER_`` prefix.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class LogFormat(StrEnum):
    """Supported log output formats."""

    TEXT = "text"
    JSON = "json"


class EngineSettings(BaseSettings):
    """File locations and logging settings for the engine.

    Environment Variables:
        LOBSTER_DATA_DIR: Root directory holding the genome and exocortex (default: .)
        LOBSTER_GENOME_FILE: Genome document, relative to the data dir (default: genome.json)
        LOBSTER_JOURNAL_FILE: Journal, relative to the data dir (default: exocortex/journal.md)
        LOBSTER_WEIGHTS_FILE: Weights document, relative to the data dir
            (default: exocortex/weights.json)
        LOBSTER_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL (default: INFO)
        LOBSTER_LOG_FORMAT: text or json (default: text)
        LOBSTER_RECENT_JOURNAL_CHARS: Tail size returned by recent-journal reads (default: 2000)

    Example:
        >>> settings = EngineSettings()  # Loads from environment
        >>> settings = EngineSettings(data_dir="/srv/fifth")
    """

    model_config = SettingsConfigDict(
        env_prefix="LOBSTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Field(default=Path("."), description="Root data directory")
    genome_file: str = Field(default="genome.json", description="Genome document path")
    journal_file: str = Field(default="exocortex/journal.md", description="Journal path")
    weights_file: str = Field(default="exocortex/weights.json", description="Weights path")

    log_level: str = Field(default="INFO", description="Log level name")
    log_format: LogFormat = Field(default=LogFormat.TEXT, description="Log output format")

    recent_journal_chars: int = Field(
        default=2000,
        ge=100,
        description="Characters returned by a recent-journal read",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> str:
        """Upper-case the level name and fall back to INFO for unknown names."""
        name = str(v).upper()
        if name == "WARN":
            name = "WARNING"
        if name not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return "INFO"
        return name

    @field_validator("log_format", mode="before")
    @classmethod
    def normalize_format(cls, v: Any) -> LogFormat:
        """Unknown formats fall back to text."""
        if isinstance(v, str):
            try:
                return LogFormat(v.lower())
            except ValueError:
                return LogFormat.TEXT
        return v

    @property
    def genome_path(self) -> Path:
        return self.data_dir / self.genome_file

    @property
    def journal_path(self) -> Path:
        return self.data_dir / self.journal_file

    @property
    def weights_path(self) -> Path:
        return self.data_dir / self.weights_file

    @property
    def log_level_number(self) -> int:
        return logging.getLevelNamesMapping()[self.log_level]


@lru_cache
def get_settings() -> EngineSettings:
    """Get cached engine settings.

    To reload settings, call ``get_settings.cache_clear()`` first.

    Returns:
        EngineSettings loaded from the environment.
    """
    settings = EngineSettings()
    logger.info(
        "Loaded engine settings: data_dir=%s genome=%s journal=%s weights=%s",
        settings.data_dir,
        settings.genome_file,
        settings.journal_file,
        settings.weights_file,
    )
    return settings
