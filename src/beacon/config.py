"""Configuration for the beacon CLI.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

The database lives in a per-user config directory so that run history is shared
across projects, while workflow definitions are read from the current project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_config_dir() -> Path:
    """Platform-specific directory holding the beacon database."""

    if sys.platform == "win32":
        base = os.environ.get("APPDATA")
        return (Path(base) if base else Path.home()) / "beacon"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "beacon"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    return (Path(xdg) if xdg else Path.home() / ".config") / "beacon"


class BeaconSettings(BaseSettings):
    """Settings for the beacon CLI.

    Environment variables:
    - LOG_LEVEL                 (optional)
    - BEACON_DB_PATH            (optional)
    - BEACON_WORKFLOWS_DIR      (optional)
    - BEACON_CLAUDE_EXECUTABLE  (optional)
    - BEACON_COLOR              (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `BeaconSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="WARNING",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    database_path: Path = Field(
        default_factory=lambda: default_config_dir() / "beacon.db",
        validation_alias="BEACON_DB_PATH",
        description="SQLite database holding command logs, runs and notes",
    )

    workflows_dir: Path = Field(
        default=Path(".beacon/workflows"),
        validation_alias="BEACON_WORKFLOWS_DIR",
        description="Directory containing workflow definitions (*.yml)",
    )

    claude_executable: str = Field(
        default="claude",
        validation_alias="BEACON_CLAUDE_EXECUTABLE",
        description="Name or path of the Claude CLI executable",
    )

    color: bool = Field(
        default=True,
        validation_alias="BEACON_COLOR",
        description="Use ANSI colours for stage indicators and tool annotations",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("claude_executable")
    @classmethod
    def _require_executable(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("BEACON_CLAUDE_EXECUTABLE must not be empty")
        return value.strip()
