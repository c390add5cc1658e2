"""
Pydantic settings model for teamwork configuration.

This module defines the configuration schema using Pydantic for validation
and type safety. Only entry points (the CLI) load ``Settings`` from the
environment; the core receives the nested models explicitly.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LockSettings(BaseModel):
    """Lock acquisition configuration."""

    stale_after_seconds: float = Field(
        default=60.0, gt=0, description="Age after which a lock is considered stale"
    )
    poll_interval_seconds: float = Field(
        default=0.1, gt=0, description="Sleep between acquisition attempts"
    )
    timeout_seconds: float = Field(
        default=10.0, ge=0, description="Default acquisition timeout"
    )
    check_liveness: bool = Field(
        default=True, description="Reclaim locks whose local holder process is gone"
    )

    @model_validator(mode="after")
    def validate_poll_interval(self) -> "LockSettings":
        if self.poll_interval_seconds > self.stale_after_seconds:
            raise ValueError("poll_interval_seconds must not exceed stale_after_seconds")
        return self


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format (text or json)")
    log_dir: Optional[Path] = Field(
        default=None, description="Directory for JSONL log files (json format)"
    )
    backup_count: int = Field(default=30, ge=0, description="Days of logs to keep")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        valid_formats = ["text", "json"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of {valid_formats}")
        return v.lower()


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TEAMWORK_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    root_dir: Path = Field(default=Path(".teamwork"), description="Project directory")
    tasks_dirname: str = Field(default="tasks", description="Task records directory")
    waves_filename: str = Field(default="waves.json", description="Wave plan file")
    default_owner: Optional[str] = Field(
        default=None, description="Owner id used when none is given"
    )
    lock: LockSettings = Field(default_factory=LockSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("tasks_dirname", "waves_filename")
    @classmethod
    def validate_plain_name(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"Must be a plain file name: {v!r}")
        return v

    @property
    def tasks_dir(self) -> Path:
        return self.root_dir / self.tasks_dirname

    @property
    def waves_path(self) -> Path:
        return self.root_dir / self.waves_filename
