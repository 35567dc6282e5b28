"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class StorageConfig(BaseModel):
    """Where the lineage ledger lives."""
    workspace: str = "~/.dnathreads/workspace"
    persist: bool = True  # If false, sessions are in-memory only


class LineageConfig(BaseModel):
    """Lineage behaviour and display defaults."""
    default_tag: str = "hex"
    preview_max_chars: int = 2000
    show_rejected: bool = True

    @field_validator("preview_max_chars")
    @classmethod
    def validate_preview_max_chars(cls, v: int) -> int:
        """Validate preview length is positive."""
        if v <= 0:
            raise ValueError("preview_max_chars must be positive")
        return v

    @field_validator("default_tag")
    @classmethod
    def validate_default_tag(cls, v: str) -> str:
        """Validate the default tag is not blank."""
        if not v.strip():
            raise ValueError("default_tag must not be empty")
        return v.strip()


class LoggingConfig(BaseModel):
    """Log sink configuration."""
    level: str = "WARNING"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate level is a loguru level name."""
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"level must be one of {', '.join(LOG_LEVELS)}")
        return level


class Config(BaseSettings):
    """Root configuration for dnathreads."""
    storage: StorageConfig = Field(default_factory=StorageConfig)
    lineage: LineageConfig = Field(default_factory=LineageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="DNATHREADS_",
        env_nested_delimiter="__",
    )

    @property
    def workspace_path(self) -> Path:
        """Get expanded workspace path."""
        return Path(self.storage.workspace).expanduser()
