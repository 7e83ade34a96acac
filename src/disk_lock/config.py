"""Configuration helpers for directory locking."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import BackoffPolicy


class Settings(BaseSettings):
    """Settings loaded from DISK_LOCK_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DISK_LOCK_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    contended_interval: float = Field(
        10.0,
        gt=0,
        description="Retry interval in seconds while another process holds the lock.",
    )
    error_interval: float = Field(
        60.0,
        gt=0,
        description=(
            "Retry interval in seconds after an unexpected flock error; "
            "longer so a misbehaving mount does not spin."
        ),
    )
    sysfs_root: str = Field(
        "/sys", description="Mount point of the kernel device hierarchy (sysfs)."
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Log level used by the CLI."
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    def backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            contended_interval=self.contended_interval,
            error_interval=self.error_interval,
        )


def get_settings() -> Settings:
    """Return a settings instance reflecting the current environment."""
    return Settings()
