"""Centralized configuration using Pydantic Settings."""

from functools import lru_cache
from typing import FrozenSet

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

from bridge.exceptions import ConfigurationError
from bridge.registrar import normalize_signals

load_dotenv()


class Settings(BaseSettings):
    """Watcher settings loaded from environment variables."""

    # ==================== Signals ====================
    # Comma-separated names ("INT", "SIGTERM") or numbers
    signals: str = Field(default="SIGINT,SIGTERM", validation_alias="SIGBRIDGE_SIGNALS")
    restart_syscalls: bool = Field(
        default=True, validation_alias="SIGBRIDGE_RESTART_SYSCALLS"
    )
    use_wakeup_fd: bool = Field(default=False, validation_alias="SIGBRIDGE_USE_WAKEUP_FD")

    # ==================== Wait Loop ====================
    wait_timeout: float = Field(
        default=5.0, gt=0.0, validation_alias="SIGBRIDGE_WAIT_TIMEOUT"
    )
    exit_on_timeout: bool = Field(
        default=True, validation_alias="SIGBRIDGE_EXIT_ON_TIMEOUT"
    )
    # 0 = keep watching until a wait times out
    max_notifications: int = Field(
        default=0, ge=0, validation_alias="SIGBRIDGE_MAX_NOTIFICATIONS"
    )

    # ==================== Logging ====================
    log_file: str = Field(default="watcher.log", validation_alias="SIGBRIDGE_LOG_FILE")
    log_level: str = Field(default="DEBUG", validation_alias="SIGBRIDGE_LOG_LEVEL")

    @field_validator("signals")
    @classmethod
    def validate_signals(cls, v):
        try:
            normalize_signals(_split(v))
        except ConfigurationError as e:
            raise ValueError(e.message) from e
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return str(v).strip().upper()

    def signal_set(self) -> FrozenSet[int]:
        return normalize_signals(_split(self.signals))

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def _split(value: str):
    return [part for part in value.split(",") if part.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
