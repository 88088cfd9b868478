"""
Process settings for Lockbox.

Configuration values can be set via LOCKBOX_* environment variables.
"""
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lockbox.core.errors import ConfigurationError


ENV_PREFIX = "LOCKBOX_"

MIB = 1024 * 1024


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    debug: bool = False
    db_url: str = "sqlite:///.data/lockbox.db"

    # Authentication
    auth_strategy: Literal["stateless", "stateful"] = "stateless"
    session_hours: float = Field(12, gt=0)
    sweep_interval: float = Field(300, gt=0)
    cookie_secure: bool = False
    rate_limit_enabled: bool = True

    # Object storage
    backend: Literal["local", "memory"] = "local"
    storage_path: str = "./.data/objects"
    max_upload_mb: float = Field(32, gt=0)
    backend_timeout: float = Field(30, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_to_file: bool = True

    @field_validator("session_hours")
    @classmethod
    def session_at_least_one_second(cls, value: float) -> float:
        if int(value * 3600) < 1:
            raise ValueError("session must last at least one second")
        return value

    @property
    def session_seconds(self) -> int:
        return int(self.session_hours * 3600)

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * MIB)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the process environment.

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        try:
            return cls()
        except ValidationError as e:
            fields = ", ".join(
                f"{ENV_PREFIX}{str(err['loc'][0]).upper()}" for err in e.errors() if err.get("loc")
            )
            raise ConfigurationError(f"Invalid settings: {fields}") from e
