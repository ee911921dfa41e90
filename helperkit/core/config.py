# helperkit/core/config.py
from __future__ import annotations

import secrets
import warnings
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Package settings, loaded from environment variables and/or .env file.
    """

    # Environment settings
    APP_NAME: str = "helperkit"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Security / auth
    SECRET_KEY: str = Field(default="", repr=False)
    SECRET_KEY_AUTO_GENERATED: bool = False
    FIELD_ENCRYPTION_KEY: Optional[str] = Field(default=None, repr=False)
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_MINUTES: int = 60
    JWT_ISSUER: Optional[str] = None

    # Redis settings
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # Database settings
    DATABASE_URL: str = "sqlite:///./helperkit.db"

    # Geo lookup
    GEO_API_HOST: str = "ip-api.com"
    GEO_TIMEOUT_SECONDS: float = 5.0

    @property
    def is_development(self) -> bool:
        return (self.APP_ENV or "development").lower() in {
            "development",
            "dev",
            "local",
            "test",
            "testing",
        }

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value

    @model_validator(mode="after")
    def _ensure_secret_key(self) -> "Settings":
        """Guarantee SECRET_KEY is present in non-development environments."""
        secret = (self.SECRET_KEY or "").strip()
        environment = (self.APP_ENV or "development").lower()

        if not secret or secret.lower() == "change-me":
            if self.is_development:
                generated = secrets.token_urlsafe(48)
                self.SECRET_KEY = generated
                self.SECRET_KEY_AUTO_GENERATED = True
                warnings.warn(
                    (
                        "SECRET_KEY was not provided; generated ephemeral key for "
                        f"{environment} environment. "
                        "Do not use this configuration in production."
                    ),
                    RuntimeWarning,
                )
            else:
                raise ValueError(
                    (
                        "SECRET_KEY must be set for secure operation. "
                        "Set SECRET_KEY in the environment or .env file."
                    )
                )
        return self

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


settings = Settings()
