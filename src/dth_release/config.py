"""Configuration management for the DTH vehicle release portal."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    APP_NAME: str = "DTH Logistics"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # ==========================================================================
    # Database
    # ==========================================================================
    DATABASE_URL: str = "sqlite:///data/dth_release.db"

    # ==========================================================================
    # Identifiers
    # ==========================================================================
    LOAD_ID_PREFIX: str = "DTH-"
    LOAD_ID_MAX_ATTEMPTS: int = Field(default=5, ge=1)
    PIN_LENGTH: int = Field(default=6, ge=1, le=6)

    # ==========================================================================
    # Release Rules
    # ==========================================================================
    # False keeps update_status as an unconstrained administrative override
    STRICT_STATUS_TRANSITIONS: bool = False
    ALLOW_VOID_AFTER_RELEASE: bool = True
    REQUIRED_LOAD_FIELDS: list[str] = Field(
        default_factory=lambda: ["pickup_window_start", "pickup_window_end"]
    )
    DISPLAY_TIMEZONE: str = "UTC"

    # ==========================================================================
    # Links
    # ==========================================================================
    PUBLIC_BASE_URL: str = "http://localhost:5173"

    # ==========================================================================
    # Mail
    # ==========================================================================
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: Optional[int] = None
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_SSL: bool = True
    SMTP_TIMEOUT: float = 30.0
    SENDER_EMAIL: Optional[str] = None
    SENDER_NAME: str = "DTH Logistics"
    DISPATCH_EMAIL: str = "dispatch@DTHLogistics.com"

    # ==========================================================================
    # Notifications & Logging
    # ==========================================================================
    NOTIFICATION_WORKERS: int = Field(default=4, ge=1)
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # ==========================================================================
    # Derived
    # ==========================================================================
    @property
    def sender_address(self) -> str:
        """From-address, falling back to the SMTP login and then dispatch."""
        return self.SENDER_EMAIL or self.SMTP_USER or self.DISPATCH_EMAIL


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
