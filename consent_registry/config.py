"""
Configuration Management

Uses Pydantic BaseSettings to load configuration from environment variables.
All settings can be overridden via .env file or environment variables.

Environment Variables:
    CONSENT_API_URL: Base URL of the consent service
    CONSENT_API_TIMEOUT: Request timeout in seconds (default: 30)
    CONSENT_API_TOKEN: Bearer token for the consent service (optional)
    WALLET_PRIVATE_KEY: Key for the local development signer (optional)
    APP_ENV: Environment name (development/staging/production)
    DEBUG: Enable debug mode (default: False)
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Consent Service
    consent_api_url: str = "http://localhost:5000/api"
    """Consent service base URL.

    Endpoints (/consents, /transactions, /stats) are resolved against it.
    """

    consent_api_timeout: float = 30.0
    """Request timeout in seconds.

    Timeouts are the transport's concern; the consent core never retries.
    """

    consent_api_token: Optional[str] = None
    """Bearer token sent as Authorization header when set."""

    # Local signing (development only)
    wallet_private_key: Optional[str] = None
    """Hex private key for the local wallet signer.

    WARNING: Never set in production. Real consents are signed by the
    patient's own wallet.
    """

    # Audit
    audit_hash_chain: bool = True
    """Chain audit events with SHA-256 for tamper detection."""

    # Application Environment
    app_env: Literal["development", "staging", "production"] = "development"
    """Current application environment."""

    debug: bool = False
    """Enable debug logging."""

    app_name: str = "consent-registry"
    """Application name."""

    # Pydantic configuration
    model_config = SettingsConfigDict(
        env_file=".env",  # Load from .env file if it exists
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow CONSENT_API_URL or consent_api_url
        extra="ignore",  # Ignore extra environment variables
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Cached settings instance

    Example:
        >>> from consent_registry.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.consent_api_url)
        http://localhost:5000/api
    """
    return Settings()


# Module-level settings instance for easy imports
settings = get_settings()
