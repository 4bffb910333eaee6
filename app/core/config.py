"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, WhatsApp credentials, backend URLs)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="tokicard",
        description="MongoDB database name"
    )

    # WhatsApp Cloud API
    WHATSAPP_TOKEN: Optional[str] = Field(
        default=None,
        description="Bearer token for the WhatsApp Cloud API"
    )
    WHATSAPP_PHONE_ID: Optional[str] = Field(
        default=None,
        description="Sender phone number ID"
    )
    WHATSAPP_API_VERSION: str = Field(
        default="v17.0",
        description="Graph API version"
    )
    WHATSAPP_GRAPH_URL: str = Field(
        default="https://graph.facebook.com",
        description="Graph API base URL"
    )
    WHATSAPP_VERIFY_TOKEN: Optional[str] = Field(
        default=None,
        description="Token echoed back by Meta during webhook verification"
    )

    # Account backend and card issuing partner
    BACKEND_BASE_URL: str = Field(
        default="https://tokicard-api.onrender.com/auth",
        description="External account backend base URL"
    )
    CARD_ISSUER_BASE_URL: str = Field(
        default="https://tokicard-api.onrender.com/issuing",
        description="Card issuing partner base URL"
    )
    ONBOARDING_WEBAPP_URL: str = Field(
        default="https://tokicard-onboardingform.onrender.com",
        description="Onboarding web forms (registration, KYC, deposits)"
    )
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=8.0,
        description="Timeout applied to every outbound HTTP call"
    )

    # Conversation engine
    PROFILE_CACHE_TTL_SECONDS: int = Field(
        default=30,
        description="Lifetime of a cached profile snapshot"
    )
    FUZZY_MATCH_THRESHOLD: float = Field(
        default=0.85,
        description="Minimum similarity (0-1) for a fuzzy intent match"
    )
    DEFAULT_NGN_RATE: float = Field(
        default=1520.0,
        description="NGN per USD shown when the backend omits a rate"
    )
    FREE_ACTIVATION_RULE: Literal["any_waitlist", "waitlist_position"] = Field(
        default="waitlist_position",
        description="Which waitlist members get card activation for free"
    )
    FREE_ACTIVATION_WAITLIST_LIMIT: int = Field(
        default=500,
        description="Waitlist positions below this activate for free"
    )

    # Completion sweeper
    SWEEPER_ENABLED: bool = Field(
        default=True,
        description="Run the background completion sweeper"
    )
    SWEEP_INTERVAL_SECONDS: int = Field(
        default=30,
        description="Seconds between sweeps"
    )
    SWEEP_START_DELAY_SECONDS: int = Field(
        default=5,
        description="Delay before the first sweep after startup"
    )
    SWEEP_MESSAGE_DELAY_SECONDS: float = Field(
        default=2.0,
        description="Pause between congratulation messages"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/whatsapp",
        description="WhatsApp webhook route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # Security
    SECRET_KEY: str = Field(
        default="change-me-in-production",
        description="Application secret key"
    )

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v, info: ValidationInfo):
        """Ensure secret key is changed in production."""
        if info.data.get("ENVIRONMENT") == "production" and v == "change-me-in-production":
            raise ValueError("SECRET_KEY must be changed in production environment")
        return v

    @field_validator("FUZZY_MATCH_THRESHOLD")
    @classmethod
    def validate_fuzzy_threshold(cls, v):
        if not 0 < v <= 1:
            raise ValueError("FUZZY_MATCH_THRESHOLD must be in (0, 1]")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def whatsapp_messages_url(self) -> str:
        return f"{self.WHATSAPP_GRAPH_URL}/{self.WHATSAPP_API_VERSION}/{self.WHATSAPP_PHONE_ID}/messages"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    if not settings.BACKEND_BASE_URL:
        errors.append("BACKEND_BASE_URL is required")

    if settings.SWEEP_INTERVAL_SECONDS <= 0:
        errors.append("SWEEP_INTERVAL_SECONDS must be positive")

    # Production-specific validations
    if settings.is_production:
        if not settings.WHATSAPP_TOKEN:
            errors.append("WHATSAPP_TOKEN is required in production")
        if not settings.WHATSAPP_PHONE_ID:
            errors.append("WHATSAPP_PHONE_ID is required in production")
        if not settings.WHATSAPP_VERIFY_TOKEN:
            errors.append("WHATSAPP_VERIFY_TOKEN is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
