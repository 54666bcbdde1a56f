"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes transport credentials, DB URI and renderer endpoint
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="zimquote",
        description="MongoDB database name"
    )

    # Transport A: Twilio WhatsApp
    TWILIO_ACCOUNT_SID: Optional[str] = Field(
        default=None,
        description="Twilio account SID"
    )
    TWILIO_AUTH_TOKEN: Optional[str] = Field(
        default=None,
        description="Twilio auth token, also used to verify webhook signatures"
    )
    TWILIO_WHATSAPP_NUMBER: str = Field(
        default="whatsapp:+14155238886",
        description="Sender number in whatsapp:+E164 form"
    )
    TWILIO_WEBHOOK_URL: Optional[str] = Field(
        default=None,
        description="Public webhook URL Twilio signs against (defaults to the request URL)"
    )

    # Transport B: Meta WhatsApp Cloud API
    META_ACCESS_TOKEN: Optional[str] = Field(
        default=None,
        description="Graph API bearer token"
    )
    META_PHONE_NUMBER_ID: Optional[str] = Field(
        default=None,
        description="WhatsApp Cloud phone number id"
    )
    META_VERIFY_TOKEN: Optional[str] = Field(
        default=None,
        description="Token echoed back during the webhook verification handshake"
    )
    META_APP_SECRET: Optional[str] = Field(
        default=None,
        description="App secret for X-Hub-Signature-256 verification"
    )
    META_API_VERSION: str = Field(
        default="v24.0",
        description="Graph API version"
    )
    META_GRAPH_URL: str = Field(
        default="https://graph.facebook.com",
        description="Graph API base URL"
    )

    # Bot identity
    BOT_NUMBER: str = Field(
        default="263770000000",
        description="Bot WhatsApp number (digits only) used in wa.me join links"
    )
    DEFAULT_COUNTRY_CODE: str = Field(
        default="263",
        description="Country code applied to local numbers with a leading 0"
    )
    TIMEZONE: str = Field(
        default="Africa/Harare",
        description="Timezone used to resolve report date ranges"
    )

    # Renderer collaborator
    RENDERER_URL: Optional[str] = Field(
        default=None,
        description="PDF renderer endpoint; rendering degrades gracefully when unset"
    )
    RENDERER_TIMEOUT: float = Field(
        default=20.0,
        description="Renderer request timeout in seconds"
    )

    # Delivery and dialog
    OUTBOUND_MAX_RETRIES: int = Field(
        default=2,
        description="Send attempts per outbound message"
    )
    TURN_MAX_RETRIES: int = Field(
        default=3,
        description="Attempts for a dialog turn that hits a version conflict"
    )
    TRIAL_HOURS: int = Field(
        default=24,
        description="Length of the trial window for new businesses"
    )

    # Media and links
    MEDIA_DIR: str = Field(
        default="media",
        description="Directory where uploaded logos are stored"
    )
    PUBLIC_BASE_URL: str = Field(
        default="http://localhost:8000",
        description="Public base URL of this service (for media links)"
    )
    CHECKOUT_URL: str = Field(
        default="http://localhost:8000/billing/checkout",
        description="Subscription checkout page sent from the upgrade flow"
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
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @field_validator("DEFAULT_COUNTRY_CODE")
    @classmethod
    def validate_country_code(cls, v: str) -> str:
        """Country code must be 1-3 digits without a plus sign."""
        v = v.lstrip("+")
        if not v.isdigit() or not 1 <= len(v) <= 3:
            raise ValueError("DEFAULT_COUNTRY_CODE must be 1-3 digits")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"
        extra = "ignore"


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

    # Production-specific validations
    if settings.is_production:
        if not settings.TWILIO_AUTH_TOKEN:
            errors.append("TWILIO_AUTH_TOKEN is required in production")
        if not settings.META_VERIFY_TOKEN:
            errors.append("META_VERIFY_TOKEN is required in production")
        if not settings.META_APP_SECRET:
            errors.append("META_APP_SECRET is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
