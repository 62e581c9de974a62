"""
Claims Desk - Configuration Settings
"""

from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import model_validator
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Claims Desk"
    APP_DESCRIPTION: str = "Signature requests and form prefill for rental claim cases"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 9002

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/claimsdesk.db"

    # File Storage (signed PDFs pulled back from the form provider)
    UPLOAD_DIR: Path = Path("./data/uploads")

    # URLs
    BASE_URL: str = "http://localhost:9002"  # Public URL used in signature portal links

    # Signature tokens
    SIGNATURE_TOKEN_EXPIRE_HOURS: int = 72  # 3 days

    # JotForm
    JOTFORM_API_KEY: Optional[str] = None
    JOTFORM_API_URL: str = "https://api.jotform.com"
    JOTFORM_FORM_URL: str = "https://form.jotform.com"
    JOTFORM_TIMEOUT_SECONDS: float = 10.0
    JOTFORM_WEBHOOK_SECRET: Optional[str] = None  # Expected in the webhook's ?secret= query param

    # Email (SMTP)
    SMTP_HOST: str = "smtp-relay.brevo.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: str = "noreply@whitepointer.com.au"
    SMTP_FROM_NAME: str = "White Pointer Recoveries"

    # SMS (Brevo transactional SMS)
    BREVO_API_KEY: Optional[str] = None
    BREVO_API_URL: str = "https://api.brevo.com/v3"
    SMS_SENDER: str = "WhitePointer"

    @model_validator(mode="after")
    def validate_webhook_secret(self):
        """Refuse to start without a webhook secret in production."""
        if not self.DEBUG and not self.JOTFORM_WEBHOOK_SECRET:
            raise ValueError(
                "JOTFORM_WEBHOOK_SECRET must be set in production. "
                "Set it in your .env file and append ?secret=<value> to the JotForm webhook URL."
            )
        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Create settings instance
settings = Settings()

# Ensure upload directory exists
settings.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

# Signed PDFs live under UPLOAD_DIR/<this>/<case_id>/
SIGNED_DOCUMENTS_DIR = "signed-documents"
