"""
Configuration Management

Pydantic-settings based configuration for the contact form mailer.
All settings can be overridden via environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with CONTACT_FORM_ and are case-insensitive.
    Example: CONTACT_FORM_RECIPIENT=me@example.com

    Instances are frozen so a single Settings object can be handed to the
    submission pipeline at startup and shared by every invocation.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONTACT_FORM_",
        env_file=[".env.local", ".env"],  # Try .env.local first
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Redirect targets
    success_page: str = Field(
        default="http://www.example.com/thankyou.html",
        description="Redirect target when the submission is mailed",
    )
    failure_page: str = Field(
        default="http://www.example.com/problem.html",
        description="Redirect target for every kind of failure",
    )

    # Message addressing (both must be verified with SES in advance)
    sender: str = Field(
        default="my_contact_form@example.com",
        description="From address of the generated email",
    )
    recipient: str = Field(
        default="my_personal_email@my_provider.com",
        description="Address the form contents are mailed to",
    )
    subject: str = Field(
        default="contact me",
        description="Fixed subject line",
    )
    charset: str = Field(
        default="UTF-8",
        description="Character set used for encoded header words",
    )

    # Form layout
    honeypot_field: str = Field(
        default="office",
        description="Hidden field that only bots fill in",
    )
    attachment_field: str = Field(
        default="attachment",
        description="File input carrying the attachments",
    )
    max_memory_bytes: int = Field(
        default=16 * 1024 * 1024,
        gt=0,
        description="In-memory budget for decoding one submission",
    )

    # SES Configuration
    ses_endpoint_url: str | None = Field(
        default=None,
        description="SES endpoint URL (for local development)",
    )
    ses_configuration_set: str | None = Field(
        default=None,
        description="SES configuration set for tracking",
    )

    # AWS Configuration
    aws_region: str = Field(
        default="us-west-2",
        description="AWS region",
    )

    # Application Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    @property
    def ses_config(self) -> dict:
        """SES client configuration."""
        config = {"region_name": self.aws_region}
        if self.ses_endpoint_url and self.ses_endpoint_url != "mock":
            config["endpoint_url"] = self.ses_endpoint_url
        return config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are loaded only once.
    Tests construct Settings(...) directly and pass it to the pipeline.
    """
    return Settings()
