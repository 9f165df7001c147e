"""
Integration configuration.

This module provides configuration settings for third-party integrations
(Cloudflare Turnstile, GitHub) and submission limits, loaded from
environment variables.
"""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Find .env file in project root
_env_file = Path(__file__).parent.parent.parent.parent.parent / ".env"


class IntegrationConfig(BaseSettings):
    """
    Integration configuration from environment variables.

    Settings are prefixed with MODHUB_ in environment. The Turnstile and
    GitHub keys also accept their conventional unprefixed names.
    """

    model_config = SettingsConfigDict(
        env_prefix="MODHUB_",
        env_file=str(_env_file) if _env_file.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Cloudflare Turnstile
    turnstile_secret_key: str = Field(
        "", validation_alias=AliasChoices("MODHUB_TURNSTILE_SECRET_KEY", "TURNSTILE_SECRET_KEY")
    )
    turnstile_site_key: str = Field(
        "",
        validation_alias=AliasChoices(
            "MODHUB_TURNSTILE_SITE_KEY", "NEXT_PUBLIC_TURNSTILE_SITE_KEY"
        ),
    )
    turnstile_verify_url: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    turnstile_timeout_seconds: float = 10.0

    # GitHub
    github_token: str = Field(
        "", validation_alias=AliasChoices("MODHUB_GITHUB_TOKEN", "GITHUB_TOKEN")
    )
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = 30.0

    # Submission limits
    submit_rate_limit: int = 5
    submit_rate_window_seconds: int = 3600
    duplicate_submission_window_hours: int = 24
    max_api_keys_per_user: int = 10

    # Per-route request limits, per caller and window
    public_read_rate_limit: int = 100
    download_rate_limit: int = 50
    admin_rate_limit: int = 200
    rate_limit_window_seconds: int = 60

    @property
    def captcha_enabled(self) -> bool:
        """Captcha is only enforced when both Turnstile keys are configured."""
        return bool(self.turnstile_secret_key and self.turnstile_site_key)


# Global instance
integration_config = IntegrationConfig()
