"""Promotion service configuration using pydantic-settings.

This module defines the PromotionSettings class that reads configuration
from environment variables with the PROMOTION_ prefix. The repository
server URL must be set for the service to start.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PromotionSettings(BaseSettings):
    """Promotion service configuration from environment variables.

    All environment variables are prefixed with PROMOTION_ (e.g.,
    PROMOTION_ARTIFACTORY_URL).

    Required fields (must be set via environment variables):
    - artifactory_url: Base URL of the repository server
    """

    model_config = SettingsConfigDict(
        env_prefix="PROMOTION_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Repository Server Configuration
    # -------------------------------------------------------------------------
    # Base URL of the repository server, e.g. https://repo.example.com/artifactory
    artifactory_url: str

    # Credentials used for plugin execution and promotion calls
    artifactory_username: str = ""
    artifactory_password: str = ""

    # Timeout in seconds for a single request; a hung call holds the
    # promotion lock until it expires
    request_timeout_seconds: float = 300.0

    # -------------------------------------------------------------------------
    # Push to Nexus Plugin
    # -------------------------------------------------------------------------
    push_plugin_name: str = "nexusPush"

    # Build variables with this prefix are forwarded to the plugin
    push_property_prefix: str = "nexusPush."

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 8080

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("artifactory_url")
    @classmethod
    def validate_artifactory_url(cls, v: str) -> str:
        """Validate that the server URL is a valid URL format."""
        if not v or not v.strip():
            raise ValueError("artifactory_url cannot be empty")
        if not v.startswith(("http://", "https://")):
            raise ValueError("artifactory_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v

    @field_validator("push_plugin_name", "push_property_prefix")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("plugin settings cannot be blank")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v


def get_settings() -> PromotionSettings:
    """Create and return a PromotionSettings instance.

    Returns:
        PromotionSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return PromotionSettings()
