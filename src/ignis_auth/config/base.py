"""Base configuration settings."""

import secrets
import warnings
from typing import List, Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROTECTED_ENVIRONMENTS = ("production", "staging")


class Settings(BaseSettings):
    """Application settings.

    Secrets (JWT signing key, voice API key, FHIR credentials) must come from
    the environment in staging and production.
    """

    model_config = SettingsConfigDict(
        env_file=[".env"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    # Application
    app_name: str = "Ignis Patient Auth"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_format: str = "console"

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    allowed_origins: List[str] = ["*"]
    frontend_url: str = "http://localhost:3000"
    enable_test_routes: bool = False

    # Session credentials
    jwt_secret_key: str = Field(
        default="", description="JWT signing key - MUST be set in production"
    )
    jwt_algorithm: str = "HS256"
    session_ttl_seconds: int = 24 * 60 * 60
    action_token_ttl_seconds: int = 5 * 60
    voice_session_ttl_seconds: int = 60 * 60

    # Possession tokens
    magic_link_ttl_seconds: int = 15 * 60
    sms_otp_ttl_seconds: int = 10 * 60
    token_max_attempts: int = 5
    issuance_rate_limit: int = 3
    issuance_rate_window_seconds: int = 60 * 60

    # Lockout
    voice_max_failed_attempts: int = 3
    elevation_max_failed_attempts: int = 3
    lockout_seconds: int = 15 * 60

    # Interval of the background purge of expired tokens, windows and lockouts
    state_cleanup_interval_seconds: float = 60.0

    # Voice agent
    voice_api_key: str = Field(
        default="", description="Shared key of the voice agent - MUST be set in production"
    )

    # FHIR
    fhir_server_url: str = "http://localhost:8080/fhir"
    fhir_username: Optional[str] = None
    fhir_password: Optional[str] = None
    fhir_timeout_seconds: float = 20.0
    fhir_max_retries: int = 2

    @field_validator("jwt_secret_key", "voice_api_key")
    @classmethod
    def validate_secret_keys(cls, v: str, info: ValidationInfo) -> str:
        """Validate that secret keys are not default values in production."""
        if not v or "change-me" in v.lower():
            env = str(info.data.get("environment", "development")).lower()
            if env in PROTECTED_ENVIRONMENTS:
                raise ValueError(
                    f"CRITICAL SECURITY ERROR: {info.field_name} must be set to a secure value in {env} environment. "
                    f"Patient identity data depends on it!"
                )
            # In development, generate a secure key but warn
            secure_key = secrets.token_urlsafe(64)
            warnings.warn(
                f"SECURITY WARNING: {info.field_name} is not set. "
                f"Generated temporary key for development: {secure_key[:8]}... "
                f"NEVER use this in production!",
                stacklevel=2,
            )
            return secure_key
        return v

    @property
    def is_production(self) -> bool:
        """Whether the service runs in production."""
        return self.environment.lower() == "production"

    @property
    def test_routes_enabled(self) -> bool:
        """Test routes are never mounted in production."""
        return self.enable_test_routes and not self.is_production
