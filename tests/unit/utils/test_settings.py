"""Tests for configuration validation."""

import pytest

from ignis_auth.config import Settings


class TestSettings:
    """Test secret handling per environment."""

    def test_development_generates_missing_secret(self):
        with pytest.warns(UserWarning):
            settings = Settings(environment="development", jwt_secret_key="", voice_api_key="k" * 32)
        assert len(settings.jwt_secret_key) > 40

    def test_production_rejects_placeholder_secret(self):
        with pytest.raises(ValueError):
            Settings(
                environment="production",
                jwt_secret_key="change-me-please",
                voice_api_key="k" * 32,
            )

    def test_test_routes_never_enabled_in_production(self):
        settings = Settings(
            environment="production",
            jwt_secret_key="s" * 64,
            voice_api_key="k" * 32,
            enable_test_routes=True,
        )
        assert settings.test_routes_enabled is False

    def test_defaults(self):
        settings = Settings(jwt_secret_key="s" * 64, voice_api_key="k" * 32)
        assert settings.session_ttl_seconds == 86400
        assert settings.action_token_ttl_seconds == 300
        assert settings.magic_link_ttl_seconds == 900
        assert settings.sms_otp_ttl_seconds == 600
        assert settings.issuance_rate_limit == 3
        assert settings.token_max_attempts == 5
        assert settings.voice_max_failed_attempts == 3
        assert settings.lockout_seconds == 900
