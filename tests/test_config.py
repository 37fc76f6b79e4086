"""
Tests for settings validation.
"""

import pytest
from pydantic import ValidationError

from synian_skill.config import Settings


class TestSettings:
    """Test cases for Settings."""

    def test_defaults(self, monkeypatch):
        for name in ("SYNIAN_BASE_URL", "MAX_AUTH_ATTEMPTS", "LOCKOUT_POLICY", "SESSION_STORE", "DEFAULT_LOCALE"):
            monkeypatch.delenv(name, raising=False)

        config = Settings(_env_file=None)

        assert config.synian_base_url == "https://api.synian.app"
        assert config.request_timeout_seconds == 8.0
        assert config.max_auth_attempts == 3
        assert config.lockout_minutes == 3
        assert config.lockout_policy == "cooldown"
        assert config.session_store == "attributes"
        assert config.voice_override_scope == "turn"
        assert config.default_locale == "es-MX"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SYNIAN_BASE_URL", "http://localhost:9000/")
        monkeypatch.setenv("LOCKOUT_POLICY", "restart")
        monkeypatch.setenv("SESSION_STORE", "memory")

        config = Settings(_env_file=None)

        assert config.synian_base_url == "http://localhost:9000"
        assert config.lockout_policy == "restart"
        assert config.session_store == "memory"

    @pytest.mark.parametrize("field,value", [
        ("synian_base_url", "ftp://core"),
        ("request_timeout_seconds", 0),
        ("max_auth_attempts", 0),
        ("lockout_minutes", -1),
        ("lockout_policy", "forever"),
        ("voice_override_scope", "conversation"),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})
