"""Configuration management for the Synian skill service."""

from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Ignore extra environment variables
    )

    # Server configuration
    port: int = 8000
    host: str = "0.0.0.0"

    # Synian Core configuration
    synian_base_url: str = "https://api.synian.app"
    synian_query_path: str = "/core/query"
    synian_status_path: str = "/status"
    synian_api_key: Optional[str] = None
    request_timeout_seconds: float = 8.0

    # Identity attached to every backend call
    company_id: str = "00000000-0000-0000-0000-000000000000"
    user_id: str = "00000000-0000-0000-0000-000000000000"

    # Only accept envelopes for this skill when set
    alexa_skill_id: Optional[str] = None

    # Locale used when the request carries none
    default_locale: str = "es-MX"

    # Authentication policy
    max_auth_attempts: int = 3
    lockout_minutes: int = 3
    lockout_policy: Literal["cooldown", "restart"] = "cooldown"

    # Session storage
    session_store: Literal["attributes", "memory"] = "attributes"
    inactivity_timeout_seconds: int = 300
    sweep_interval_seconds: int = 60

    # Whether a backend voice override lasts one reply or the whole session
    voice_override_scope: Literal["turn", "session"] = "turn"

    # Observability
    otlp_endpoint: Optional[str] = None
    enable_console_export: bool = False

    # Logging configuration
    log_level: str = "INFO"

    @field_validator('synian_base_url')
    @classmethod
    def validate_synian_base_url(cls, v):
        if not v:
            raise ValueError('SYNIAN_BASE_URL environment variable is required')
        if not v.startswith(('http://', 'https://')):
            raise ValueError('SYNIAN_BASE_URL must be a valid HTTP/HTTPS URL')
        return v.rstrip('/')

    @field_validator('request_timeout_seconds')
    @classmethod
    def validate_request_timeout(cls, v):
        if v <= 0:
            raise ValueError('REQUEST_TIMEOUT_SECONDS must be positive')
        return v

    @field_validator('max_auth_attempts')
    @classmethod
    def validate_max_auth_attempts(cls, v):
        if v < 1:
            raise ValueError('MAX_AUTH_ATTEMPTS must be at least 1')
        return v

    @field_validator('lockout_minutes', 'inactivity_timeout_seconds', 'sweep_interval_seconds')
    @classmethod
    def validate_positive_duration(cls, v):
        if v <= 0:
            raise ValueError('durations must be positive')
        return v


# Global settings instance
settings = Settings()
