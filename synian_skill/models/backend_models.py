"""Pydantic models for the Synian Core wire format."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SUCCESS_STATUS = "OK"
SESSION_EXPIRED_STATUS = "SESSION_EXPIRED"


class RequestContext(BaseModel):
    """Per-call envelope attached to every Synian Core request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    company_id: str = Field(..., alias="companyId")
    user_id: str = Field(..., alias="userId")
    device_id: Optional[str] = Field(None, alias="deviceId")
    alexa_user_id: Optional[str] = Field(None, alias="alexaUserId")
    application_id: Optional[str] = Field(None, alias="applicationId")
    session_id: Optional[str] = Field(None, alias="sessionId")
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="ISO-8601 UTC time the call was built"
    )
    mode: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """camelCase dict; ``mode`` is omitted when unset."""
        payload = self.model_dump(by_alias=True)
        if payload.get("mode") is None:
            payload.pop("mode", None)
        return payload


class AuthCredentials(BaseModel):
    """Credentials presented during the authentication exchange."""

    method: str = "totp"
    value: str


class BackendError(BaseModel):
    """Nested error object some Synian Core responses carry."""

    model_config = ConfigDict(extra="ignore")

    code: Optional[str] = None
    message: Optional[str] = None


class BackendResult(BaseModel):
    """
    Response from Synian Core, validated once at the client boundary.

    Callers read the derived properties, which fix the precedence between
    the overlapping fields the backend may send.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status: Optional[str] = None
    auth_status: Optional[str] = Field(None, alias="authStatus")
    session_id: Optional[str] = Field(None, alias="sessionId")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")
    reply: Optional[str] = None
    response: Optional[str] = None
    message: Optional[str] = None
    confirmation: Optional[str] = None
    language: Optional[str] = None
    voice_profile: Optional[str] = Field(None, alias="voiceProfile")
    preferred_name: Optional[str] = Field(None, alias="preferredName")
    display_name_field: Optional[str] = Field(None, alias="displayName")
    error: Optional[BackendError] = None

    @field_validator('status', 'auth_status', mode='before')
    @classmethod
    def coerce_status(cls, v):
        """Some backends send booleans or numbers as status."""
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator('expires_at')
    @classmethod
    def assume_utc(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_success(self) -> bool:
        for value in (self.status, self.auth_status):
            if value and value.upper() == SUCCESS_STATUS:
                return True
        return False

    @property
    def is_session_expired(self) -> bool:
        if self.status == SESSION_EXPIRED_STATUS:
            return True
        return self.error is not None and self.error.code == SESSION_EXPIRED_STATUS

    @property
    def reply_text(self) -> Optional[str]:
        for value in (self.reply, self.response, self.message):
            if value and value.strip():
                return value.strip()
        return None

    @property
    def confirmation_text(self) -> Optional[str]:
        for value in (self.confirmation, self.message, self.status):
            if value and value.strip():
                return value.strip()
        return None

    @property
    def display_name(self) -> Optional[str]:
        for value in (self.preferred_name, self.display_name_field):
            if value and value.strip():
                return value.strip()
        return None
