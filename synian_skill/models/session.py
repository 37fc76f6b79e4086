"""Internal session models for the Synian skill."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class LanguageProfile:
    """Language and Synian voice used to speak a reply."""

    language_code: str  # e.g. "es-MX"
    voice_id: str  # voice name understood by the platform

    def to_dict(self) -> Dict[str, str]:
        return {"languageCode": self.language_code, "voiceId": self.voice_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LanguageProfile":
        return cls(language_code=data["languageCode"], voice_id=data["voiceId"])


class SessionState(str, Enum):
    """Trust state of a conversation. Exactly one applies at any instant."""
    NO_SESSION = "no_session"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    LOCKED = "locked"


@dataclass(frozen=True)
class Session:
    """
    Trust state of one conversation.

    Sessions are immutable; the state machine returns an updated copy from
    every operation. A ``session_id`` without a future ``expires_at`` is
    never considered authenticated.
    """

    session_id: Optional[str] = None  # issued by Synian Core on success
    expires_at: Optional[datetime] = None
    auth_attempts: int = 0  # consecutive failed codes
    locked_until: Optional[datetime] = None  # cooldown lockout
    locked_for_conversation: bool = False  # restart lockout
    awaiting_code: bool = False
    language_profile: Optional[LanguageProfile] = None
    display_name: Optional[str] = None

    def __post_init__(self):
        """Validate counters after initialization."""
        if self.auth_attempts < 0:
            raise ValueError(f"auth_attempts must be non-negative, got {self.auth_attempts}")

    def is_locked(self, now: datetime) -> bool:
        if self.locked_for_conversation:
            return True
        return self.locked_until is not None and self.locked_until > now

    def is_authenticated(self, now: datetime) -> bool:
        return (
            self.session_id is not None
            and self.expires_at is not None
            and self.expires_at > now
        )

    def is_expired(self, now: datetime) -> bool:
        """A session id whose expiry is missing or past."""
        return self.session_id is not None and not self.is_authenticated(now)

    def state(self, now: datetime) -> SessionState:
        if self.is_locked(now):
            return SessionState.LOCKED
        if self.is_authenticated(now):
            return SessionState.AUTHENTICATED
        if self.awaiting_code or self.auth_attempts > 0:
            return SessionState.AUTHENTICATING
        return SessionState.NO_SESSION

    def cleared(self) -> "Session":
        """Drop the Synian session identity, keeping any active lockout."""
        return replace(
            self,
            session_id=None,
            expires_at=None,
            auth_attempts=0,
            awaiting_code=False,
            language_profile=None,
            display_name=None,
        )

    def to_attributes(self) -> Dict[str, Any]:
        """Serialize for platform-persisted session attributes."""
        return {
            "sessionId": self.session_id,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "authAttempts": self.auth_attempts,
            "lockedUntil": self.locked_until.isoformat() if self.locked_until else None,
            "lockedForConversation": self.locked_for_conversation,
            "awaitingCode": self.awaiting_code,
            "languageProfile": self.language_profile.to_dict() if self.language_profile else None,
            "displayName": self.display_name,
        }

    @classmethod
    def from_attributes(cls, data: Optional[Dict[str, Any]]) -> "Session":
        """
        Rebuild a session from stored attributes.

        Raises:
            ValueError: If the stored attributes are malformed
        """
        if not data:
            return cls()
        try:
            profile = data.get("languageProfile")
            return cls(
                session_id=data.get("sessionId"),
                expires_at=_parse_timestamp(data.get("expiresAt")),
                auth_attempts=int(data.get("authAttempts") or 0),
                locked_until=_parse_timestamp(data.get("lockedUntil")),
                locked_for_conversation=bool(data.get("lockedForConversation", False)),
                awaiting_code=bool(data.get("awaitingCode", False)),
                language_profile=LanguageProfile.from_dict(profile) if profile else None,
                display_name=data.get("displayName"),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Malformed session attributes: {e}")


@dataclass
class StoredSession:
    """Entry held by the in-memory session store."""

    session: Session = field(default_factory=Session)
    last_seen: datetime = field(default_factory=utcnow)
