"""Voice-platform facing models: classified inbound events and speech replies."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .session import LanguageProfile


class IntentKind(str, Enum):
    """Closed set of intents the dispatcher understands."""
    LAUNCH = "launch"
    REQUEST_CODE = "request_code"
    SUBMIT_CODE = "submit_code"
    CONVERSE = "converse"
    COMMAND = "command"
    STATUS = "status"
    EXIT = "exit"
    HELP = "help"
    CANCEL = "cancel"
    FALLBACK = "fallback"
    SESSION_END = "session_end"
    ERROR = "error"


@dataclass
class InboundEvent:
    """One turn delivered by the voice platform, already classified."""

    conversation_id: str
    intent: IntentKind
    locale: Optional[str] = None
    intent_name: Optional[str] = None  # raw platform intent or request type
    slots: Dict[str, str] = field(default_factory=dict)
    request_id: Optional[str] = None
    device_id: Optional[str] = None
    application_id: Optional[str] = None
    platform_user_id: Optional[str] = None
    session_attributes: Dict[str, Any] = field(default_factory=dict)

    def slot(self, name: str) -> Optional[str]:
        """Recognized value of a slot, or None when missing or blank."""
        value = self.slots.get(name)
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    def first_slot(self) -> Optional[str]:
        """First slot that carries a value."""
        for value in self.slots.values():
            if value is not None and str(value).strip():
                return str(value).strip()
        return None


@dataclass(frozen=True)
class SpeechReply:
    """Speech produced for one turn."""

    text: str
    profile: LanguageProfile
    synian_voice: bool = False  # speak with the Synian voice styling
    reprompt: Optional[str] = None
    end_session: bool = False
