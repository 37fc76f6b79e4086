"""Data models for the Synian skill."""

from .backend_models import (
    AuthCredentials,
    BackendError,
    BackendResult,
    RequestContext
)
from .platform_models import (
    InboundEvent,
    IntentKind,
    SpeechReply
)
from .session import (
    LanguageProfile,
    Session,
    SessionState
)

__all__ = [
    "AuthCredentials",
    "BackendError",
    "BackendResult",
    "RequestContext",
    "InboundEvent",
    "IntentKind",
    "SpeechReply",
    "LanguageProfile",
    "Session",
    "SessionState"
]
