"""
Conversation-scoped session storage.

Two backing strategies share one interface:

- ``AttributesSessionStore`` keeps the session inside the platform's
  per-conversation session attributes, which the platform hands back on
  every turn. Nothing is held in this process.
- ``InMemorySessionStore`` keeps sessions in a process-wide dict keyed by
  conversation id, for hosts that do not persist attributes. Idle entries
  expire lazily on load and are reclaimed by a periodic sweep.

Both serialize turns of the same conversation with a per-conversation
``asyncio.Lock``; different conversations never share state.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Callable, Dict, Optional

from synian_skill.config import settings
from synian_skill.models.platform_models import InboundEvent
from synian_skill.models.session import Session, StoredSession, utcnow

logger = logging.getLogger(__name__)

ATTRIBUTES_KEY = "synian"


@dataclass
class _ConversationLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class SessionStore(ABC):
    """Base class for session stores."""

    def __init__(self):
        self._locks: Dict[str, _ConversationLock] = {}

    @asynccontextmanager
    async def locked(self, conversation_id: str) -> AsyncIterator[None]:
        """Hold the conversation's lock; the entry is dropped once unused."""
        entry = self._locks.get(conversation_id)
        if entry is None:
            entry = self._locks[conversation_id] = _ConversationLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self._locks.pop(conversation_id, None)

    @staticmethod
    def passthrough_attributes(event: InboundEvent) -> Dict[str, Any]:
        """Platform attributes that do not belong to the Synian session."""
        return {k: v for k, v in event.session_attributes.items() if k != ATTRIBUTES_KEY}

    @abstractmethod
    async def load(self, event: InboundEvent) -> Session:
        """Session for the event's conversation; empty when none exists."""

    @abstractmethod
    async def save(self, event: InboundEvent, session: Session) -> Dict[str, Any]:
        """Persist the session and return the attributes for the response."""

    @abstractmethod
    async def discard(self, event: InboundEvent) -> Dict[str, Any]:
        """Forget the conversation's session and return response attributes."""


class AttributesSessionStore(SessionStore):
    """Session persisted by the platform in per-conversation attributes."""

    async def load(self, event: InboundEvent) -> Session:
        try:
            return Session.from_attributes(event.session_attributes.get(ATTRIBUTES_KEY))
        except ValueError as e:
            logger.warning(f"Discarding malformed session attributes for {event.conversation_id}: {e}")
            return Session()

    async def save(self, event: InboundEvent, session: Session) -> Dict[str, Any]:
        attributes = self.passthrough_attributes(event)
        attributes[ATTRIBUTES_KEY] = session.to_attributes()
        return attributes

    async def discard(self, event: InboundEvent) -> Dict[str, Any]:
        return self.passthrough_attributes(event)


class InMemorySessionStore(SessionStore):
    """
    Process-wide session store keyed by conversation id.

    An entry not touched for ``inactivity_timeout_seconds`` is treated as
    absent. Expiry is checked on every load, so the background sweep only
    reclaims memory and never decides validity.
    """

    def __init__(
        self,
        inactivity_timeout_seconds: int = 300,
        clock: Callable[[], datetime] = utcnow
    ):
        super().__init__()
        self.inactivity_timeout = timedelta(seconds=inactivity_timeout_seconds)
        self._clock = clock
        self._entries: Dict[str, StoredSession] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _is_idle(self, entry: StoredSession, now: datetime) -> bool:
        return now - entry.last_seen > self.inactivity_timeout

    async def load(self, event: InboundEvent) -> Session:
        entry = self._entries.get(event.conversation_id)
        if entry is None:
            return Session()
        if self._is_idle(entry, self._clock()):
            logger.info(f"Session for {event.conversation_id} expired after inactivity")
            del self._entries[event.conversation_id]
            return Session()
        return entry.session

    async def save(self, event: InboundEvent, session: Session) -> Dict[str, Any]:
        self._entries[event.conversation_id] = StoredSession(session=session, last_seen=self._clock())
        return self.passthrough_attributes(event)

    async def discard(self, event: InboundEvent) -> Dict[str, Any]:
        self._entries.pop(event.conversation_id, None)
        return self.passthrough_attributes(event)

    def sweep(self) -> int:
        """
        Drop idle entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        idle = [cid for cid, entry in self._entries.items() if self._is_idle(entry, now)]
        for conversation_id in idle:
            del self._entries[conversation_id]
        if idle:
            logger.debug(f"Swept {len(idle)} idle Synian sessions")
        return len(idle)

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Sweep forever; cancel the task to stop."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep()


class LockoutRegistry:
    """
    Cooldown lockouts keyed by platform user.

    A lockout outlives the conversation that triggered it; relaunching the
    skill does not reset it. Entries are dropped once their cooldown passes.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._locked_until: Dict[str, datetime] = {}

    def __len__(self) -> int:
        return len(self._locked_until)

    def locked_until(self, identity: Optional[str]) -> Optional[datetime]:
        """End of the identity's active cooldown, or None."""
        if not identity:
            return None
        until = self._locked_until.get(identity)
        if until is not None and until <= self._clock():
            del self._locked_until[identity]
            return None
        return until

    def lock(self, identity: Optional[str], until: datetime) -> None:
        if not identity:
            return
        now = self._clock()
        for key in [k for k, v in self._locked_until.items() if v <= now]:
            del self._locked_until[key]
        self._locked_until[identity] = until
        logger.info(f"Cooldown lockout recorded until {until.isoformat()}")


# Global store instance
_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """
    Get the global session store, built from settings on first use.

    Returns:
        SessionStore: The configured session store
    """
    global _session_store
    if _session_store is None:
        if settings.session_store == "memory":
            _session_store = InMemorySessionStore(settings.inactivity_timeout_seconds)
        else:
            _session_store = AttributesSessionStore()
        logger.info(f"Using {type(_session_store).__name__} for Synian sessions")
    return _session_store


_lockout_registry: Optional[LockoutRegistry] = None


def get_lockout_registry() -> LockoutRegistry:
    """Get the global cooldown lockout registry."""
    global _lockout_registry
    if _lockout_registry is None:
        _lockout_registry = LockoutRegistry()
    return _lockout_registry
