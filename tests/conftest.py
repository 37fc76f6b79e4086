"""
Shared fixtures for the Synian skill tests.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from synian_skill.clients.synian_core_client import SynianCoreClient
from synian_skill.models.backend_models import BackendResult
from synian_skill.models.platform_models import InboundEvent, IntentKind
from synian_skill.services.auth_service import AuthenticationStateMachine
from synian_skill.services.conversation_relay import ConversationRelay
from synian_skill.services.session_store import LockoutRegistry


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    """Fixed clock starting at a known instant."""
    return FakeClock()


@pytest.fixture
def mock_core_client():
    """Synian Core client whose calls are AsyncMocks."""
    client = Mock(spec=SynianCoreClient)
    client.authenticate = AsyncMock()
    client.converse = AsyncMock()
    client.send_command = AsyncMock()
    client.end_session = AsyncMock(return_value=BackendResult(status="OK"))
    client.get_status = AsyncMock()
    return client


@pytest.fixture
def lockouts(clock):
    """Cooldown registry isolated from the process-wide one."""
    return LockoutRegistry(clock=clock)


@pytest.fixture
def auth_machine(mock_core_client, lockouts, clock):
    """Authentication state machine with a cooldown lockout."""
    return AuthenticationStateMachine(
        core_client=mock_core_client,
        max_auth_attempts=3,
        lockout_minutes=3,
        lockout_policy="cooldown",
        default_locale="es-MX",
        lockouts=lockouts,
        clock=clock
    )


@pytest.fixture
def relay(auth_machine):
    """Conversation relay with per-turn voice overrides."""
    return ConversationRelay(auth_machine, voice_override_scope="turn")


@pytest.fixture
def make_event():
    """Factory for classified inbound events."""
    def _make_event(intent=IntentKind.CONVERSE, slots=None, locale="es-MX", **kwargs):
        defaults = {
            "conversation_id": "amzn1.echo-api.session.test",
            "intent_name": intent.value,
            "device_id": "amzn1.ask.device.TESTDEVICE",
            "application_id": "amzn1.ask.skill.synian-assistant",
            "platform_user_id": "amzn1.ask.account.TESTUSER",
            "request_id": "amzn1.echo-api.request.test",
        }
        defaults.update(kwargs)
        return InboundEvent(intent=intent, slots=slots or {}, locale=locale, **defaults)
    return _make_event
