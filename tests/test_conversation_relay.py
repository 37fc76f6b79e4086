"""
Tests for the conversation relay.
"""

from datetime import timedelta

import pytest

from synian_skill.errors import BackendUnavailable
from synian_skill.models.backend_models import BackendResult
from synian_skill.models.platform_models import IntentKind
from synian_skill.models.session import LanguageProfile, Session
from synian_skill.services import messages
from synian_skill.services.conversation_relay import ConversationRelay


@pytest.fixture
def active_session(clock):
    return Session(
        session_id="S1",
        expires_at=clock() + timedelta(minutes=10),
        language_profile=LanguageProfile("es-MX", "Andrés")
    )


class TestConverse:
    """Test cases for ConversationRelay.converse."""

    @pytest.mark.asyncio
    async def test_relays_utterance_with_session_id(self, relay, mock_core_client, make_event, active_session):
        mock_core_client.converse.return_value = BackendResult(reply="Mañana lloverá.")

        reply, session = await relay.converse("¿va a llover?", active_session, make_event())

        assert reply.text == "Mañana lloverá."
        assert reply.synian_voice
        assert reply.profile == active_session.language_profile
        assert not reply.end_session
        assert session == active_session

        utterance, context = mock_core_client.converse.await_args.args
        assert utterance == "¿va a llover?"
        assert context.session_id == "S1"

    @pytest.mark.asyncio
    async def test_reply_field_precedence(self, relay, mock_core_client, make_event, active_session):
        mock_core_client.converse.return_value = BackendResult(response="  ", message="desde message")

        reply, _ = await relay.converse("hola", active_session, make_event())

        assert reply.text == "desde message"

    @pytest.mark.asyncio
    async def test_empty_reply_uses_placeholder(self, relay, mock_core_client, make_event, active_session):
        mock_core_client.converse.return_value = BackendResult(status="OK")

        reply, _ = await relay.converse("hola", active_session, make_event())

        assert reply.text == messages.NO_RESPONSE

    @pytest.mark.asyncio
    async def test_expired_locally_makes_no_call(self, relay, mock_core_client, make_event, clock):
        expired = Session(session_id="S1", expires_at=clock() - timedelta(seconds=1))

        reply, session = await relay.converse("hola", expired, make_event())

        assert reply.text == messages.SESSION_EXPIRED
        assert session.session_id is None
        mock_core_client.converse.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_backend_expiry_overrides_local_state(self, relay, mock_core_client, make_event, active_session):
        mock_core_client.converse.return_value = BackendResult(status="SESSION_EXPIRED")

        reply, session = await relay.converse("hola", active_session, make_event())

        assert reply.text == messages.SESSION_EXPIRED
        assert not reply.synian_voice
        assert session == Session()

    @pytest.mark.asyncio
    async def test_unauthenticated_is_asked_to_activate(self, relay, mock_core_client, make_event):
        reply, session = await relay.converse("hola", Session(), make_event())

        assert reply.text == messages.PLEASE_AUTHENTICATE
        assert reply.reprompt is not None
        assert session == Session()
        mock_core_client.converse.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_utterance_reprompts(self, relay, mock_core_client, make_event, active_session):
        reply, session = await relay.converse("   ", active_session, make_event())

        assert reply.text == messages.UTTERANCE_MISSING
        assert reply.reprompt == messages.UTTERANCE_MISSING
        assert session == active_session
        mock_core_client.converse.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_backend_unavailable(self, relay, mock_core_client, make_event, active_session):
        mock_core_client.converse.side_effect = BackendUnavailable("converse", "HTTP 502")

        reply, session = await relay.converse("hola", active_session, make_event())

        assert reply.text == messages.CORE_UNAVAILABLE
        assert "502" not in reply.text
        assert session == active_session


class TestVoiceOverrides:
    """Backend language and voice overrides."""

    @pytest.mark.asyncio
    async def test_voice_override_applies_to_one_turn(self, relay, mock_core_client, make_event, active_session):
        mock_core_client.converse.return_value = BackendResult(reply="hi", voiceProfile="Joanna")

        reply, session = await relay.converse("hola", active_session, make_event())

        assert reply.profile == LanguageProfile("es-MX", "Joanna")
        assert session.language_profile == LanguageProfile("es-MX", "Andrés")

    @pytest.mark.asyncio
    async def test_language_override_resolves_voice(self, relay, mock_core_client, make_event, active_session):
        mock_core_client.converse.return_value = BackendResult(reply="hello", language="en-GB")

        reply, _ = await relay.converse("hola", active_session, make_event())

        assert reply.profile == LanguageProfile("en-US", "Matthew")

    @pytest.mark.asyncio
    async def test_voice_wins_over_language(self, relay, mock_core_client, make_event, active_session):
        mock_core_client.converse.return_value = BackendResult(reply="olá", language="pt-BR", voiceProfile="Camila")

        reply, _ = await relay.converse("hola", active_session, make_event())

        assert reply.profile == LanguageProfile("pt-BR", "Camila")

    @pytest.mark.asyncio
    async def test_session_scope_persists_override(self, auth_machine, mock_core_client, make_event, active_session):
        relay = ConversationRelay(auth_machine, voice_override_scope="session")
        mock_core_client.converse.return_value = BackendResult(reply="hello", language="en-US")

        _, session = await relay.converse("hola", active_session, make_event())

        assert session.language_profile == LanguageProfile("en-US", "Matthew")

        mock_core_client.converse.return_value = BackendResult(reply="still english")
        reply, _ = await relay.converse("hola", session, make_event())
        assert reply.profile.voice_id == "Matthew"

    def test_unknown_scope_rejected(self, auth_machine):
        with pytest.raises(ValueError, match="voice override scope"):
            ConversationRelay(auth_machine, voice_override_scope="forever")


class TestCommand:
    """Test cases for ConversationRelay.command."""

    @pytest.mark.asyncio
    async def test_command_confirmation(self, relay, mock_core_client, make_event, active_session):
        mock_core_client.send_command.return_value = BackendResult(confirmation="Luz encendida.")

        reply, _ = await relay.command("enciende la luz", active_session, make_event(IntentKind.COMMAND))

        assert reply.text == "Luz encendida."
        assert reply.synian_voice
        assert mock_core_client.send_command.await_args.args[1].session_id == "S1"

    @pytest.mark.asyncio
    async def test_command_default_confirmation(self, relay, mock_core_client, make_event, active_session):
        mock_core_client.send_command.return_value = BackendResult()

        reply, _ = await relay.command("enciende la luz", active_session, make_event(IntentKind.COMMAND))

        assert reply.text == messages.COMMAND_SENT

    @pytest.mark.asyncio
    async def test_command_requires_authentication(self, relay, mock_core_client, make_event):
        reply, _ = await relay.command("enciende la luz", Session(), make_event(IntentKind.COMMAND))

        assert reply.text == messages.PLEASE_AUTHENTICATE
        mock_core_client.send_command.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_command(self, relay, mock_core_client, make_event, active_session):
        reply, _ = await relay.command(None, active_session, make_event(IntentKind.COMMAND))

        assert reply.text == messages.COMMAND_MISSING
        mock_core_client.send_command.assert_not_awaited()


class TestStatus:
    """Test cases for ConversationRelay.status."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document,expected", [
        ({"online": True}, messages.STATUS_ONLINE),
        ({"status": "OK"}, messages.STATUS_ONLINE),
        ({"online": False}, messages.STATUS_OFFLINE),
        ({}, messages.STATUS_OFFLINE),
    ])
    async def test_status_reply(self, relay, mock_core_client, make_event, document, expected):
        mock_core_client.get_status.return_value = document

        reply = await relay.status(make_event(IntentKind.STATUS))

        assert reply.text == expected

    @pytest.mark.asyncio
    async def test_status_unreachable(self, relay, mock_core_client, make_event):
        mock_core_client.get_status.side_effect = BackendUnavailable("status", "timeout")

        reply = await relay.status(make_event(IntentKind.STATUS))

        assert reply.text == messages.CORE_UNAVAILABLE


class TestExit:
    """Test cases for ConversationRelay.exit."""

    @pytest.mark.asyncio
    async def test_exit_notifies_backend_and_clears(self, relay, mock_core_client, make_event, active_session):
        reply, session = await relay.exit(active_session, make_event(IntentKind.EXIT))

        assert reply.text == messages.RETURNED_TO_DEFAULT
        assert reply.end_session
        assert not reply.synian_voice
        assert session == Session()
        assert mock_core_client.end_session.await_args.args[0].session_id == "S1"

    @pytest.mark.asyncio
    async def test_exit_clears_even_when_backend_fails(self, relay, mock_core_client, make_event, active_session):
        mock_core_client.end_session.side_effect = BackendUnavailable("end_session", "timeout")

        reply, session = await relay.exit(active_session, make_event(IntentKind.EXIT))

        assert reply.text == messages.RETURNED_TO_DEFAULT
        assert session == Session()

    @pytest.mark.asyncio
    async def test_exit_without_session_skips_backend(self, relay, mock_core_client, make_event):
        reply, session = await relay.exit(Session(), make_event(IntentKind.EXIT))

        assert reply.text == messages.RETURNED_TO_DEFAULT
        assert session == Session()
        mock_core_client.end_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exit_after_expiry_speaks_notice(self, relay, mock_core_client, make_event, clock):
        expired = Session(session_id="S1", expires_at=clock() - timedelta(seconds=1))

        reply, session = await relay.exit(expired, make_event(IntentKind.EXIT))

        assert reply.text == f"{messages.SESSION_EXPIRED} {messages.RETURNED_TO_DEFAULT}"
        assert reply.end_session
        assert session == Session()
        mock_core_client.end_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exit_keeps_lockout(self, relay, make_event, clock):
        locked = Session(locked_until=clock() + timedelta(minutes=3))

        _, session = await relay.exit(locked, make_event(IntentKind.EXIT))

        assert session.is_locked(clock())
