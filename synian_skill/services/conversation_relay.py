"""
Conversation relay for authenticated Synian sessions.

Expiry is honored on two channels: the locally stored ``expires_at`` is
checked before every call, and a SESSION_EXPIRED answer from Synian Core
clears the session even when the local timestamp is still in the future.
"""

import logging
from dataclasses import replace
from typing import Optional, Tuple

from synian_skill.clients.synian_core_client import (
    SynianCoreClient,
    build_request_context
)
from synian_skill.config import settings
from synian_skill.errors import BackendUnavailable
from synian_skill.models.backend_models import BackendResult
from synian_skill.models.platform_models import InboundEvent, SpeechReply
from synian_skill.models.session import LanguageProfile, Session
from synian_skill.observability import record_relay_metrics
from synian_skill.services import messages
from synian_skill.services.auth_service import AuthenticationStateMachine
from synian_skill.services.locale_resolver import resolve_language_profile

logger = logging.getLogger(__name__)


class ConversationRelay:
    """Forwards authenticated turns to Synian Core and renders the replies."""

    def __init__(
        self,
        auth: AuthenticationStateMachine,
        core_client: Optional[SynianCoreClient] = None,
        voice_override_scope: Optional[str] = None
    ):
        """
        Initialize the relay.

        Args:
            auth: State machine providing expiry checks and the clock
            core_client: Synian Core client. If None, uses the state machine's.
            voice_override_scope: "turn" to apply a backend voice override to
                one reply, "session" to keep it for the rest of the session
        """
        self.auth = auth
        self.core_client = core_client or auth.core_client
        self.voice_override_scope = voice_override_scope or settings.voice_override_scope

        if self.voice_override_scope not in ("turn", "session"):
            raise ValueError(f"Unknown voice override scope: {self.voice_override_scope}")

    def reply_profile(
        self,
        result: BackendResult,
        session: Session,
        event: InboundEvent
    ) -> LanguageProfile:
        """Backend override, else the session profile, else the request locale."""
        base = session.language_profile or self.auth.request_profile(event)
        if result.language:
            base = resolve_language_profile(result.language, self.auth.default_locale)
        if result.voice_profile:
            return LanguageProfile(language_code=base.language_code, voice_id=result.voice_profile)
        return base

    def _gate(
        self,
        operation: str,
        session: Session,
        event: InboundEvent
    ) -> Tuple[Optional[SpeechReply], Session]:
        """Expiry and authentication checks shared by relayed operations."""
        session, notice = self.auth.check_expiry(session, event)
        if notice is not None:
            record_relay_metrics(operation, "expired")
            return notice, session

        if not session.is_authenticated(self.auth.clock()):
            record_relay_metrics(operation, "unauthenticated")
            reply = SpeechReply(
                text=messages.PLEASE_AUTHENTICATE,
                profile=self.auth.request_profile(event),
                reprompt=messages.PLEASE_AUTHENTICATE
            )
            return reply, session

        return None, session

    def _expired_by_backend(
        self,
        operation: str,
        session: Session,
        event: InboundEvent
    ) -> Tuple[SpeechReply, Session]:
        logger.info(f"Synian Core expired the session for conversation {event.conversation_id}")
        record_relay_metrics(operation, "backend_expired")
        notice = SpeechReply(text=messages.SESSION_EXPIRED, profile=self.auth.request_profile(event))
        return notice, session.cleared()

    def _unavailable(
        self,
        operation: str,
        session: Session,
        event: InboundEvent,
        error: BackendUnavailable
    ) -> Tuple[SpeechReply, Session]:
        logger.error(f"Synian Core {operation} unavailable: {error.summary}")
        record_relay_metrics(operation, "unavailable")
        profile = session.language_profile or self.auth.request_profile(event)
        return SpeechReply(text=messages.CORE_UNAVAILABLE, profile=profile, synian_voice=True), session

    async def converse(
        self,
        utterance: Optional[str],
        session: Session,
        event: InboundEvent
    ) -> Tuple[SpeechReply, Session]:
        """
        Relay one utterance to Synian Core.

        A failed call is reported once and never retried.

        Args:
            utterance: Recognized free text
            session: Current session
            event: Inbound event

        Returns:
            Tuple of (speech reply, updated session)
        """
        denied, session = self._gate("converse", session, event)
        if denied is not None:
            return denied, session

        if not utterance or not utterance.strip():
            record_relay_metrics("converse", "missing_utterance")
            reply = SpeechReply(
                text=messages.UTTERANCE_MISSING,
                profile=session.language_profile or self.auth.request_profile(event),
                synian_voice=True,
                reprompt=messages.UTTERANCE_MISSING
            )
            return reply, session

        context = build_request_context(event, session_id=session.session_id)
        try:
            result = await self.core_client.converse(utterance.strip(), context)
        except BackendUnavailable as e:
            return self._unavailable("converse", session, event, e)

        if result.is_session_expired:
            return self._expired_by_backend("converse", session, event)

        profile = self.reply_profile(result, session, event)
        if self.voice_override_scope == "session" and profile != session.language_profile:
            session = replace(session, language_profile=profile)

        record_relay_metrics("converse", "replied")
        text = result.reply_text or messages.NO_RESPONSE
        return SpeechReply(text=text, profile=profile, synian_voice=True), session

    async def command(
        self,
        command_text: Optional[str],
        session: Session,
        event: InboundEvent
    ) -> Tuple[SpeechReply, Session]:
        """Send an action for Synian to execute; gated like ``converse``."""
        denied, session = self._gate("command", session, event)
        if denied is not None:
            return denied, session

        profile = session.language_profile or self.auth.request_profile(event)
        if not command_text or not command_text.strip():
            record_relay_metrics("command", "missing_utterance")
            reply = SpeechReply(
                text=messages.COMMAND_MISSING,
                profile=profile,
                synian_voice=True,
                reprompt=messages.COMMAND_MISSING
            )
            return reply, session

        context = build_request_context(event, session_id=session.session_id)
        try:
            result = await self.core_client.send_command(command_text.strip(), context)
        except BackendUnavailable as e:
            return self._unavailable("command", session, event, e)

        if result.is_session_expired:
            return self._expired_by_backend("command", session, event)

        record_relay_metrics("command", "replied")
        text = result.confirmation_text or messages.COMMAND_SENT
        return SpeechReply(text=text, profile=self.reply_profile(result, session, event), synian_voice=True), session

    async def status(self, event: InboundEvent) -> SpeechReply:
        """Report whether Synian Core is online. No authentication needed."""
        profile = self.auth.request_profile(event)
        try:
            status = await self.core_client.get_status()
        except BackendUnavailable:
            return SpeechReply(text=messages.CORE_UNAVAILABLE, profile=profile)

        state = status.get("status")
        online = bool(status.get("online")) or (isinstance(state, str) and state.lower() == "ok")
        return SpeechReply(text=messages.STATUS_ONLINE if online else messages.STATUS_OFFLINE, profile=profile)

    async def exit(self, session: Session, event: InboundEvent) -> Tuple[SpeechReply, Session]:
        """
        Leave Synian mode.

        Synian Core is told about the end of a live session on a best-effort
        basis; the local session is cleared whatever happens.
        """
        session, notice = self.auth.check_expiry(session, event)

        if session.session_id:
            context = build_request_context(event, session_id=session.session_id)
            try:
                await self.core_client.end_session(context)
            except Exception as e:
                logger.warning(f"Failed to close Synian session for conversation {event.conversation_id}: {type(e).__name__}")

        record_relay_metrics("exit", "replied")
        text = messages.RETURNED_TO_DEFAULT
        if notice is not None:
            text = f"{notice.text} {text}"
        reply = SpeechReply(
            text=text,
            profile=self.auth.request_profile(event),
            end_session=True
        )
        return reply, session.cleared()
