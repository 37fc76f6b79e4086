"""
Intent dispatcher: one inbound event in, one speech reply out.

Each turn runs under its conversation's lock: load the session, route the
classified intent to its handler, persist the updated session. Anything a
handler did not anticipate is answered with a generic apology and leaves the
stored session as it was.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import structlog

from synian_skill.models.platform_models import InboundEvent, IntentKind, SpeechReply
from synian_skill.models.session import Session
from synian_skill.observability import trace_function
from synian_skill.services import messages
from synian_skill.services.auth_service import AuthenticationStateMachine
from synian_skill.services.conversation_relay import ConversationRelay
from synian_skill.services.session_store import SessionStore, get_session_store

logger = structlog.get_logger()

CODE_SLOT = "clave"
UTTERANCE_SLOT = "texto"

# A handler returns the reply and the session to keep (None drops it)
Handler = Callable[[InboundEvent, Session], Awaitable[Tuple[SpeechReply, Optional[Session]]]]


class IntentDispatcher:
    """Routes classified intents through the authentication state machine and relay."""

    def __init__(
        self,
        auth: Optional[AuthenticationStateMachine] = None,
        relay: Optional[ConversationRelay] = None,
        store: Optional[SessionStore] = None
    ):
        self.auth = auth or AuthenticationStateMachine()
        self.relay = relay or ConversationRelay(self.auth)
        self.store = store or get_session_store()

        self._handlers: Dict[IntentKind, Handler] = {
            IntentKind.LAUNCH: self._launch,
            IntentKind.REQUEST_CODE: self._request_code,
            IntentKind.SUBMIT_CODE: self._submit_code,
            IntentKind.CONVERSE: self._converse,
            IntentKind.COMMAND: self._command,
            IntentKind.STATUS: self._status,
            IntentKind.EXIT: self._exit,
            IntentKind.CANCEL: self._exit,
            IntentKind.HELP: self._help,
            IntentKind.FALLBACK: self._fallback,
            IntentKind.SESSION_END: self._session_end,
            IntentKind.ERROR: self._platform_error,
        }
        missing = set(IntentKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for intents: {sorted(kind.value for kind in missing)}")

    @trace_function("dispatch_intent")
    async def dispatch(self, event: InboundEvent) -> Tuple[SpeechReply, Dict[str, Any]]:
        """
        Handle one turn.

        Args:
            event: Classified inbound event

        Returns:
            Tuple of (speech reply, session attributes for the response)
        """
        log = logger.bind(conversation_id=event.conversation_id, intent=event.intent.value)

        async with self.store.locked(event.conversation_id):
            session = await self.store.load(event)

            try:
                reply, updated = await self._handlers[event.intent](event, session)
            except Exception as e:
                log.error(
                    "Unhandled error while handling intent",
                    intent_name=event.intent_name,
                    error_type=type(e).__name__,
                    exc_info=True
                )
                reply = self.generic_error(event)
                return reply, await self.store.save(event, session)

            if updated is None or updated == Session():
                attributes = await self.store.discard(event)
            else:
                attributes = await self.store.save(event, updated)

            log.info(
                "Intent handled",
                state=(updated or Session()).state(self.auth.clock()).value,
                end_session=reply.end_session
            )
            return reply, attributes

    def generic_error(self, event: InboundEvent) -> SpeechReply:
        return SpeechReply(
            text=messages.GENERIC_ERROR,
            profile=self.auth.request_profile(event),
            reprompt=messages.GENERIC_ERROR_REPROMPT
        )

    async def _launch(self, event: InboundEvent, session: Session):
        reply = SpeechReply(
            text=messages.WELCOME,
            profile=self.auth.request_profile(event),
            reprompt=messages.WELCOME_REPROMPT
        )
        return reply, session

    async def _request_code(self, event: InboundEvent, session: Session):
        code = event.slot(CODE_SLOT)
        if code:
            return await self.auth.submit_code(code, session, event)
        return self.auth.request_code(session, event)

    async def _submit_code(self, event: InboundEvent, session: Session):
        return await self.auth.submit_code(event.slot(CODE_SLOT), session, event)

    async def _converse(self, event: InboundEvent, session: Session):
        utterance = event.slot(UTTERANCE_SLOT) or event.first_slot()
        return await self.relay.converse(utterance, session, event)

    async def _command(self, event: InboundEvent, session: Session):
        return await self.relay.command(event.first_slot(), session, event)

    async def _status(self, event: InboundEvent, session: Session):
        return await self.relay.status(event), session

    async def _exit(self, event: InboundEvent, session: Session):
        return await self.relay.exit(session, event)

    async def _help(self, event: InboundEvent, session: Session):
        session, _ = self.auth.check_expiry(session, event)
        if session.is_authenticated(self.auth.clock()):
            reply = SpeechReply(
                text=messages.HELP_AUTHENTICATED,
                profile=session.language_profile or self.auth.request_profile(event),
                synian_voice=True,
                reprompt=messages.HELP_AUTHENTICATED
            )
        else:
            reply = SpeechReply(
                text=messages.HELP_DEFAULT,
                profile=self.auth.request_profile(event),
                reprompt=messages.HELP_DEFAULT
            )
        return reply, session

    async def _fallback(self, event: InboundEvent, session: Session):
        reply = SpeechReply(
            text=messages.FALLBACK,
            profile=self.auth.request_profile(event),
            reprompt=messages.FALLBACK
        )
        return reply, session

    async def _session_end(self, event: InboundEvent, session: Session):
        reply = SpeechReply(
            text=messages.GOODBYE,
            profile=self.auth.request_profile(event),
            end_session=True
        )
        return reply, None

    async def _platform_error(self, event: InboundEvent, session: Session):
        logger.warning(
            "Voice platform reported an error",
            conversation_id=event.conversation_id,
            intent_name=event.intent_name
        )
        return self.generic_error(event), session


# Global dispatcher instance
_dispatcher: Optional[IntentDispatcher] = None


def get_dispatcher() -> IntentDispatcher:
    """
    Get the global intent dispatcher instance.

    Returns:
        IntentDispatcher: The global dispatcher instance
    """
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = IntentDispatcher()
    return _dispatcher
