"""
Authentication state machine for Synian mode.

A conversation moves between four states (see ``SessionState``):

    NO_SESSION -> AUTHENTICATING -> AUTHENTICATED
                        |
                        +-> LOCKED (after max_auth_attempts rejections)

Synian Core owns the code check; this module owns the retry budget, the
lockout and the session expiry bookkeeping. Every operation takes the
current ``Session`` and returns the speech for the turn together with the
updated session.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from synian_skill.clients.synian_core_client import (
    SynianCoreClient,
    build_request_context,
    get_core_client
)
from synian_skill.config import settings
from synian_skill.errors import BackendUnavailable
from synian_skill.models.backend_models import BackendResult
from synian_skill.models.platform_models import InboundEvent, SpeechReply
from synian_skill.models.session import LanguageProfile, Session, utcnow
from synian_skill.observability import record_auth_metrics
from synian_skill.services import messages
from synian_skill.services.locale_resolver import resolve_language_profile
from synian_skill.services.session_store import LockoutRegistry, get_lockout_registry

logger = logging.getLogger(__name__)


def lockout_identity(event: InboundEvent) -> Optional[str]:
    """Who a cooldown lockout applies to: the platform user, else the device."""
    return event.platform_user_id or event.device_id


class AuthenticationStateMachine:
    """
    Validates spoken codes against Synian Core and enforces the lockout policy.
    """

    def __init__(
        self,
        core_client: Optional[SynianCoreClient] = None,
        max_auth_attempts: Optional[int] = None,
        lockout_minutes: Optional[int] = None,
        lockout_policy: Optional[str] = None,
        default_locale: Optional[str] = None,
        lockouts: Optional[LockoutRegistry] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize the state machine.

        Args:
            core_client: Synian Core client. If None, uses the global one.
            max_auth_attempts: Rejections that trigger a lockout (default: 3)
            lockout_minutes: Cooldown length for the "cooldown" policy
            lockout_policy: "cooldown" (timed) or "restart" (until the
                conversation ends)
            default_locale: Locale used when a request carries none
            lockouts: Per-user cooldown registry. If None, uses the global one.
            clock: Source of the current UTC time
        """
        self.core_client = core_client or get_core_client()
        self.max_auth_attempts = max_auth_attempts or settings.max_auth_attempts
        self.lockout_minutes = lockout_minutes or settings.lockout_minutes
        self.lockout_policy = lockout_policy or settings.lockout_policy
        self.default_locale = default_locale or settings.default_locale
        self.lockouts = lockouts if lockouts is not None else get_lockout_registry()
        self.clock = clock

        if self.lockout_policy not in ("cooldown", "restart"):
            raise ValueError(f"Unknown lockout policy: {self.lockout_policy}")

        logger.info(
            f"Authentication state machine initialized: max_attempts={self.max_auth_attempts}, "
            f"lockout_policy={self.lockout_policy}"
        )

    def request_profile(self, event: InboundEvent) -> LanguageProfile:
        """Profile for messages spoken outside Synian mode."""
        return resolve_language_profile(event.locale, self.default_locale)

    def check_expiry(self, session: Session, event: InboundEvent) -> Tuple[Session, Optional[SpeechReply]]:
        """
        Clear a session whose expiry is missing or past.

        Returns:
            Tuple of (session, expiry notice or None when nothing expired)
        """
        if not session.is_expired(self.clock()):
            return session, None

        logger.info(f"Synian session expired for conversation {event.conversation_id}")
        notice = SpeechReply(text=messages.SESSION_EXPIRED, profile=self.request_profile(event))
        return session.cleared(), notice

    def with_user_lockout(self, session: Session, event: InboundEvent, now: datetime) -> Session:
        """Carry a cooldown started in another conversation of the same user."""
        if session.is_locked(now) or session.is_authenticated(now):
            return session
        locked_until = self.lockouts.locked_until(lockout_identity(event))
        if locked_until is None:
            return session
        return replace(session, locked_until=locked_until)

    def request_code(self, session: Session, event: InboundEvent) -> Tuple[SpeechReply, Session]:
        """Ask for the code, unless locked or already in Synian mode."""
        session, _ = self.check_expiry(session, event)
        now = self.clock()
        session = self.with_user_lockout(session, event, now)
        profile = self.request_profile(event)

        if session.is_locked(now):
            return SpeechReply(text=messages.STILL_LOCKED, profile=profile, end_session=True), session

        if session.is_authenticated(now):
            return SpeechReply(
                text=messages.ALREADY_AUTHENTICATED,
                profile=session.language_profile or profile,
                synian_voice=True
            ), session

        reply = SpeechReply(text=messages.ASK_CODE, profile=profile, reprompt=messages.ASK_CODE)
        return reply, replace(session, awaiting_code=True)

    async def submit_code(
        self,
        code: Optional[str],
        session: Session,
        event: InboundEvent
    ) -> Tuple[SpeechReply, Session]:
        """
        Validate a spoken code with Synian Core.

        Lockout is checked before anything else so it cannot be bypassed by
        repeated attempts. A missing code or an unreachable backend never
        consumes the retry budget.

        Args:
            code: Recognized code, None when the platform heard nothing
            session: Current session
            event: Inbound event (identity for the request context)

        Returns:
            Tuple of (speech reply, updated session)
        """
        session, _ = self.check_expiry(session, event)
        now = self.clock()
        session = self.with_user_lockout(session, event, now)
        profile = self.request_profile(event)

        if session.is_locked(now):
            logger.warning(f"Code submission rejected while locked for conversation {event.conversation_id}")
            record_auth_metrics("blocked", event.locale)
            return SpeechReply(text=messages.STILL_LOCKED, profile=profile, end_session=True), session

        if session.locked_until is not None:
            # Cooldown elapsed
            session = replace(session, locked_until=None)

        if not code or not code.strip():
            record_auth_metrics("missing_code", event.locale)
            reply = SpeechReply(
                text=messages.CODE_NOT_UNDERSTOOD,
                profile=profile,
                reprompt=messages.CODE_NOT_UNDERSTOOD
            )
            return reply, replace(session, awaiting_code=True)

        try:
            result = await self.core_client.authenticate(code.strip(), build_request_context(event))
        except BackendUnavailable as e:
            logger.error(f"Code validation unavailable for conversation {event.conversation_id}: {e.summary}")
            record_auth_metrics("unavailable", event.locale)
            return SpeechReply(text=messages.CORE_UNAVAILABLE, profile=profile), session

        if result.is_success:
            return self._accept(result, session, event)
        return self._reject(session, event, now)

    def _accept(
        self,
        result: BackendResult,
        session: Session,
        event: InboundEvent
    ) -> Tuple[SpeechReply, Session]:
        if result.session_id is None or result.expires_at is None:
            missing = "sessionId" if result.session_id is None else "expiresAt"
            logger.warning(
                f"Synian Core accepted the code but omitted {missing} for conversation "
                f"{event.conversation_id}; session is treated as already expired"
            )
            record_auth_metrics("incomplete_session", event.locale)
            notice = SpeechReply(text=messages.SESSION_EXPIRED, profile=self.request_profile(event))
            return notice, replace(session.cleared(), locked_until=None)

        language_profile = resolve_language_profile(result.language or event.locale, self.default_locale)
        authenticated = replace(
            session,
            session_id=result.session_id,
            expires_at=result.expires_at,
            auth_attempts=0,
            locked_until=None,
            locked_for_conversation=False,
            awaiting_code=False,
            language_profile=language_profile,
            display_name=result.display_name
        )

        greeting = result.reply_text
        if not greeting:
            if result.display_name:
                greeting = messages.GREETING_NAMED.format(name=result.display_name)
            else:
                greeting = messages.GREETING

        logger.info(f"Synian mode authenticated for conversation {event.conversation_id}")
        record_auth_metrics("success", event.locale)
        return SpeechReply(text=greeting, profile=language_profile, synian_voice=True), authenticated

    def _reject(self, session: Session, event: InboundEvent, now: datetime) -> Tuple[SpeechReply, Session]:
        attempts = session.auth_attempts + 1
        profile = self.request_profile(event)

        if attempts < self.max_auth_attempts:
            logger.info(
                f"Code rejected for conversation {event.conversation_id} "
                f"(attempt {attempts}/{self.max_auth_attempts})"
            )
            record_auth_metrics("rejected", event.locale)
            reply = SpeechReply(text=messages.CODE_REJECTED, profile=profile, reprompt=messages.CODE_REJECTED)
            return reply, replace(session, auth_attempts=attempts, awaiting_code=True)

        logger.warning(
            f"Code rejected {attempts} times for conversation {event.conversation_id}; "
            f"locking out ({self.lockout_policy})"
        )
        record_auth_metrics("locked_out", event.locale)

        if self.lockout_policy == "cooldown":
            locked_until = now + timedelta(minutes=self.lockout_minutes)
            self.lockouts.lock(lockout_identity(event), locked_until)
            locked = replace(session.cleared(), locked_until=locked_until)
            text = messages.LOCKED_OUT_COOLDOWN.format(attempts=attempts, minutes=self.lockout_minutes)
        else:
            locked = replace(session.cleared(), locked_for_conversation=True)
            text = messages.LOCKED_OUT_RESTART.format(attempts=attempts)

        return SpeechReply(text=text, profile=profile, end_session=True), locked
