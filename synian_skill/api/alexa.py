"""
Alexa webhook for the Synian skill.

Translates Alexa request envelopes into classified ``InboundEvent`` objects
and ``SpeechReply`` objects back into Alexa response envelopes. The platform
always gets a well-formed 200 response, even when the envelope is malformed
or handling failed.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from synian_skill.config import settings
from synian_skill.errors import InvalidEnvelopeError
from synian_skill.models.platform_models import InboundEvent, IntentKind, SpeechReply
from synian_skill.observability import trace_function
from synian_skill.services import messages
from synian_skill.services.dispatcher import get_dispatcher
from synian_skill.services.locale_resolver import resolve_language_profile
from synian_skill.utils.ssml_utils import render_reprompt, render_speech

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1", tags=["alexa"])

ALEXA_RESPONSE_VERSION = "1.0"

INTENT_KINDS: Dict[str, IntentKind] = {
    "ActivateSynianIntent": IntentKind.REQUEST_CODE,
    "ProvideCodeIntent": IntentKind.SUBMIT_CODE,
    "ConversacionIntent": IntentKind.CONVERSE,
    "QueryIntent": IntentKind.CONVERSE,
    "CommandIntent": IntentKind.COMMAND,
    "GetStatusIntent": IntentKind.STATUS,
    "ExitSynianIntent": IntentKind.EXIT,
    "AMAZON.HelpIntent": IntentKind.HELP,
    "AMAZON.CancelIntent": IntentKind.CANCEL,
    "AMAZON.StopIntent": IntentKind.CANCEL,
    "AMAZON.FallbackIntent": IntentKind.FALLBACK,
}


def _mapping(value: Any, what: str) -> Dict[str, Any]:
    """A nested envelope object; absent is empty, any other shape is invalid."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidEnvelopeError(f"Envelope {what} is not an object")
    return value


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def envelope_locale(envelope: Any) -> Optional[str]:
    """Request locale, if the envelope is shaped well enough to carry one."""
    if not isinstance(envelope, dict) or not isinstance(envelope.get("request"), dict):
        return None
    return _text(envelope["request"].get("locale"))


def classify_request(request_body: Dict[str, Any]) -> IntentKind:
    """Map an Alexa request type / intent name onto an ``IntentKind``."""
    request_type = request_body.get("type")
    if request_type == "LaunchRequest":
        return IntentKind.LAUNCH
    if request_type == "SessionEndedRequest":
        return IntentKind.SESSION_END
    if request_type == "IntentRequest":
        intent_name = _text(_mapping(request_body.get("intent"), "intent").get("name"))
        return INTENT_KINDS.get(intent_name, IntentKind.FALLBACK)
    return IntentKind.ERROR


def extract_slots(request_body: Dict[str, Any]) -> Dict[str, str]:
    """Slot name -> recognized value, skipping unfilled slots."""
    slots = _mapping(_mapping(request_body.get("intent"), "intent").get("slots"), "slots")
    values = {}
    for name, slot in slots.items():
        if isinstance(slot, dict) and slot.get("value"):
            values[name] = str(slot["value"])
    return values


def extract_inbound_event(envelope: Dict[str, Any]) -> InboundEvent:
    """
    Build an ``InboundEvent`` from an Alexa request envelope.

    Raises:
        InvalidEnvelopeError: If the envelope has no request or conversation
            id, or a nested object has the wrong shape
    """
    request_body = envelope.get("request")
    if not isinstance(request_body, dict) or not _text(request_body.get("type")):
        raise InvalidEnvelopeError("Envelope has no request")

    session = _mapping(envelope.get("session"), "session")
    system = _mapping(_mapping(envelope.get("context"), "context").get("System"), "context.System")

    conversation_id = _text(session.get("sessionId"))
    if not conversation_id:
        raise InvalidEnvelopeError("Envelope has no session id")

    application_id = (
        _text(_mapping(system.get("application"), "System.application").get("applicationId"))
        or _text(_mapping(session.get("application"), "session.application").get("applicationId"))
    )
    platform_user_id = (
        _text(_mapping(system.get("user"), "System.user").get("userId"))
        or _text(_mapping(session.get("user"), "session.user").get("userId"))
    )
    device = _mapping(system.get("device"), "System.device")
    intent = _mapping(request_body.get("intent"), "intent")

    return InboundEvent(
        conversation_id=conversation_id,
        intent=classify_request(request_body),
        locale=_text(request_body.get("locale")),
        intent_name=_text(intent.get("name")) or request_body["type"],
        slots=extract_slots(request_body),
        request_id=_text(request_body.get("requestId")),
        device_id=_text(device.get("deviceId")),
        application_id=application_id,
        platform_user_id=platform_user_id,
        session_attributes=dict(_mapping(session.get("attributes"), "session attributes")),
    )


def build_alexa_response(reply: SpeechReply, attributes: Dict[str, Any]) -> Dict[str, Any]:
    """Render a speech reply as an Alexa response envelope."""
    response: Dict[str, Any] = {
        "outputSpeech": {"type": "SSML", "ssml": render_speech(reply)},
        "shouldEndSession": reply.end_session and reply.reprompt is None,
    }
    reprompt = render_reprompt(reply)
    if reprompt is not None:
        response["reprompt"] = {"outputSpeech": {"type": "SSML", "ssml": reprompt}}

    return {
        "version": ALEXA_RESPONSE_VERSION,
        "sessionAttributes": attributes,
        "response": response,
    }


def build_error_response(locale: Optional[str]) -> Dict[str, Any]:
    """Generic apology used when a turn could not be handled at all."""
    reply = SpeechReply(
        text=messages.GENERIC_ERROR,
        profile=resolve_language_profile(locale, settings.default_locale),
        reprompt=messages.GENERIC_ERROR_REPROMPT
    )
    return build_alexa_response(reply, {})


@router.post("/alexa")
@trace_function("alexa_webhook")
async def handle_alexa_request(request: Request) -> JSONResponse:
    """
    Handle one Alexa request envelope.

    Request signature verification is left to the hosting platform.
    """
    locale: Optional[str] = None

    try:
        envelope = await request.json()
        if not isinstance(envelope, dict):
            raise InvalidEnvelopeError("Envelope is not a JSON object")
        locale = envelope_locale(envelope)
        event = extract_inbound_event(envelope)
    except (InvalidEnvelopeError, ValueError) as e:
        logger.warning("Rejected malformed Alexa envelope", error_type=type(e).__name__, error=str(e))
        return JSONResponse(status_code=200, content=build_error_response(locale))

    if settings.alexa_skill_id and event.application_id != settings.alexa_skill_id:
        logger.warning(
            "Alexa request for unexpected application",
            application_id=event.application_id,
            conversation_id=event.conversation_id
        )
        return JSONResponse(
            status_code=403,
            content={"error": "Forbidden", "message": "Unknown application id"}
        )

    structlog.contextvars.bind_contextvars(conversation_id=event.conversation_id)
    logger.info(
        "Received Alexa request",
        intent=event.intent.value,
        intent_name=event.intent_name,
        locale=event.locale,
        request_id=event.request_id
    )

    try:
        reply, attributes = await get_dispatcher().dispatch(event)
    except Exception as e:
        logger.error(
            "Unexpected error in Alexa webhook",
            error_type=type(e).__name__,
            exc_info=True
        )
        return JSONResponse(status_code=200, content=build_error_response(event.locale))

    return JSONResponse(status_code=200, content=build_alexa_response(reply, attributes))
