"""
SSML rendering utilities for speech replies.

Synian replies are wrapped in Synian's voice and prosody; messages spoken
outside Synian mode only carry the language tag.
"""

from typing import Optional
from xml.sax.saxutils import escape, quoteattr

from synian_skill.models.platform_models import SpeechReply
from synian_skill.models.session import LanguageProfile

SYNIAN_PROSODY_RATE = "95%"
SYNIAN_PROSODY_PITCH = "+1%"


def build_default_ssml(text: str, profile: LanguageProfile) -> str:
    """Plain speech in the platform's own voice."""
    return (
        "<speak>"
        f"<lang xml:lang={quoteattr(profile.language_code)}>{escape(text)}</lang>"
        "</speak>"
    )


def build_synian_ssml(text: str, profile: LanguageProfile) -> str:
    """Speech in Synian's voice for the profile's language."""
    return (
        "<speak>"
        f"<lang xml:lang={quoteattr(profile.language_code)}>"
        f"<voice name={quoteattr(profile.voice_id)}>"
        f"<prosody rate=\"{SYNIAN_PROSODY_RATE}\" pitch=\"{SYNIAN_PROSODY_PITCH}\">"
        f"{escape(text)}"
        "</prosody></voice></lang>"
        "</speak>"
    )


def render_speech(reply: SpeechReply) -> str:
    """SSML for the reply's main text."""
    if reply.synian_voice:
        return build_synian_ssml(reply.text, reply.profile)
    return build_default_ssml(reply.text, reply.profile)


def render_reprompt(reply: SpeechReply) -> Optional[str]:
    """SSML for the reprompt, in the same voice as the reply."""
    if reply.reprompt is None:
        return None
    if reply.synian_voice:
        return build_synian_ssml(reply.reprompt, reply.profile)
    return build_default_ssml(reply.reprompt, reply.profile)
