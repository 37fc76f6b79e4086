"""
Tests for SSML rendering.
"""

from synian_skill.models.platform_models import SpeechReply
from synian_skill.models.session import LanguageProfile
from synian_skill.utils.ssml_utils import (
    build_default_ssml,
    build_synian_ssml,
    render_reprompt,
    render_speech
)

PROFILE = LanguageProfile(language_code="es-MX", voice_id="Andrés")


class TestSSMLBuilders:
    """Test cases for the SSML builders."""

    def test_default_voice(self):
        ssml = build_default_ssml("Hola", PROFILE)

        assert ssml == '<speak><lang xml:lang="es-MX">Hola</lang></speak>'

    def test_synian_voice(self):
        ssml = build_synian_ssml("Hola", PROFILE)

        assert ssml.startswith('<speak><lang xml:lang="es-MX"><voice name="Andrés">')
        assert '<prosody rate="95%" pitch="+1%">Hola</prosody>' in ssml
        assert ssml.endswith("</voice></lang></speak>")

    def test_text_is_escaped(self):
        ssml = build_synian_ssml('<break time="10s"/> R&D', PROFILE)

        assert "<break" not in ssml
        assert "&lt;break" in ssml
        assert "R&amp;D" in ssml


class TestRenderSpeech:
    """Test cases for render_speech and render_reprompt."""

    def test_voice_follows_reply(self):
        plain = SpeechReply(text="Hola", profile=PROFILE)
        synian = SpeechReply(text="Hola", profile=PROFILE, synian_voice=True)

        assert "<voice" not in render_speech(plain)
        assert "<voice" in render_speech(synian)

    def test_reprompt(self):
        assert render_reprompt(SpeechReply(text="Hola", profile=PROFILE)) is None

        reply = SpeechReply(text="Hola", profile=PROFILE, synian_voice=True, reprompt="¿Sigues ahí?")
        reprompt = render_reprompt(reply)

        assert "¿Sigues ahí?" in reprompt
        assert '<voice name="Andrés">' in reprompt
