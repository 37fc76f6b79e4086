"""
Tests for locale resolution.
"""

import pytest

from synian_skill.models.session import LanguageProfile
from synian_skill.services.locale_resolver import VOICE_PROFILES, resolve_language_profile


class TestResolveLanguageProfile:
    """Test cases for resolve_language_profile."""

    def test_mexican_spanish_has_its_own_voice(self):
        mx = resolve_language_profile("es-MX")
        es = resolve_language_profile("es-ES")

        assert mx == LanguageProfile(language_code="es-MX", voice_id="Andrés")
        assert es == LanguageProfile(language_code="es-ES", voice_id="Sergio")
        assert mx != es

    @pytest.mark.parametrize("tag", ["es-AR", "es-US", "es", "ES-co", "es_CL"])
    def test_other_spanish_locales_fold_onto_spain(self, tag):
        assert resolve_language_profile(tag) == VOICE_PROFILES["es-ES"]

    @pytest.mark.parametrize("tag,expected", [
        ("en-US", "en-US"),
        ("en-GB", "en-US"),
        ("EN-in", "en-US"),
        ("pt-BR", "pt-BR"),
        ("pt-PT", "pt-BR"),
    ])
    def test_language_families(self, tag, expected):
        assert resolve_language_profile(tag).language_code == expected

    def test_match_is_case_insensitive(self):
        assert resolve_language_profile("ES-mx") == VOICE_PROFILES["es-MX"]

    @pytest.mark.parametrize("tag", [None, "", "   ", "fr-FR", "de-DE", "ja-JP", "xx"])
    def test_unknown_or_absent_locale_uses_default(self, tag):
        assert resolve_language_profile(tag) == VOICE_PROFILES["es-MX"]

    def test_configured_default_locale(self):
        assert resolve_language_profile("fr-FR", default_locale="en-US") == VOICE_PROFILES["en-US"]

    def test_default_locale_is_itself_resolved(self):
        assert resolve_language_profile(None, default_locale="en-GB") == VOICE_PROFILES["en-US"]

    def test_unsupported_default_falls_back_to_mexican_spanish(self):
        assert resolve_language_profile(None, default_locale="fr-FR") == VOICE_PROFILES["es-MX"]

    def test_is_deterministic(self):
        assert resolve_language_profile("pt-AO") is resolve_language_profile("pt-AO")
