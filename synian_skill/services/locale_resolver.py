"""
Locale resolution for Synian speech.

Synian speaks with one official voice per language family, not per user.
Every request locale is folded onto one of the canonical profiles below.
"""

from typing import Dict, Optional

from synian_skill.models.session import LanguageProfile

FALLBACK_LOCALE = "es-MX"

# Canonical profile per supported locale
VOICE_PROFILES: Dict[str, LanguageProfile] = {
    "es-MX": LanguageProfile(language_code="es-MX", voice_id="Andrés"),
    "es-ES": LanguageProfile(language_code="es-ES", voice_id="Sergio"),
    "en-US": LanguageProfile(language_code="en-US", voice_id="Matthew"),
    "pt-BR": LanguageProfile(language_code="pt-BR", voice_id="Ricardo"),
}

# Language subtag -> canonical locale for tags without an exact entry
LANGUAGE_FAMILIES: Dict[str, str] = {
    "es": "es-ES",
    "en": "en-US",
    "pt": "pt-BR",
}


def _canonical_locale(locale_tag: str) -> Optional[str]:
    normalized = locale_tag.strip().replace("_", "-").lower()
    for locale in VOICE_PROFILES:
        if normalized == locale.lower():
            return locale
    language = normalized.split("-", 1)[0]
    return LANGUAGE_FAMILIES.get(language)


def resolve_language_profile(
    locale_tag: Optional[str],
    default_locale: str = FALLBACK_LOCALE
) -> LanguageProfile:
    """
    Map a request locale tag to Synian's language/voice profile.

    Args:
        locale_tag: Free-form locale such as "es-AR" or "EN_gb"; may be None
        default_locale: Locale used when the tag is absent or unsupported

    Returns:
        LanguageProfile for the matched language family, or the default one
    """
    default = VOICE_PROFILES[_canonical_locale(default_locale or "") or FALLBACK_LOCALE]
    if not locale_tag or not locale_tag.strip():
        return default

    locale = _canonical_locale(locale_tag)
    if locale is None:
        return default
    return VOICE_PROFILES[locale]
