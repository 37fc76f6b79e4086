# Utilities module

from .ssml_utils import (
    build_default_ssml,
    build_synian_ssml,
    render_reprompt,
    render_speech,
)

__all__ = [
    "build_default_ssml",
    "build_synian_ssml",
    "render_reprompt",
    "render_speech",
]
