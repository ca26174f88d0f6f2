"""Supported media types, expressed as file extension sets.

Plugins declare what they can handle through these sets; the registry and the
discoverer only ever ask "does this url conform to any of these types?".
"""

from collections.abc import Iterable

from soundshelf.domain.value_objects.locators import extension

AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".mp3",
        ".flac",
        ".m4a",
        ".aac",
        ".ogg",
        ".oga",
        ".opus",
        ".wav",
        ".wma",
        ".aiff",
        ".aif",
        ".ape",
        ".wv",
        ".alac",
        ".dsf",
        ".dff",
    }
)

FLAC_EXTENSIONS: frozenset[str] = frozenset({".flac"})

CUE_SHEET_EXTENSIONS: frozenset[str] = frozenset({".cue"})

IMAGE_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png"})


def conforms_any(url: str, supported_types: Iterable[str]) -> bool:
    """Check whether url's extension is one of supported_types."""
    ext = extension(url)
    return bool(ext) and ext in set(supported_types)


def is_audio_file(url: str) -> bool:
    """Check whether url looks like an audio file."""
    return conforms_any(url, AUDIO_EXTENSIONS)
