"""Shared mutagen helpers for importers, grabbers and artwork loaders.

Hey future me - mutagen is synchronous and does real disk I/O, so EVERY call goes through
asyncio.to_thread() in the plugins. The helpers here are the sync halves; they translate
OS and mutagen errors into our MediaFileError taxonomy so the Discoverer can collect them.
"""

import logging
from pathlib import Path
from typing import Any

from mutagen import File as MutagenFile  # type: ignore[attr-defined]
from mutagen import MutagenError

from soundshelf.domain.exceptions import (
    AccessDeniedError,
    DecodingError,
    InvalidFormatError,
    MediaFileNotFoundError,
)
from soundshelf.domain.value_objects import CueTime
from soundshelf.domain.value_objects.locators import to_path

logger = logging.getLogger(__name__)


def local_path(url: str) -> Path:
    """Local path of url.

    Raises:
        MediaFileNotFoundError: For remote urls (mutagen reads local files only)
    """
    path = to_path(url)
    if path is None:
        raise MediaFileNotFoundError(url, f"Not a local file: {url}")
    return path


def open_audio(url: str) -> Any:
    """Open url with mutagen (sync).

    Returns:
        mutagen FileType instance

    Raises:
        MediaFileNotFoundError: File missing
        AccessDeniedError: File not readable
        InvalidFormatError: mutagen does not recognise the container
        DecodingError: mutagen failed while parsing
    """
    path = local_path(url)
    try:
        audio = MutagenFile(path)
    except FileNotFoundError as e:
        raise MediaFileNotFoundError(url) from e
    except PermissionError as e:
        raise AccessDeniedError(url) from e
    except MutagenError as e:
        # mutagen wraps IOError into MutagenError too
        cause = e.__context__
        if isinstance(cause, FileNotFoundError):
            raise MediaFileNotFoundError(url) from e
        if isinstance(cause, PermissionError):
            raise AccessDeniedError(url) from e
        raise DecodingError(url) from e
    if audio is None:
        raise InvalidFormatError(url)
    return audio


def probe_duration(url: str) -> CueTime:
    """Read the stream length of url (sync).

    Returns:
        Duration as CueTime, INVALID when the container reports none
    """
    audio = open_audio(url)
    length = getattr(audio.info, "length", None)
    duration = CueTime.from_seconds(length)
    logger.debug("Probed duration of %s: %s", url, duration)
    return duration
