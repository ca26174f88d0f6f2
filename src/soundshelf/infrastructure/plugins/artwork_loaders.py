"""Artwork loaders: standalone image files (Pillow) and embedded pictures (mutagen)."""

import asyncio
import logging
from io import BytesIO
from typing import Any

from mutagen.id3 import ID3
from mutagen.mp4 import MP4Tags
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from soundshelf.domain.exceptions import (
    AccessDeniedError,
    InvalidFormatError,
    MediaFileNotFoundError,
)
from soundshelf.domain.ports.plugin import IArtworkLoader
from soundshelf.domain.ports.tracing import IRequestTracer, trace_request
from soundshelf.domain.value_objects.media_types import AUDIO_EXTENSIONS, IMAGE_EXTENSIONS
from soundshelf.infrastructure.plugins.mutagen_support import local_path, open_audio

logger = logging.getLogger(__name__)

# ID3/FLAC picture type 3 = "Cover (front)"
FRONT_COVER_TYPE = 3


def _read_image_file(url: str) -> bytes:
    path = local_path(url)
    try:
        data = path.read_bytes()
    except FileNotFoundError as e:
        raise MediaFileNotFoundError(url) from e
    except PermissionError as e:
        raise AccessDeniedError(url) from e
    # Hey future me - verify() only checks the header/structure without decoding all pixels,
    # cheap enough to reject a truncated "cover.jpg" before it reaches the scaler.
    try:
        with PILImage.open(BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidFormatError(url) from e
    return data


def _pick_picture(pictures: list[Any]) -> bytes | None:
    if not pictures:
        return None
    front = [p for p in pictures if getattr(p, "type", None) == FRONT_COVER_TYPE]
    return bytes((front or pictures)[0].data)


def _read_embedded_picture(url: str) -> bytes | None:
    audio = open_audio(url)
    pictures = getattr(audio, "pictures", None)
    if pictures:
        return _pick_picture(pictures)
    tags = getattr(audio, "tags", None)
    if isinstance(tags, ID3):
        return _pick_picture(tags.getall("APIC"))
    if isinstance(tags, MP4Tags):
        covers = tags.get("covr")
        if covers:
            return bytes(covers[0])
    return None


class ImageArtworkLoader(IArtworkLoader):
    """Loads cover.jpg / cover.png style image files."""

    @property
    def name(self) -> str:
        return "image_file"

    @property
    def supported_types(self) -> frozenset[str]:
        return IMAGE_EXTENSIONS

    async def load_cover(
        self, url: str, tracer: IRequestTracer | None = None
    ) -> bytes | None:
        with trace_request(tracer, url):
            return await asyncio.to_thread(_read_image_file, url)


class EmbeddedArtworkLoader(IArtworkLoader):
    """Loads the picture embedded in an audio file's tags."""

    @property
    def name(self) -> str:
        return "embedded"

    @property
    def supported_types(self) -> frozenset[str]:
        return AUDIO_EXTENSIONS

    async def load_cover(
        self, url: str, tracer: IRequestTracer | None = None
    ) -> bytes | None:
        with trace_request(tracer, url):
            data = await asyncio.to_thread(_read_embedded_picture, url)
        if data is None:
            logger.debug("No embedded picture in %s", url)
        return data
