"""Artwork service - fills Album.cover for albums that have none.

Hey future me - for every cover-less album we look at its FIRST track (shelf sort order):

1. Local source? Look for sibling files named cover.* (case-insensitive stem) that some
   artwork loader supports (cover.jpg, Cover.PNG, ...).
2. Nothing found? Ask every loader that supports the track source itself (embedded picture).

The image is scaled to settings.artwork.target_width (aspect ratio kept) and re-encoded
(WEBP, quality 85 by default). Pillow is CPU-bound, so it runs in asyncio.to_thread().
Per-album failures are collected and returned, the rest of the albums still get covers.
"""

import asyncio
import logging
import os
from dataclasses import replace
from io import BytesIO

from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from soundshelf.config import ArtworkSettings
from soundshelf.domain.entities import Album, Shelf
from soundshelf.domain.exceptions import DecodingError
from soundshelf.domain.ports.tracing import IRequestTracer
from soundshelf.domain.value_objects.locators import parent_url, stem, to_path, to_url
from soundshelf.infrastructure.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)


def scale_image(data: bytes, target_width: int, image_format: str, quality: int) -> bytes:
    """Scale an encoded image to target_width (aspect ratio kept) and re-encode it.

    Raises:
        UnidentifiedImageError / OSError: If Pillow cannot decode data
    """
    with PILImage.open(BytesIO(data)) as img:
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGB")
        width, height = img.size
        new_height = max(1, height * target_width // max(1, width))
        resized = img.resize((target_width, new_height), PILImage.Resampling.LANCZOS)
        output = BytesIO()
        resized.save(output, format=image_format, quality=quality)
        return output.getvalue()


class ArtworkService:
    """Loads, scales and stores album covers."""

    def __init__(
        self,
        registry: PluginRegistry,
        settings: ArtworkSettings | None = None,
        tracer: IRequestTracer | None = None,
    ) -> None:
        self._registry = registry
        self._settings = settings or ArtworkSettings()
        self._tracer = tracer

    async def load_all_artworks(self, shelf: Shelf) -> tuple[Shelf, list[Exception]]:
        """Load covers for every album without one.

        Args:
            shelf: Current shelf

        Returns:
            (shelf with covers filled in, per-album errors)
        """
        pending = [album for album in shelf.albums if album.cover is None]
        if not pending:
            return shelf, []

        semaphore = asyncio.Semaphore(self._settings.max_concurrency)

        async def load(album: Album) -> bytes | None:
            async with semaphore:
                return await self._load_cover(shelf, album)

        outcomes = await asyncio.gather(*(load(album) for album in pending), return_exceptions=True)

        updated: list[Album] = []
        errors: list[Exception] = []
        for album, outcome in zip(pending, outcomes, strict=True):
            if isinstance(outcome, bytes):
                updated.append(replace(album, cover=outcome))
            elif isinstance(outcome, Exception):
                logger.warning("Cover loading failed for album %s: %s", album.id, outcome)
                errors.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome

        if updated:
            logger.info("Loaded %d album covers (%d failed)", len(updated), len(errors))
        return shelf.with_albums(updated), errors

    async def _load_cover(self, shelf: Shelf, album: Album) -> bytes | None:
        tracks = shelf.sorted_tracks(shelf.get_tracks(album))
        if not tracks:
            return None
        source = tracks[0].source

        original: bytes | None = None
        if to_path(source) is not None:
            original = await self._load_sibling_cover(source)
        if original is None:
            for loader in self._registry.artwork_loaders_for(source):
                original = await loader.load_cover(source, self._tracer)
                if original is not None:
                    break
        if original is None:
            return None

        try:
            return await asyncio.to_thread(
                scale_image,
                original,
                self._settings.target_width,
                self._settings.format,
                self._settings.quality,
            )
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise DecodingError(source, f"Cannot decode cover image for {source}") from e

    async def _load_sibling_cover(self, source: str) -> bytes | None:
        directory = to_path(parent_url(source))
        if directory is None:
            return None
        stems = {s.lower() for s in self._settings.cover_stems}
        try:
            names = await asyncio.to_thread(os.listdir, directory)
        except OSError as e:
            logger.debug("Cannot list %s for covers: %s", directory, e)
            return None
        candidates = sorted(
            to_url(directory / name) for name in names if stem(name).lower() in stems
        )
        for loader in self._registry.artwork_loaders:
            match = next((c for c in candidates if loader.supports(c)), None)
            if match is None:
                continue
            data = await loader.load_cover(match, self._tracer)
            if data is not None:
                return data
        return None
