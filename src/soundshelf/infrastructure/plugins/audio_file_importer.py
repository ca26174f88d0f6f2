"""Whole-file audio importer: one album, one track spanning the entire file."""

import asyncio
import logging

from soundshelf.domain.entities import Album, Track
from soundshelf.domain.ports.plugin import IMediaImporter, ImportedMedia
from soundshelf.domain.ports.tracing import IRequestTracer, trace_request
from soundshelf.domain.value_objects import CueTime
from soundshelf.domain.value_objects.locators import normalize_url
from soundshelf.domain.value_objects.media_types import AUDIO_EXTENSIONS
from soundshelf.infrastructure.plugins.mutagen_support import probe_duration

logger = logging.getLogger(__name__)


# Hey future me - this is the fallback importer, registered AFTER the cue sheet importer.
# Album and track come out bare (no tags) - the metadata grabber fills TITLE/ARTIST/ALBUM
# afterwards and discovery hoists ALBUM/ALBUMARTIST onto this album.
class AudioFileImporter(IMediaImporter):
    """Imports a standalone audio file as a single track."""

    @property
    def name(self) -> str:
        return "audio_file"

    @property
    def supported_types(self) -> frozenset[str]:
        return AUDIO_EXTENSIONS

    async def import_media(
        self, url: str, tracer: IRequestTracer | None = None
    ) -> ImportedMedia:
        """Probe url's duration and wrap it into a track.

        Raises:
            MediaFileError: If mutagen cannot open the file
        """
        source = normalize_url(url)
        with trace_request(tracer, source):
            duration = await asyncio.to_thread(probe_duration, source)
        album = Album()
        track = Track(source=source, start=CueTime.ZERO, end=duration, album_id=album.id)
        return ImportedMedia(albums=[album], tracks=[track])
