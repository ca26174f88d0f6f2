"""
Media plugin interfaces for SoundShelf.

Hey future me - these are the three kinds of collaborators discovery talks to:

1. IMediaImporter   - turns a file (cue sheet, audio file) into Albums + Tracks
2. IMetadataGrabber - reads tags from a track SOURCE (the audio file itself)
3. IArtworkLoader   - reads a cover image (image file or embedded picture)

Each plugin declares supported_types (file extensions). The PluginRegistry keeps them in
ORDERED lists and discovery always asks "first plugin that supports this url" - so the
registration order is the priority order. Plugins raise MediaFileError subclasses
(InvalidFormatError, MediaFileNotFoundError, ...) for per-file failures; the Discoverer
collects those, it never lets them abort sibling work.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from soundshelf.domain.entities import Album, Track
from soundshelf.domain.ports.tracing import IRequestTracer
from soundshelf.domain.value_objects import Metadata
from soundshelf.domain.value_objects.media_types import conforms_any


@dataclass
class ImportedMedia:
    """Albums and tracks produced by one importer call."""

    albums: list[Album] = field(default_factory=list)
    tracks: list[Track] = field(default_factory=list)


class IMediaPlugin(ABC):
    """Common base: a plugin claims urls by file type."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human readable plugin name (used in logs)."""
        ...

    @property
    @abstractmethod
    def supported_types(self) -> frozenset[str]:
        """File extensions (with dot, lowercase) this plugin handles."""
        ...

    def supports(self, url: str) -> bool:
        """Check whether url conforms to one of supported_types."""
        return conforms_any(url, self.supported_types)


class IMediaImporter(IMediaPlugin):
    """Creates albums and tracks from a media file."""

    @abstractmethod
    async def import_media(
        self, url: str, tracer: IRequestTracer | None = None
    ) -> ImportedMedia:
        """
        Import url.

        Args:
            url: Locator of the file to import
            tracer: Notified around blocking I/O

        Returns:
            Imported albums and tracks (tracks reference the returned albums)

        Raises:
            MediaFileError: On per-file failure
        """
        ...


class IMetadataGrabber(IMediaPlugin):
    """Reads tags from a track source."""

    @abstractmethod
    async def grab_metadata(
        self, url: str, tracer: IRequestTracer | None = None
    ) -> Metadata:
        """
        Read tags of url.

        Returns:
            Metadata with canonical keys

        Raises:
            MediaFileError: On per-file failure
        """
        ...


class IArtworkLoader(IMediaPlugin):
    """Loads a cover image."""

    @abstractmethod
    async def load_cover(
        self, url: str, tracer: IRequestTracer | None = None
    ) -> bytes | None:
        """
        Load the cover image stored at or embedded in url.

        Returns:
            Encoded image bytes, None if url has no image

        Raises:
            MediaFileError: On per-file failure
        """
        ...
