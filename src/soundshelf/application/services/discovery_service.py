"""Discovery service - recursive, concurrent media discovery.

Hey future me - this walks a directory tree and turns media files into Albums + Tracks:

1. DIRECTORY: log "discovering", list children (hidden files skipped). For each registered
   importer IN ORDER, carve out the children it supports, discover them concurrently and drop
   them (plus every track source they referenced) from the remaining set. That's how a cue
   sheet "consumes" its album.flac so the whole-file importer doesn't import it again.
   If recursive, the remaining subdirectories are discovered concurrently too.
2. FILE: first importer that supports the url wins. Skip when the DiscoverLog says the file
   did not change. Import, then grab tags for every distinct track source concurrently and
   fold them in (grabber values only fill keys the track LACKS). ALBUM/ALBUMARTIST found on a
   track are hoisted to its album as TITLE/ARTIST and stripped from the track.

Failure policy: per-file errors are COLLECTED into DiscoverResult.errors, never raised. One
corrupt cue sheet must not stop a 20k-file library scan.

Concurrency: structured fan-out with asyncio.gather(return_exceptions=True) - every child is
awaited before we return, nothing leaks into the background. Plugin calls are bounded by a
semaphore (settings.discovery.max_concurrency); directory recursion is NOT, so a deep tree
can't deadlock on its own permits. Each call builds a fresh result, no shared mutable state.

Cancellation: cooperative via an asyncio.Event. Checked at every suspension point; whatever
was already discovered is returned with cancelled=True, no rollback.
"""

import asyncio
import logging
import os
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass, field, replace

from soundshelf.config import DiscoverySettings
from soundshelf.domain.entities import (
    Album,
    DiscoverAction,
    DiscoverLog,
    Shelf,
    Track,
)
from soundshelf.domain.exceptions import (
    AccessCapabilityError,
    DirectoryListingError,
    MediaFileError,
    NoApplicableGrabberError,
    NoApplicableImporterError,
)
from soundshelf.domain.ports.access import IAccessCapabilityProvider
from soundshelf.domain.ports.plugin import IMetadataGrabber, ImportedMedia
from soundshelf.domain.ports.tracing import IRequestTracer
from soundshelf.domain.value_objects import Metadata, MetadataKey
from soundshelf.domain.value_objects.identifiers import AlbumId
from soundshelf.domain.value_objects.locators import (
    is_directory,
    is_hidden,
    normalize_url,
    to_path,
    to_url,
)
from soundshelf.infrastructure.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)


@dataclass
class DiscoverResult:
    """Everything one discover() call produced.

    Attributes:
        albums: Imported albums
        tracks: Imported tracks (reference albums in this result)
        log: New discover log entries written during this call
        errors: Per-file failures, collected instead of raised
        cancelled: True when the run stopped early on cancellation
    """

    albums: list[Album] = field(default_factory=list)
    tracks: list[Track] = field(default_factory=list)
    log: DiscoverLog = field(default_factory=DiscoverLog)
    errors: list[Exception] = field(default_factory=list)
    cancelled: bool = False

    def merge(self, other: "DiscoverResult") -> None:
        """Fold a child result into this one."""
        self.albums.extend(other.albums)
        self.tracks.extend(other.tracks)
        self.log = self.log.merge(other.log)
        self.errors.extend(other.errors)
        self.cancelled = self.cancelled or other.cancelled

    def to_shelf(self) -> Shelf:
        """Wrap the result into a Shelf ready to be merged into the library."""
        return Shelf(albums=tuple(self.albums), tracks=tuple(self.tracks), discover_log=self.log)


def fold_grabbed_metadata(
    imported: ImportedMedia, grabbed: dict[str, Metadata]
) -> tuple[list[Album], list[Track]]:
    """Fold grabbed tags into imported tracks and hoist album-level tags.

    Grabbed values only fill keys a track lacks. ALBUM and ALBUMARTIST become
    the owning album's TITLE and ARTIST (unless the album already has them)
    and are stripped from the track.

    Args:
        imported: Importer output
        grabbed: Normalized source url -> grabbed metadata

    Returns:
        (albums, tracks) in import order
    """
    album_metadata: dict[AlbumId, Metadata] = {a.id: a.metadata for a in imported.albums}
    tracks: list[Track] = []
    for track in imported.tracks:
        metadata = track.metadata
        extra = grabbed.get(track.normalized_source)
        if extra is not None:
            metadata = metadata.merged(extra)
        hoist = {
            MetadataKey.TITLE: metadata.get(MetadataKey.ALBUM),
            MetadataKey.ARTIST: metadata.get(MetadataKey.ALBUMARTIST),
        }
        current = album_metadata.get(track.album_id)
        if current is not None:
            for key, value in hoist.items():
                if value is not None and key not in current:
                    current = current.with_value(key, value)
            album_metadata[track.album_id] = current
        metadata = metadata.without(MetadataKey.ALBUM, MetadataKey.ALBUMARTIST)
        tracks.append(replace(track, metadata=metadata) if metadata != track.metadata else track)

    albums = [
        replace(a, metadata=album_metadata[a.id]) if album_metadata[a.id] != a.metadata else a
        for a in imported.albums
    ]
    return albums, tracks


class Discoverer:
    """Discovers media below a url using the injected plugin registry."""

    def __init__(
        self,
        registry: PluginRegistry,
        capability_provider: IAccessCapabilityProvider | None = None,
        tracer: IRequestTracer | None = None,
        settings: DiscoverySettings | None = None,
    ) -> None:
        self._registry = registry
        self._capability_provider = capability_provider
        self._tracer = tracer
        self._settings = settings or DiscoverySettings()
        self._semaphore = asyncio.Semaphore(self._settings.max_concurrency)

    async def discover(
        self,
        url: str,
        recursive: bool = False,
        previous_log: DiscoverLog | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> DiscoverResult:
        """
        Discover media at url.

        Args:
            url: Directory or file (local path, file url or remote url)
            recursive: Descend into subdirectories
            previous_log: Log of earlier runs, unchanged inputs are skipped
            cancel_event: Set it to stop at the next suspension point

        Returns:
            Fresh DiscoverResult (never raises for per-file failures)
        """
        previous_log = previous_log or DiscoverLog.empty()
        url = normalize_url(url)
        if _cancelled(cancel_event):
            return DiscoverResult(cancelled=True)
        if is_directory(url):
            return await self._discover_directory(url, recursive, previous_log, cancel_event)
        return await self._discover_file(url, previous_log, cancel_event)

    # =========================================================================
    # DIRECTORIES
    # =========================================================================

    async def _discover_directory(
        self,
        url: str,
        recursive: bool,
        previous_log: DiscoverLog,
        cancel_event: asyncio.Event | None,
    ) -> DiscoverResult:
        result = DiscoverResult()
        self._log(result, DiscoverAction.DISCOVERING, url)

        try:
            children = await asyncio.to_thread(self._list_children, url)
        except OSError as e:
            children = []
            if self._settings.report_listing_errors:
                logger.warning("Cannot list directory %s: %s", url, e)
                result.errors.append(DirectoryListingError(url, e.strerror or str(e)))
            else:
                logger.debug("Cannot list directory %s: %s", url, e)

        remaining = set(children)
        for importer in self._registry.importers:
            if _cancelled(cancel_event):
                result.cancelled = True
                return result
            applicable = sorted(child for child in remaining if importer.supports(child))
            if not applicable:
                continue
            await self._fan_out(
                result,
                (self.discover(child, False, previous_log, cancel_event) for child in applicable),
            )
            remaining.difference_update(applicable)
            remaining.difference_update(track.normalized_source for track in result.tracks)

        if recursive:
            if _cancelled(cancel_event):
                result.cancelled = True
                return result
            subdirectories = sorted(child for child in remaining if is_directory(child))
            await self._fan_out(
                result,
                (self.discover(child, True, previous_log, cancel_event) for child in subdirectories),
            )

        logger.debug(
            "Discovered %s: %d albums, %d tracks, %d errors",
            url,
            len(result.albums),
            len(result.tracks),
            len(result.errors),
        )
        return result

    def _list_children(self, url: str) -> list[str]:
        path = to_path(url)
        if path is None:
            return []
        children = []
        with os.scandir(path) as entries:
            for entry in entries:
                child = to_url(entry.path)
                if self._settings.skip_hidden and is_hidden(child):
                    continue
                children.append(child)
        return children

    @staticmethod
    async def _fan_out(result: DiscoverResult, tasks: Iterable[Awaitable[DiscoverResult]]) -> None:
        # Wait for ALL children, successes and failures are collected separately
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, DiscoverResult):
                result.merge(outcome)
            elif isinstance(outcome, asyncio.CancelledError):
                result.cancelled = True
            elif isinstance(outcome, Exception):
                logger.error("Discovery branch failed: %s", outcome, exc_info=outcome)
                result.errors.append(outcome)
            else:
                # KeyboardInterrupt / SystemExit must not be turned into data
                raise outcome

    # =========================================================================
    # FILES
    # =========================================================================

    async def _discover_file(
        self,
        url: str,
        previous_log: DiscoverLog,
        cancel_event: asyncio.Event | None,
    ) -> DiscoverResult:
        result = DiscoverResult()
        importer = self._registry.find_importer(url)
        if importer is None:
            result.errors.append(NoApplicableImporterError(url))
            return result
        if not previous_log.needs_rediscover(DiscoverAction.IMPORTING, url):
            logger.debug("Skipping unchanged %s", url)
            return result
        self._log(result, DiscoverAction.IMPORTING, url)

        try:
            async with self._semaphore:
                imported = await importer.import_media(url, self._tracer)
        except MediaFileError as e:
            logger.warning("Import of %s failed: %s", url, e)
            result.errors.append(e)
            return result
        except Exception as e:
            logger.warning("Importer %s crashed on %s: %s", importer.name, url, e, exc_info=True)
            result.errors.append(e)
            return result

        sources = list(dict.fromkeys(track.normalized_source for track in imported.tracks))
        for source in sources:
            # Sources consumed by this import count as imported, so an unchanged cue sheet
            # keeps its audio file away from the whole-file importer on the next scan
            if source != url:
                self._log(result, DiscoverAction.IMPORTING, source)

        jobs: list[tuple[str, IMetadataGrabber]] = []
        for source in sources:
            grabber = self._registry.find_grabber(source)
            if grabber is None:
                result.errors.append(NoApplicableGrabberError(source))
                continue
            if not previous_log.needs_rediscover(DiscoverAction.GRABBING, source):
                continue
            self._log(result, DiscoverAction.GRABBING, source)
            jobs.append((source, grabber))

        grabbed: dict[str, Metadata] = {}
        if jobs and _cancelled(cancel_event):
            result.cancelled = True
        elif jobs:
            outcomes = await asyncio.gather(
                *(self._grab(source, grabber) for source, grabber in jobs),
                return_exceptions=True,
            )
            for (source, grabber), outcome in zip(jobs, outcomes, strict=True):
                if isinstance(outcome, Metadata):
                    grabbed[source] = outcome
                elif isinstance(outcome, asyncio.CancelledError):
                    result.cancelled = True
                elif isinstance(outcome, Exception):
                    logger.warning("Grabber %s failed on %s: %s", grabber.name, source, outcome)
                    result.errors.append(outcome)
                else:
                    raise outcome

        result.albums, result.tracks = fold_grabbed_metadata(imported, grabbed)
        return result

    async def _grab(self, source: str, grabber: IMetadataGrabber) -> Metadata:
        async with self._semaphore:
            return await grabber.grab_metadata(source, self._tracer)

    # =========================================================================
    # LOGGING
    # =========================================================================

    def _log(self, result: DiscoverResult, action: DiscoverAction, url: str) -> None:
        capability = b""
        if self._capability_provider is not None:
            try:
                capability = self._capability_provider.issue(url)
            except AccessCapabilityError as e:
                logger.warning("Cannot issue access capability for %s: %s", url, e)
                result.errors.append(e)
        result.log = result.log.log(action, url, capability)


def _cancelled(cancel_event: asyncio.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()
