"""Library service - the single owner and writer of the Shelf.

Hey future me - this is the ONLY place that swaps the current Shelf. Everything that changes
the library (discovery runs, playlist edits) goes through one asyncio.Lock, so exactly one
discover -> merge -> consolidate -> artwork -> persist cycle runs at a time. Readers just grab
self.shelf (an immutable snapshot) without locking.

Persistence policy: the new Shelf is installed in memory FIRST, then saved. If saving fails,
PersistenceError propagates to the caller but the in-memory Shelf stays valid and usable -
the disk simply lags one cycle behind until the next successful save.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from soundshelf.application.services.artwork_service import ArtworkService
from soundshelf.application.services.discovery_service import Discoverer
from soundshelf.domain.entities import Album, Playlist, PlaylistItem, Shelf, Track
from soundshelf.domain.exceptions import InvariantViolation
from soundshelf.domain.ports.access import IAccessCapabilityProvider
from soundshelf.domain.services.consolidation import DEFAULT_POLICY, ConsolidationPolicy
from soundshelf.domain.value_objects.identifiers import TrackId
from soundshelf.infrastructure.observability.logging import set_correlation_id
from soundshelf.infrastructure.persistence.shelf_repository import ShelfStore

logger = logging.getLogger(__name__)


@dataclass
class DiscoverReport:
    """Outcome of one discovery cycle.

    Attributes:
        albums: Imported albums that survived merging (with final ids)
        tracks: Imported tracks that survived merging (with final ids)
        errors: Discovery and artwork errors
        cancelled: The discovery stopped early
    """

    albums: list[Album] = field(default_factory=list)
    tracks: list[Track] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    cancelled: bool = False


class LibraryService:
    """Owns the Shelf and serializes all writes to it."""

    def __init__(
        self,
        store: ShelfStore,
        discoverer: Discoverer,
        artwork_service: ArtworkService | None = None,
        capability_provider: IAccessCapabilityProvider | None = None,
        policy: ConsolidationPolicy = DEFAULT_POLICY,
    ) -> None:
        self._store = store
        self._discoverer = discoverer
        self._artwork_service = artwork_service
        self._capability_provider = capability_provider
        self._policy = policy
        self._lock = asyncio.Lock()
        self.shelf = Shelf.empty()

    async def load(self) -> Shelf:
        """Load the persisted Shelf and re-activate its access capabilities."""
        async with self._lock:
            self.shelf = await self._store.load()
            if self._capability_provider is not None:
                self.shelf.activate(self._capability_provider)
            return self.shelf

    async def perform_discover(
        self,
        url: str,
        recursive: bool = True,
        cancel_event: asyncio.Event | None = None,
    ) -> DiscoverReport:
        """Discover url and fold the result into the library.

        Args:
            url: Directory or file to discover
            recursive: Descend into subdirectories
            cancel_event: Stops discovery cooperatively, partial results are kept

        Returns:
            DiscoverReport of this cycle

        Raises:
            PersistenceError: If saving fails (the in-memory Shelf is updated anyway)
        """
        async with self._lock:
            correlation_id = set_correlation_id()
            logger.info("Discovery started: %s (recursive=%s, run=%s)", url, recursive, correlation_id)

            result = await self._discoverer.discover(
                url,
                recursive=recursive,
                previous_log=self.shelf.discover_log,
                cancel_event=cancel_event,
            )
            shelf = self.shelf.merge(result.to_shelf(), self._policy)
            shelf = shelf.consolidate_metadata(self._policy)

            errors = list(result.errors)
            if self._artwork_service is not None and not result.cancelled:
                shelf, artwork_errors = await self._artwork_service.load_all_artworks(shelf)
                errors.extend(artwork_errors)

            report = self._build_report(shelf, result.albums, result.tracks, errors)
            report.cancelled = result.cancelled
            self.shelf = shelf
            logger.info(
                "Discovery finished: %d new albums, %d new tracks, %d errors%s",
                len(report.albums),
                len(report.tracks),
                len(report.errors),
                " (cancelled)" if result.cancelled else "",
            )
            await self._store.save(shelf)
            return report

    async def create_playlist(self, title: str, track_ids: list[TrackId]) -> Playlist:
        """Create a manual playlist and persist it.

        Raises:
            InvariantViolation: If a track id is not on the shelf
            PersistenceError: If saving fails
        """
        async with self._lock:
            known = {track.id for track in self.shelf.tracks}
            unknown = [track_id for track_id in track_ids if track_id not in known]
            if unknown:
                raise InvariantViolation(f"Unknown track ids for playlist '{title}': {unknown}")
            playlist = Playlist(
                title=title, items=tuple(PlaylistItem(track_id=t) for t in track_ids)
            )
            self.shelf = self.shelf.with_playlist(playlist)
            await self._store.save(self.shelf)
            logger.info("Created playlist '%s' with %d items", title, len(playlist.items))
            return playlist

    async def save(self) -> None:
        """Persist the current Shelf (e.g. retry after a failed save)."""
        async with self._lock:
            await self._store.save(self.shelf)

    async def close(self) -> None:
        await self._store.close()

    @staticmethod
    def _build_report(
        shelf: Shelf,
        imported_albums: list[Album],
        imported_tracks: list[Track],
        errors: list[Exception],
    ) -> DiscoverReport:
        # Imported records may have lost a merge; report the survivors with their final ids
        imported_ids = {t.id for t in imported_tracks}
        tracks = [t for t in shelf.tracks if t.id in imported_ids]
        album_ids = {a.id for a in imported_albums} | {t.album_id for t in tracks}
        albums = [a for a in shelf.albums if a.id in album_ids]
        return DiscoverReport(albums=albums, tracks=tracks, errors=errors)
