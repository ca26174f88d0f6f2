"""Shelf - aggregate root of the music library.

Hey future me - the Shelf owns EVERYTHING: albums, tracks, manual playlists and the
discover log. It's a frozen value: merge() and consolidate_metadata() return a NEW Shelf and
the owner (LibraryService) swaps it in and persists it. Readers holding the old snapshot
keep a consistent view, no locking needed for reads.

Invariants (check_invariants enforces them):
- every Track.album_id resolves to an Album on this shelf
- every manual PlaylistItem.track_id resolves to a Track on this shelf
- ids are unique per record kind
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from soundshelf.domain.entities import (
    NO_TITLE,
    Album,
    DiscoverLog,
    DiscoverLogItem,
    Playlist,
    PlaylistItem,
    Track,
)
from soundshelf.domain.exceptions import AccessCapabilityError, InvariantViolation
from soundshelf.domain.value_objects import AlbumId, TrackId
from soundshelf.domain.value_objects.locators import normalize_url

if TYPE_CHECKING:
    from soundshelf.domain.ports.access import IAccessCapabilityProvider
    from soundshelf.domain.services.consolidation import ConsolidationPolicy

logger = logging.getLogger(__name__)


def _none_last(value: object) -> tuple[bool, object]:
    return (value is None, value if value is not None else 0)


@dataclass(frozen=True)
class Shelf:
    """All known albums, tracks, manual playlists and the discover log."""

    albums: tuple[Album, ...] = ()
    tracks: tuple[Track, ...] = ()
    manual_playlists: tuple[Playlist, ...] = ()
    discover_log: DiscoverLog = DiscoverLog()

    def __post_init__(self) -> None:
        for name in ("albums", "tracks", "manual_playlists"):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

    @classmethod
    def empty(cls) -> "Shelf":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not (self.albums or self.tracks or self.manual_playlists or self.discover_log.items)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_album(self, album_id: AlbumId) -> Album | None:
        return next((a for a in self.albums if a.id == album_id), None)

    def get_track(self, track_id: TrackId) -> Track | None:
        return next((t for t in self.tracks if t.id == track_id), None)

    def get_album_for(self, track: Track) -> Album | None:
        return self.get_album(track.album_id)

    def get_tracks(self, album: Album | AlbumId) -> list[Track]:
        """Tracks referencing album (in shelf order)."""
        album_id = album.id if isinstance(album, Album) else album
        return [t for t in self.tracks if t.album_id == album_id]

    # =========================================================================
    # ORDERING
    # =========================================================================

    def sorted_tracks(self, tracks: Iterable[Track] | None = None) -> list[Track]:
        """Order tracks for display and playback.

        Order: album title (missing last), album id, disc number (missing last),
        track number (missing last), source url, start time.
        """
        titles = {album.id: album.title for album in self.albums}

        def sort_key(track: Track) -> tuple[object, ...]:
            return (
                _none_last(titles.get(track.album_id)),
                track.album_id,
                _none_last(track.disc_number),
                _none_last(track.track_number),
                track.source,
                track.start.value,
            )

        return sorted(self.tracks if tracks is None else tracks, key=sort_key)

    def sorted_albums(self, albums: Iterable[Album] | None = None) -> list[Album]:
        """Order albums by title (missing last), then id."""
        return sorted(
            self.albums if albums is None else albums,
            key=lambda album: (_none_last(album.title), album.id),
        )

    def album_playlists(self) -> list[Playlist]:
        """Playlists derived from albums, recomputed on every call and never persisted.

        Each playlist shares its album's id, and each item shares its track's id.
        """
        playlists = []
        for album in self.sorted_albums():
            items = tuple(
                PlaylistItem(id=track.id, track_id=track.id)
                for track in self.sorted_tracks(self.get_tracks(album))
            )
            playlists.append(Playlist(id=album.id, title=album.title or NO_TITLE, items=items))
        return playlists

    # =========================================================================
    # MUTATIONS (return new shelves)
    # =========================================================================

    def merge(self, other: "Shelf", policy: "ConsolidationPolicy | None" = None) -> "Shelf":
        """Fold other (a discovery batch or parallel branch) into this shelf.

        Args:
            other: Shelf to merge in
            policy: Consolidation knobs, defaults apply when None

        Returns:
            The merged shelf
        """
        from soundshelf.domain.services.consolidation import DEFAULT_POLICY, merge_shelves

        return merge_shelves(self, other, policy or DEFAULT_POLICY)

    def consolidate_metadata(self, policy: "ConsolidationPolicy | None" = None) -> "Shelf":
        """Hoist metadata common to all tracks of an album onto the album."""
        from soundshelf.domain.services.consolidation import (
            DEFAULT_POLICY,
            consolidate_metadata,
        )

        albums, tracks = consolidate_metadata(self.albums, self.tracks, policy or DEFAULT_POLICY)
        return replace(self, albums=tuple(albums), tracks=tuple(tracks))

    def with_playlist(self, playlist: Playlist) -> "Shelf":
        """Add or replace a manual playlist (matched by id)."""
        playlists = [p for p in self.manual_playlists if p.id != playlist.id]
        playlists.append(playlist)
        return replace(self, manual_playlists=tuple(playlists))

    def with_albums(self, albums: Iterable[Album]) -> "Shelf":
        """Replace albums by id (used by the artwork pipeline)."""
        updated = {album.id: album for album in albums}
        return replace(self, albums=tuple(updated.get(a.id, a) for a in self.albums))

    # =========================================================================
    # CONSISTENCY
    # =========================================================================

    def check_invariants(self) -> None:
        """Verify referential integrity.

        Raises:
            InvariantViolation: If an id is duplicated or a reference dangles
        """
        for kind, records in (
            ("album", self.albums),
            ("track", self.tracks),
            ("playlist", self.manual_playlists),
        ):
            ids = [r.id for r in records]
            if len(ids) != len(set(ids)):
                raise InvariantViolation(f"Duplicate {kind} ids on shelf")
        album_ids = {a.id for a in self.albums}
        for track in self.tracks:
            if track.album_id not in album_ids:
                raise InvariantViolation(f"Track {track.id} references unknown album {track.album_id}")
        track_ids = {t.id for t in self.tracks}
        for playlist in self.manual_playlists:
            for item in playlist.items:
                if item.track_id not in track_ids:
                    raise InvariantViolation(
                        f"Playlist {playlist.id} item {item.id} references unknown track {item.track_id}"
                    )

    # Hey future me - activate() runs once after loading a persisted shelf. Each log entry
    # carries an access capability; resolving it re-grants access to the url for this session.
    # Broken capabilities (file moved, permission revoked) are SKIPPED, not fatal - the entry
    # just won't grant access and the next scan will re-log it.
    def activate(self, provider: "IAccessCapabilityProvider") -> list[DiscoverLogItem]:
        """Resolve every discover log capability.

        Args:
            provider: Resolves capabilities back to urls

        Returns:
            Entries whose capability resolved to a different url than logged
        """
        mismatched: list[DiscoverLogItem] = []
        resolved_count = 0
        for item in self.discover_log.items:
            if not item.capability:
                continue
            try:
                url = provider.resolve(item.capability)
            except AccessCapabilityError as e:
                logger.debug("Skipping discover log entry %s: %s", item.url, e)
                continue
            resolved_count += 1
            if normalize_url(url) != normalize_url(item.url):
                logger.warning(
                    "Access capability for %s resolved to different url %s", item.url, url
                )
                mismatched.append(item)
        logger.info(
            "Activated shelf: %d of %d access capabilities resolved",
            resolved_count,
            len(self.discover_log.items),
        )
        return mismatched
