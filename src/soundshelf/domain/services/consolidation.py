"""Consolidation - deduplicate tracks and albums, hoist common metadata.

Hey future me - this is the heart of the library! Discovery happily produces duplicates:
a full re-scan re-imports everything, a cue sheet and the whole-file import describe the
same audio, a later scan has slightly different bounds. The functions below decide which
records describe the SAME recording and fold them together deterministically.

Rules of thumb:
- Everything here is pure and synchronous. Records in, new records out. Never raises for
  "can't merge", it returns None instead.
- Tie-breaks ALWAYS go through Identifier order (uuid int order) so results don't depend
  on which discovery branch finished first.
- Every time a record loses, its id goes into a remap table. Shelf merge applies that table
  once to manual playlists, so user playlists keep pointing at a living track.
"""

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from soundshelf.domain.entities import Album, Playlist, PlaylistItem, Track
from soundshelf.domain.value_objects import CueTime, Metadata, MetadataKey
from soundshelf.domain.value_objects.identifiers import AlbumId, TrackId

if TYPE_CHECKING:
    from soundshelf.domain.entities.shelf import Shelf

logger = logging.getLogger(__name__)

DEFAULT_TIME_TOLERANCE = 500

DEFAULT_CONFLICT_KEYS: frozenset[str] = frozenset(
    {
        MetadataKey.ENCODER,
        MetadataKey.ORGANIZATION,
        MetadataKey.DATE,
        MetadataKey.YEAR,
    }
)

DEFAULT_UNHOISTABLE_KEYS: frozenset[str] = frozenset(
    {
        MetadataKey.TRACKNUMBER,
        MetadataKey.DISCNUMBER,
        MetadataKey.ISRC,
        MetadataKey.TOTALDISCS,
        MetadataKey.TOTALTRACKS,
        MetadataKey.DISCTOTAL,
        MetadataKey.TRACKTOTAL,
    }
)


@dataclass(frozen=True)
class ConsolidationPolicy:
    """Tunable knobs of the consolidation algorithms.

    Attributes:
        time_tolerance: Bounds closer than this (in CD frames) count as equal
        conflict_keys: Tags that must agree between two albums' tracks for the
            albums to merge (distinguishes pressings sharing a title)
        unhoistable_keys: Per-track tags never hoisted to the album
    """

    time_tolerance: int = DEFAULT_TIME_TOLERANCE
    conflict_keys: frozenset[str] = field(default=DEFAULT_CONFLICT_KEYS)
    unhoistable_keys: frozenset[str] = field(default=DEFAULT_UNHOISTABLE_KEYS)

    @classmethod
    def from_settings(cls, settings: Any) -> "ConsolidationPolicy":
        """Build a policy from the consolidation section of Settings."""
        return cls(
            time_tolerance=settings.time_tolerance,
            conflict_keys=frozenset(k.upper() for k in settings.conflict_keys),
            unhoistable_keys=frozenset(k.upper() for k in settings.unhoistable_keys),
        )


DEFAULT_POLICY = ConsolidationPolicy()


# =============================================================================
# TRACK MERGE
# =============================================================================


def _bounds_match(a: CueTime, b: CueTime, tolerance: int) -> bool:
    # An unset bound matches anything
    distance = CueTime.distance(a, b)
    return distance is None or distance.value < tolerance


def _duration_or_inf(track: Track) -> float:
    duration = track.duration
    return math.inf if duration is None else duration.value


def merge_tracks(
    a: Track, b: Track, policy: ConsolidationPolicy = DEFAULT_POLICY
) -> Track | None:
    """Merge two tracks describing the same region of the same source.

    The shorter (more precisely cut) track wins. Equal durations are broken by
    the smaller album id, then by the smaller track id. The loser's metadata
    fills keys the winner lacks.

    Args:
        a: First candidate
        b: Second candidate
        policy: Supplies the bound tolerance

    Returns:
        The surviving track (carrying the winner's id) or None if a and b are
        different recordings
    """
    if a.normalized_source != b.normalized_source:
        return None
    if not _bounds_match(a.start, b.start, policy.time_tolerance):
        return None
    if not _bounds_match(a.end, b.end, policy.time_tolerance):
        return None

    duration_a = _duration_or_inf(a)
    duration_b = _duration_or_inf(b)
    if duration_a != duration_b:
        winner = a if duration_a < duration_b else b
    elif a.album_id != b.album_id:
        winner = a if a.album_id < b.album_id else b
    else:
        winner = a if a.id <= b.id else b
    loser = b if winner is a else a
    return replace(winner, metadata=winner.metadata.merged(loser.metadata))


# =============================================================================
# ALBUM MERGE
# =============================================================================


def common_metadata(tracks: Iterable[Track], key: str) -> str | None:
    """Value of key shared by every track, None if any track lacks or differs.

    Args:
        tracks: Tracks to inspect (an empty collection has no common value)
        key: Metadata key

    Returns:
        The common value or None
    """
    common: str | None = None
    seen = False
    for track in tracks:
        value = track.metadata.get(key)
        if value is None:
            return None
        if seen and value != common:
            return None
        common = value
        seen = True
    return common


def _tracks_collide(a: Track, b: Track) -> bool:
    # Same position on the same disc, or same title when positions are unknown
    number_a, number_b = a.track_number, b.track_number
    if number_a is not None and number_b is not None:
        if number_a != number_b:
            return False
        disc_a, disc_b = a.disc_number, b.disc_number
        if disc_a is not None and disc_b is not None:
            return disc_a == disc_b
        return True
    return a.title is not None and a.title == b.title


def _effective_value(track: Track, album: Album, key: str) -> str | None:
    # Consolidation may have hoisted the value from the track to its album
    value = track.metadata.get(key)
    return album.metadata.get(key) if value is None else value


def _tags_conflict(
    a: Track, album_a: Album, b: Track, album_b: Album, conflict_keys: Iterable[str]
) -> bool:
    return any(
        _effective_value(a, album_a, key) != _effective_value(b, album_b, key)
        for key in conflict_keys
    )


def _album_artist(album: Album, tracks: Sequence[Track]) -> str | None:
    artist = album.artist
    if artist is None:
        artist = common_metadata(tracks, MetadataKey.ARTIST)
    return artist


def merge_albums(
    a: Album,
    tracks_a: Sequence[Track],
    b: Album,
    tracks_b: Sequence[Track],
    policy: ConsolidationPolicy = DEFAULT_POLICY,
) -> Album | None:
    """Merge two albums that are the same release.

    Both albums need an equal TITLE and an equal ARTIST (an album without ARTIST
    uses the ARTIST common to all of its tracks). The merge is refused when any
    track pair across the albums collides on disc/track number (or title) or
    disagrees on a conflict key, since that means two distinct pressings. A
    track without a conflict key reads it from its album, where consolidation
    hoists shared values.

    Args:
        a: First album
        tracks_a: Tracks currently referencing a
        b: Second album
        tracks_b: Tracks currently referencing b
        policy: Supplies the conflict key set

    Returns:
        The surviving album (smaller id wins, winner-wins metadata) or None.
        Callers must repoint the loser's tracks to the returned album's id.
    """
    if a.id == b.id:
        return a
    title_a, title_b = a.title, b.title
    if title_a is None or title_b is None or title_a != title_b:
        return None
    if _album_artist(a, tracks_a) != _album_artist(b, tracks_b):
        return None

    for track_a in tracks_a:
        for track_b in tracks_b:
            if _tracks_collide(track_a, track_b):
                return None
            if _tags_conflict(track_a, a, track_b, b, policy.conflict_keys):
                return None

    winner, loser = (a, b) if a.id < b.id else (b, a)
    return replace(
        winner,
        metadata=winner.metadata.merged(loser.metadata),
        cover=winner.cover if winner.cover is not None else loser.cover,
    )


# =============================================================================
# METADATA CONSOLIDATION
# =============================================================================


def prune_albums(albums: Iterable[Album], tracks: Iterable[Track]) -> list[Album]:
    """Drop albums no track references."""
    used = {track.album_id for track in tracks}
    return [album for album in albums if album.id in used]


def consolidate_metadata(
    albums: Sequence[Album],
    tracks: Sequence[Track],
    policy: ConsolidationPolicy = DEFAULT_POLICY,
) -> tuple[list[Album], list[Track]]:
    """Hoist values shared by all of an album's tracks to the album.

    Albums with fewer than two tracks are left alone. A common value is set on
    the album only if the album lacks the key, and stripped from the tracks only
    where the album value equals it. Unreferenced albums are pruned. Running it
    again without new divergence changes nothing.

    Args:
        albums: Albums to consolidate
        tracks: All tracks (in shelf order)
        policy: Supplies the keys that stay per-track

    Returns:
        (albums, tracks) with order preserved
    """
    tracks_by_album: dict[AlbumId, list[Track]] = {}
    for track in tracks:
        tracks_by_album.setdefault(track.album_id, []).append(track)

    new_albums: list[Album] = []
    strip_keys: dict[AlbumId, list[str]] = {}
    for album in prune_albums(albums, tracks):
        album_tracks = tracks_by_album[album.id]
        if len(album_tracks) < 2:
            new_albums.append(album)
            continue
        metadata = album.metadata
        hoisted: list[str] = []
        for key in album_tracks[0].metadata:
            if key in policy.unhoistable_keys:
                continue
            value = common_metadata(album_tracks, key)
            if value is None:
                continue
            if key not in metadata:
                metadata = metadata.with_value(key, value)
            if metadata[key] == value:
                hoisted.append(key)
        if hoisted:
            strip_keys[album.id] = hoisted
            logger.debug("Hoisted %s to album %s", hoisted, album.id)
        new_albums.append(replace(album, metadata=metadata) if metadata != album.metadata else album)

    new_tracks = [
        replace(track, metadata=track.metadata.without(*strip_keys[track.album_id]))
        if track.album_id in strip_keys
        else track
        for track in tracks
    ]
    return new_albums, new_tracks


# =============================================================================
# SHELF MERGE
# =============================================================================


def _unique_by_id(records: Iterable[Any]) -> list[Any]:
    seen: set[Any] = set()
    unique = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


def resolve_id(remap: dict[TrackId, TrackId], identifier: TrackId) -> TrackId:
    """Follow a remap chain (a -> b -> c) to the surviving id."""
    visited = {identifier}
    while identifier in remap:
        identifier = remap[identifier]
        if identifier in visited:
            break
        visited.add(identifier)
    return identifier


def merge_track_pool(
    tracks: Sequence[Track], policy: ConsolidationPolicy = DEFAULT_POLICY
) -> tuple[list[Track], dict[TrackId, TrackId]]:
    """Pairwise merge a pool of tracks until no pair merges.

    Each pass takes the first pending track as seed and folds every later
    track that merges with it into the seed. Passes repeat until one completes
    without a merge. Quadratic per pass, fine at personal library batch sizes.

    Returns:
        (surviving tracks, remap of every losing id to its winner's id)
    """
    remap: dict[TrackId, TrackId] = {}
    pool = list(tracks)
    changed = True
    while changed:
        changed = False
        survivors: list[Track] = []
        pending = pool
        while pending:
            seed, rest = pending[0], pending[1:]
            unmerged: list[Track] = []
            for other in rest:
                merged = merge_tracks(seed, other, policy)
                if merged is None:
                    unmerged.append(other)
                    continue
                for candidate in (seed, other):
                    if candidate.id != merged.id:
                        remap[candidate.id] = merged.id
                seed = merged
                changed = True
            survivors.append(seed)
            pending = unmerged
        pool = survivors
    return pool, remap


def merge_album_pool(
    albums: Sequence[Album],
    tracks: Sequence[Track],
    policy: ConsolidationPolicy = DEFAULT_POLICY,
) -> tuple[list[Album], list[Track]]:
    """Pairwise merge albums until no pair merges, repointing tracks to winners."""
    current_tracks = list(tracks)

    def tracks_for(album_id: AlbumId) -> list[Track]:
        return [t for t in current_tracks if t.album_id == album_id]

    pool = list(albums)
    changed = True
    while changed:
        changed = False
        survivors: list[Album] = []
        pending = pool
        while pending:
            seed, rest = pending[0], pending[1:]
            unmerged: list[Album] = []
            for other in rest:
                merged = merge_albums(seed, tracks_for(seed.id), other, tracks_for(other.id), policy)
                if merged is None:
                    unmerged.append(other)
                    continue
                retired = {seed.id, other.id} - {merged.id}
                current_tracks = [
                    replace(t, album_id=merged.id) if t.album_id in retired else t
                    for t in current_tracks
                ]
                seed = merged
                changed = True
            survivors.append(seed)
            pending = unmerged
        pool = survivors
    return pool, current_tracks


def remap_playlists(
    playlists: Iterable[Playlist],
    remap: dict[TrackId, TrackId],
    known_track_ids: set[TrackId],
) -> list[Playlist]:
    """Rewrite playlist items through the track remap table.

    Item ids, count and order are preserved. Items pointing at unknown tracks
    are kept untouched and reported in the log.
    """
    result: list[Playlist] = []
    for playlist in playlists:
        items: list[PlaylistItem] = []
        for item in playlist.items:
            target = resolve_id(remap, item.track_id)
            if target not in known_track_ids:
                logger.warning(
                    "Playlist '%s' item %s references unknown track %s",
                    playlist.title,
                    item.id,
                    item.track_id,
                )
            items.append(item if target == item.track_id else replace(item, track_id=target))
        result.append(replace(playlist, items=tuple(items)))
    return result


def merge_shelves(
    a: "Shelf", b: "Shelf", policy: ConsolidationPolicy = DEFAULT_POLICY
) -> "Shelf":
    """Fold shelf b into shelf a.

    Tracks from both shelves are pooled and merged to a fixed point. Albums
    still referenced by a surviving track are pooled and merged the same way.
    Manual playlists are repointed through the track remap table and the
    discover logs are unioned.

    Args:
        a: Existing shelf
        b: Incoming shelf (e.g. a discovery batch)
        policy: Consolidation knobs

    Returns:
        New Shelf; a and b are left untouched
    """
    from soundshelf.domain.entities.shelf import Shelf

    tracks, remap = merge_track_pool(_unique_by_id((*a.tracks, *b.tracks)), policy)
    albums = prune_albums(_unique_by_id((*a.albums, *b.albums)), tracks)
    albums, tracks = merge_album_pool(albums, tracks, policy)
    playlists = remap_playlists(
        _unique_by_id((*a.manual_playlists, *b.manual_playlists)),
        remap,
        {track.id for track in tracks},
    )
    if remap:
        logger.info(
            "Merged shelves: %d tracks replaced, %d tracks and %d albums remain",
            len(remap),
            len(tracks),
            len(albums),
        )
    return Shelf(
        albums=tuple(albums),
        tracks=tuple(tracks),
        manual_playlists=tuple(playlists),
        discover_log=a.discover_log.merge(b.discover_log),
    )
