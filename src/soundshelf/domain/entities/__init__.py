"""Domain entities.

Hey future me - all records here are FROZEN dataclasses (value types). Nothing mutates a
Track in place: the consolidation code builds new records with dataclasses.replace() and
hands back new collections. That's what makes concurrent reads of a Shelf snapshot safe and
what lets merge build an explicit old-id -> new-id table instead of aliasing objects.
"""

from dataclasses import dataclass, field

from soundshelf.domain.entities.discover_log import (
    DiscoverAction,
    DiscoverLog,
    DiscoverLogItem,
)
from soundshelf.domain.value_objects import (
    AlbumId,
    CueTime,
    Metadata,
    MetadataKey,
    PlaylistId,
    PlaylistItemId,
    TrackId,
    new_identifier,
    new_monotonic_identifier,
)
from soundshelf.domain.value_objects.locators import normalize_url

NO_TITLE = "<No Title>"


@dataclass(frozen=True, kw_only=True)
class Album:
    """Logical grouping of tracks sharing title and artist.

    Attributes:
        metadata: Album-level tags (TITLE, ARTIST, hoisted common values)
        cover: Encoded cover image, None until the artwork pipeline ran
        id: Monotonic identifier, older albums sort first
    """

    metadata: Metadata = field(default_factory=Metadata)
    cover: bytes | None = field(default=None, repr=False)
    id: AlbumId = field(default_factory=new_monotonic_identifier)

    @property
    def title(self) -> str | None:
        return self.metadata.get(MetadataKey.TITLE)

    @property
    def artist(self) -> str | None:
        return self.metadata.get(MetadataKey.ARTIST)


@dataclass(frozen=True, kw_only=True)
class Track:
    """A playable time region within a source recording.

    (source, start, end) identifies the region. Two tracks sharing a source with
    near-equal bounds describe the same recording seen via different import paths.

    Attributes:
        source: Locator of the media file
        start: Region start, CueTime.INVALID when unknown
        end: Region end, CueTime.INVALID when unknown
        album_id: Owning album
        metadata: Track-level tags
        id: Stable handle referenced by playlists
    """

    source: str
    start: CueTime
    end: CueTime
    album_id: AlbumId
    metadata: Metadata = field(default_factory=Metadata)
    id: TrackId = field(default_factory=new_identifier)

    @property
    def normalized_source(self) -> str:
        return normalize_url(self.source)

    @property
    def duration(self) -> CueTime | None:
        """end - start when both bounds are set, otherwise None (unbounded)."""
        return CueTime.difference(self.end, self.start)

    @property
    def title(self) -> str | None:
        return self.metadata.get(MetadataKey.TITLE)

    @property
    def track_number(self) -> int | None:
        return self.metadata.get_int(MetadataKey.TRACKNUMBER)

    @property
    def disc_number(self) -> int | None:
        return self.metadata.get_int(MetadataKey.DISCNUMBER)


@dataclass(frozen=True, kw_only=True)
class PlaylistItem:
    """Playlist entry pointing at a track.

    The indirection lets an entry survive its track being replaced by merge:
    merge rewrites track_id, the item id stays.
    """

    track_id: TrackId
    id: PlaylistItemId = field(default_factory=new_identifier)


@dataclass(frozen=True, kw_only=True)
class Playlist:
    """Ordered list of playlist items.

    Manually curated playlists are persisted. Album playlists are derived from
    the shelf on read and share their album's id.
    """

    title: str
    items: tuple[PlaylistItem, ...] = ()
    id: PlaylistId = field(default_factory=new_identifier)

    def __post_init__(self) -> None:
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))

    @property
    def track_ids(self) -> list[TrackId]:
        return [item.track_id for item in self.items]


from soundshelf.domain.entities.shelf import Shelf  # noqa: E402

__all__ = [
    "Album",
    "DiscoverAction",
    "DiscoverLog",
    "DiscoverLogItem",
    "NO_TITLE",
    "Playlist",
    "PlaylistItem",
    "Shelf",
    "Track",
]
