"""Domain value objects."""

from soundshelf.domain.value_objects.cue_time import TIMESCALE, CueTime
from soundshelf.domain.value_objects.identifiers import (
    AlbumId,
    PlaylistId,
    PlaylistItemId,
    TrackId,
    new_identifier,
    new_monotonic_identifier,
)
from soundshelf.domain.value_objects.metadata import Metadata, MetadataKey, canonical_key

__all__ = [
    "AlbumId",
    "CueTime",
    "Metadata",
    "MetadataKey",
    "PlaylistId",
    "PlaylistItemId",
    "TIMESCALE",
    "TrackId",
    "canonical_key",
    "new_identifier",
    "new_monotonic_identifier",
]
