"""Domain services (pure algorithms over domain records)."""

from soundshelf.domain.services.consolidation import (
    DEFAULT_POLICY,
    ConsolidationPolicy,
    common_metadata,
    consolidate_metadata,
    merge_albums,
    merge_shelves,
    merge_tracks,
)

__all__ = [
    "ConsolidationPolicy",
    "DEFAULT_POLICY",
    "common_metadata",
    "consolidate_metadata",
    "merge_albums",
    "merge_shelves",
    "merge_tracks",
]
