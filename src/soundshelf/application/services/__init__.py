"""Application services."""

from soundshelf.application.services.artwork_service import ArtworkService
from soundshelf.application.services.discovery_service import Discoverer, DiscoverResult
from soundshelf.application.services.library_service import DiscoverReport, LibraryService

__all__ = [
    "ArtworkService",
    "DiscoverReport",
    "DiscoverResult",
    "Discoverer",
    "LibraryService",
]
