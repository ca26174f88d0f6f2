"""
Plugin registry for media importers, metadata grabbers and artwork loaders.

Hey future me - this is the ONE place that decides which plugin handles which file. It is an
explicitly constructed object that gets INJECTED into the Discoverer and the ArtworkService.
No module-level global list: tests build a registry with fakes, the app builds one with
build_default_registry().

Order matters! Lookups return the FIRST plugin whose supported_types match, so register the
specific plugins (cue sheets) before the generic ones (any audio file).

Usage:
    registry = build_default_registry()
    importer = registry.find_importer("file:///music/album.cue")   # CueSheetImporter

Thread-Safety:
    Not thread-safe. Build it at startup, then treat it as read-only.
"""

from collections.abc import Iterable

from soundshelf.domain.ports.plugin import IArtworkLoader, IMediaImporter, IMetadataGrabber


class PluginRegistry:
    """Ordered lists of media plugins."""

    def __init__(
        self,
        importers: Iterable[IMediaImporter] = (),
        grabbers: Iterable[IMetadataGrabber] = (),
        artwork_loaders: Iterable[IArtworkLoader] = (),
    ) -> None:
        """Initialize registry, optionally pre-populated (order preserved)."""
        self._importers: list[IMediaImporter] = list(importers)
        self._grabbers: list[IMetadataGrabber] = list(grabbers)
        self._artwork_loaders: list[IArtworkLoader] = list(artwork_loaders)

    @property
    def importers(self) -> list[IMediaImporter]:
        return list(self._importers)

    @property
    def grabbers(self) -> list[IMetadataGrabber]:
        return list(self._grabbers)

    @property
    def artwork_loaders(self) -> list[IArtworkLoader]:
        return list(self._artwork_loaders)

    def register_importer(self, importer: IMediaImporter) -> None:
        """Append an importer (lowest priority so far)."""
        self._importers.append(importer)

    def register_grabber(self, grabber: IMetadataGrabber) -> None:
        """Append a metadata grabber (lowest priority so far)."""
        self._grabbers.append(grabber)

    def register_artwork_loader(self, loader: IArtworkLoader) -> None:
        """Append an artwork loader (lowest priority so far)."""
        self._artwork_loaders.append(loader)

    def find_importer(self, url: str) -> IMediaImporter | None:
        """
        First importer supporting url.

        Returns:
            Importer or None if no importer claims url's type
        """
        return next((i for i in self._importers if i.supports(url)), None)

    def find_grabber(self, url: str) -> IMetadataGrabber | None:
        """First metadata grabber supporting url, None if none does."""
        return next((g for g in self._grabbers if g.supports(url)), None)

    def artwork_loaders_for(self, url: str) -> list[IArtworkLoader]:
        """All artwork loaders supporting url, in priority order."""
        return [loader for loader in self._artwork_loaders if loader.supports(url)]

    @property
    def importable_types(self) -> frozenset[str]:
        """Union of all importers' supported types (for file pickers)."""
        return frozenset(t for i in self._importers for t in i.supported_types)

    def __repr__(self) -> str:
        return (
            f"PluginRegistry(importers={[i.name for i in self._importers]}, "
            f"grabbers={[g.name for g in self._grabbers]}, "
            f"artwork_loaders={[a.name for a in self._artwork_loaders]})"
        )


def build_default_registry() -> PluginRegistry:
    """Registry with the built-in plugins in priority order."""
    from soundshelf.infrastructure.plugins.artwork_loaders import (
        EmbeddedArtworkLoader,
        ImageArtworkLoader,
    )
    from soundshelf.infrastructure.plugins.audio_file_importer import AudioFileImporter
    from soundshelf.infrastructure.plugins.cue_sheet_importer import CueSheetImporter
    from soundshelf.infrastructure.plugins.mutagen_grabber import MutagenMetadataGrabber

    return PluginRegistry(
        importers=[CueSheetImporter(), AudioFileImporter()],
        grabbers=[MutagenMetadataGrabber()],
        artwork_loaders=[ImageArtworkLoader(), EmbeddedArtworkLoader()],
    )
