"""Unit tests for the plugin registry."""

from soundshelf.infrastructure.plugins import PluginRegistry, build_default_registry
from soundshelf.infrastructure.plugins.artwork_loaders import (
    EmbeddedArtworkLoader,
    ImageArtworkLoader,
)
from soundshelf.infrastructure.plugins.audio_file_importer import AudioFileImporter
from soundshelf.infrastructure.plugins.cue_sheet_importer import CueSheetImporter
from soundshelf.infrastructure.plugins.mutagen_grabber import MutagenMetadataGrabber


class TestPluginRegistry:
    """Tests for plugin lookup order."""

    def test_default_registry_prefers_cue_sheets(self) -> None:
        """Test that cue sheets and audio files go to different importers."""
        registry = build_default_registry()
        assert isinstance(registry.find_importer("file:///m/a.cue"), CueSheetImporter)
        assert isinstance(registry.find_importer("file:///m/a.flac"), AudioFileImporter)
        assert registry.find_importer("file:///m/a.txt") is None

    def test_default_grabber_and_artwork_loaders(self) -> None:
        """Test grabber and loader lookups."""
        registry = build_default_registry()
        assert isinstance(registry.find_grabber("file:///m/a.mp3"), MutagenMetadataGrabber)
        assert registry.find_grabber("file:///m/a.cue") is None
        assert [type(loader) for loader in registry.artwork_loaders_for("file:///m/cover.jpg")] == [ImageArtworkLoader]
        assert [type(loader) for loader in registry.artwork_loaders_for("file:///m/a.flac")] == [EmbeddedArtworkLoader]

    def test_registration_order_is_priority(self) -> None:
        """Test that the first registered importer wins."""
        first, second = AudioFileImporter(), AudioFileImporter()
        registry = PluginRegistry()
        registry.register_importer(first)
        registry.register_importer(second)
        assert registry.find_importer("file:///m/a.flac") is first

    def test_importable_types(self) -> None:
        """Test the union of importer types."""
        registry = build_default_registry()
        assert ".cue" in registry.importable_types
        assert ".flac" in registry.importable_types
        assert ".jpg" not in registry.importable_types

    def test_repr_names_plugins(self) -> None:
        """Test the debug representation."""
        assert "cue_sheet" in repr(build_default_registry())
