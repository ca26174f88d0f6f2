"""Unit tests for the LibraryService.

The end-to-end test walks a real tmp_path library with fake plugins and persists to a real
SQLite file. The remaining tests use mocks for the store and the discoverer.
"""

import uuid
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from soundshelf.application.services.discovery_service import Discoverer, DiscoverResult
from soundshelf.application.services.library_service import LibraryService
from soundshelf.config import StorageSettings
from soundshelf.domain.entities import Album, DiscoverAction, DiscoverLog, Shelf, Track
from soundshelf.domain.exceptions import InvalidFormatError, InvariantViolation, PersistenceError
from soundshelf.domain.ports.access import IAccessCapabilityProvider
from soundshelf.domain.ports.plugin import IMediaImporter, IMetadataGrabber, ImportedMedia
from soundshelf.domain.value_objects import CueTime, Metadata
from soundshelf.domain.value_objects.locators import to_path, to_url
from soundshelf.infrastructure.observability import get_correlation_id
from soundshelf.infrastructure.persistence import Database, ShelfStore
from soundshelf.infrastructure.plugins.registry import PluginRegistry


class SheetImporter(IMediaImporter):
    """First line is the album title, then 'title|start|end' tracks in the sibling .flac."""

    @property
    def name(self) -> str:
        return "sheet"

    @property
    def supported_types(self) -> frozenset[str]:
        return frozenset({".cue"})

    async def import_media(self, url, tracer=None) -> ImportedMedia:
        path = to_path(url)
        title, *lines = path.read_text().splitlines()
        album = Album(metadata=Metadata(TITLE=title))
        tracks = []
        for position, line in enumerate(lines, start=1):
            name, start, end = line.split("|")
            tracks.append(
                Track(
                    source=to_url(path.with_suffix(".flac")),
                    start=CueTime(int(start)),
                    end=CueTime(int(end)),
                    album_id=album.id,
                    metadata=Metadata(TITLE=name, TRACKNUMBER=str(position)),
                )
            )
        return ImportedMedia(albums=[album], tracks=tracks)


class WholeFileImporter(IMediaImporter):
    """Every .flac is one 3:00 track."""

    @property
    def name(self) -> str:
        return "whole"

    @property
    def supported_types(self) -> frozenset[str]:
        return frozenset({".flac"})

    async def import_media(self, url, tracer=None) -> ImportedMedia:
        album = Album()
        track = Track(source=url, start=CueTime.ZERO, end=CueTime(13500), album_id=album.id)
        return ImportedMedia(albums=[album], tracks=[track])


class TagGrabber(IMetadataGrabber):
    """Same tags for every .flac."""

    @property
    def name(self) -> str:
        return "tags"

    @property
    def supported_types(self) -> frozenset[str]:
        return frozenset({".flac"})

    async def grab_metadata(self, url, tracer=None) -> Metadata:
        return Metadata(TITLE="album", GENRE="Rock", ALBUM="The Album", ARTIST="Band")


def make_mock_store(shelf: Shelf | None = None) -> MagicMock:
    store = MagicMock(spec=ShelfStore)
    store.load = AsyncMock(return_value=shelf or Shelf.empty())
    store.save = AsyncMock()
    store.close = AsyncMock()
    return store


def make_mock_discoverer(result: DiscoverResult) -> MagicMock:
    discoverer = MagicMock(spec=Discoverer)
    discoverer.discover = AsyncMock(return_value=result)
    return discoverer


def batch() -> DiscoverResult:
    album = Album(metadata=Metadata(TITLE="Album"))
    track = Track(source="file:///m/a.flac", start=CueTime.ZERO, end=CueTime(100), album_id=album.id)
    return DiscoverResult(albums=[album], tracks=[track], errors=[InvalidFormatError("file:///m/b.cue")])


class TestPerformDiscover:
    """Tests for LibraryService.perform_discover."""

    async def test_sheet_refines_previously_imported_file(self, tmp_path: Path) -> None:
        """Test that a later cue sheet replaces the whole-file track with its finer cut."""
        music = tmp_path / "music"
        music.mkdir()
        (music / "album.flac").write_bytes(b"")
        registry = PluginRegistry(
            importers=[SheetImporter(), WholeFileImporter()], grabbers=[TagGrabber()]
        )
        store = ShelfStore(Database(StorageSettings(data_dir=tmp_path / "data")))
        service = LibraryService(store, Discoverer(registry))
        await service.load()

        first = await service.perform_discover(to_url(music))
        assert len(first.tracks) == 1
        assert first.tracks[0].end == CueTime(13500)
        assert first.albums[0].title == "The Album"

        (music / "album.cue").write_text("The Album\nIntro|0|13485\n")
        second = await service.perform_discover(to_url(music))

        [track] = service.shelf.tracks
        assert second.tracks == [track]
        assert track.end == CueTime(13485)
        assert track.metadata["TITLE"] == "Intro"
        assert track.metadata["GENRE"] == "Rock"
        assert track.metadata["ARTIST"] == "Band"
        [album] = service.shelf.albums
        assert album.id == track.album_id
        service.shelf.check_invariants()

        reloaded = await store.load()
        assert reloaded == service.shelf
        await service.close()

    async def test_report_lists_errors_and_survivors(self) -> None:
        """Test the report built from a discovery batch."""
        result = batch()
        service = LibraryService(make_mock_store(), make_mock_discoverer(result))

        report = await service.perform_discover("file:///m")

        assert report.tracks == result.tracks
        assert report.albums == result.albums
        assert [type(e) for e in report.errors] == [InvalidFormatError]
        assert not report.cancelled

    async def test_current_log_is_passed_to_discoverer(self) -> None:
        """Test that previous runs' log drives skipping."""
        log = DiscoverLog.empty().log(DiscoverAction.DISCOVERING, "file:///m")
        discoverer = make_mock_discoverer(DiscoverResult())
        service = LibraryService(make_mock_store(Shelf(discover_log=log)), discoverer)
        await service.load()

        await service.perform_discover("file:///m", recursive=False)

        discoverer.discover.assert_awaited_once()
        assert discoverer.discover.await_args.kwargs["previous_log"] == log
        assert discoverer.discover.await_args.kwargs["recursive"] is False

    async def test_failed_save_keeps_new_shelf_in_memory(self) -> None:
        """Test that PersistenceError propagates but the shelf is updated."""
        store = make_mock_store()
        store.save.side_effect = PersistenceError("disk full")
        result = batch()
        service = LibraryService(store, make_mock_discoverer(result))

        with pytest.raises(PersistenceError):
            await service.perform_discover("file:///m")

        assert service.shelf.tracks == tuple(result.tracks)

    async def test_discovery_runs_with_correlation_id(self) -> None:
        """Test that each run sets a correlation id for its log records."""
        seen: list[str] = []

        async def discover(*args, **kwargs) -> DiscoverResult:
            seen.append(get_correlation_id())
            return DiscoverResult()

        discoverer = MagicMock(spec=Discoverer)
        discoverer.discover = AsyncMock(side_effect=discover)
        service = LibraryService(make_mock_store(), discoverer)

        await service.perform_discover("file:///m")
        await service.perform_discover("file:///m")

        assert all(seen)
        assert seen[0] != seen[1]

    async def test_artwork_service_runs_after_merge(self) -> None:
        """Test that covers are loaded for the merged shelf and errors reported."""
        result = batch()
        artwork = MagicMock()
        cover_error = InvalidFormatError("file:///m/cover.jpg")

        async def load_all(shelf: Shelf):
            return shelf, [cover_error]

        artwork.load_all_artworks = AsyncMock(side_effect=load_all)
        service = LibraryService(make_mock_store(), make_mock_discoverer(result), artwork_service=artwork)

        report = await service.perform_discover("file:///m")

        artwork.load_all_artworks.assert_awaited_once()
        assert cover_error in report.errors


class TestLibraryServicePlaylists:
    """Tests for create_playlist and load."""

    async def test_create_playlist_persists(self) -> None:
        """Test adding a manual playlist."""
        album = Album()
        track = Track(source="file:///m/a.flac", start=CueTime.ZERO, end=CueTime(10), album_id=album.id)
        store = make_mock_store(Shelf(albums=(album,), tracks=(track,)))
        service = LibraryService(store, make_mock_discoverer(DiscoverResult()))
        await service.load()

        playlist = await service.create_playlist("Mix", [track.id])

        assert service.shelf.manual_playlists == (playlist,)
        assert playlist.track_ids == [track.id]
        store.save.assert_awaited_once_with(service.shelf)

    async def test_create_playlist_rejects_unknown_tracks(self) -> None:
        """Test that playlists only reference tracks on the shelf."""
        store = make_mock_store()
        service = LibraryService(store, make_mock_discoverer(DiscoverResult()))

        with pytest.raises(InvariantViolation):
            await service.create_playlist("Mix", [uuid.uuid4()])

        store.save.assert_not_awaited()

    async def test_load_activates_capabilities(self) -> None:
        """Test that load resolves the log's access capabilities."""
        log = DiscoverLog.empty().log(DiscoverAction.IMPORTING, "file:///m/a.cue", b"cap")
        provider = MagicMock(spec=IAccessCapabilityProvider)
        provider.resolve.return_value = "file:///m/a.cue"
        service = LibraryService(
            make_mock_store(Shelf(discover_log=log)),
            make_mock_discoverer(DiscoverResult()),
            capability_provider=provider,
        )

        shelf = await service.load()

        assert shelf.discover_log == log
        provider.resolve.assert_called_once_with(b"cap")
