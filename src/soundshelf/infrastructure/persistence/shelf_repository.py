"""Shelf persistence - repository (session level) and store (transaction level).

Hey future me - the Shelf is saved as a WHOLE after every mutation: save() deletes every row
and re-inserts the current snapshot in one transaction. Sounds wasteful, but a personal library
is a few thousand rows and it keeps the DB a faithful mirror of one immutable Shelf - no partial
diffs to get wrong. If a save fails the transaction rolls back, the previous durable state stays
on disk and the caller still holds the valid in-memory Shelf.
"""

import logging
import uuid

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from soundshelf.domain.entities import (
    Album,
    DiscoverAction,
    DiscoverLog,
    DiscoverLogItem,
    Playlist,
    PlaylistItem,
    Shelf,
    Track,
)
from soundshelf.domain.exceptions import PersistenceError
from soundshelf.domain.value_objects import CueTime, Metadata
from soundshelf.infrastructure.persistence.database import Database
from soundshelf.infrastructure.persistence.models import (
    AlbumModel,
    DiscoverLogItemModel,
    PlaylistItemModel,
    PlaylistModel,
    TrackModel,
    ensure_utc_aware,
)

logger = logging.getLogger(__name__)


class ShelfRepository:
    """Maps a Shelf to rows within one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def load(self) -> Shelf:
        """Rebuild the Shelf from the tables (empty tables give an empty Shelf)."""
        albums = (await self.session.execute(select(AlbumModel).order_by(AlbumModel.position))).scalars()
        tracks = (await self.session.execute(select(TrackModel).order_by(TrackModel.position))).scalars()
        playlists = (
            await self.session.execute(
                select(PlaylistModel)
                .options(selectinload(PlaylistModel.items))
                .order_by(PlaylistModel.position)
            )
        ).scalars()
        log_items = (
            await self.session.execute(
                select(DiscoverLogItemModel).order_by(DiscoverLogItemModel.position)
            )
        ).scalars()

        return Shelf(
            albums=tuple(self._album_from_model(m) for m in albums),
            tracks=tuple(self._track_from_model(m) for m in tracks),
            manual_playlists=tuple(self._playlist_from_model(m) for m in playlists),
            discover_log=DiscoverLog(tuple(self._log_item_from_model(m) for m in log_items)),
        )

    async def save(self, shelf: Shelf) -> None:
        """Replace all persisted rows with shelf's records."""
        for model in (PlaylistItemModel, PlaylistModel, TrackModel, AlbumModel, DiscoverLogItemModel):
            await self.session.execute(delete(model))

        self.session.add_all(
            AlbumModel(
                id=str(album.id),
                position=position,
                tags=album.metadata.to_dict(),
                cover=album.cover,
            )
            for position, album in enumerate(shelf.albums)
        )
        self.session.add_all(
            TrackModel(
                id=str(track.id),
                position=position,
                source=track.source,
                start=track.start.value,
                end=track.end.value,
                album_id=str(track.album_id),
                tags=track.metadata.to_dict(),
            )
            for position, track in enumerate(shelf.tracks)
        )
        for position, playlist in enumerate(shelf.manual_playlists):
            model = PlaylistModel(id=str(playlist.id), position=position, title=playlist.title)
            model.items = [
                PlaylistItemModel(id=str(item.id), position=index, track_id=str(item.track_id))
                for index, item in enumerate(playlist.items)
            ]
            self.session.add(model)
        self.session.add_all(
            DiscoverLogItemModel(
                position=position,
                action=item.action.value,
                url=item.url,
                capability=item.capability,
                timestamp=item.timestamp,
            )
            for position, item in enumerate(shelf.discover_log.items)
        )
        await self.session.flush()

    # =========================================================================
    # MAPPING
    # =========================================================================

    @staticmethod
    def _album_from_model(model: AlbumModel) -> Album:
        return Album(id=uuid.UUID(model.id), metadata=Metadata(model.tags or {}), cover=model.cover)

    @staticmethod
    def _track_from_model(model: TrackModel) -> Track:
        return Track(
            id=uuid.UUID(model.id),
            source=model.source,
            start=CueTime(model.start),
            end=CueTime(model.end),
            album_id=uuid.UUID(model.album_id),
            metadata=Metadata(model.tags or {}),
        )

    @staticmethod
    def _playlist_from_model(model: PlaylistModel) -> Playlist:
        return Playlist(
            id=uuid.UUID(model.id),
            title=model.title,
            items=tuple(
                PlaylistItem(id=uuid.UUID(item.id), track_id=uuid.UUID(item.track_id))
                for item in model.items
            ),
        )

    @staticmethod
    def _log_item_from_model(model: DiscoverLogItemModel) -> DiscoverLogItem:
        return DiscoverLogItem(
            action=DiscoverAction(model.action),
            url=model.url,
            capability=model.capability or b"",
            timestamp=ensure_utc_aware(model.timestamp),
        )


class ShelfStore:
    """Loads and saves the Shelf in its own transactions."""

    def __init__(self, database: Database) -> None:
        self._database = database
        self._initialized = False

    async def _ensure_schema(self) -> None:
        if not self._initialized:
            await self._database.create_tables()
            self._initialized = True

    async def load(self) -> Shelf:
        """Load the persisted Shelf.

        Raises:
            PersistenceError: If the store cannot be read
        """
        try:
            await self._ensure_schema()
            async with self._database.session_scope() as session:
                shelf = await ShelfRepository(session).load()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load shelf: {e}") from e
        logger.info(
            "Loaded shelf: %d albums, %d tracks, %d playlists, %d log entries",
            len(shelf.albums),
            len(shelf.tracks),
            len(shelf.manual_playlists),
            len(shelf.discover_log.items),
        )
        return shelf

    async def save(self, shelf: Shelf) -> None:
        """Persist shelf atomically.

        Raises:
            PersistenceError: If the transaction fails (previous state stays on disk)
        """
        try:
            await self._ensure_schema()
            async with self._database.session_scope() as session:
                await ShelfRepository(session).save(shelf)
        except SQLAlchemyError as e:
            logger.error("Failed to save shelf: %s", e)
            raise PersistenceError(f"Failed to save shelf: {e}") from e
        logger.debug("Saved shelf: %d albums, %d tracks", len(shelf.albums), len(shelf.tracks))

    async def close(self) -> None:
        await self._database.close()
