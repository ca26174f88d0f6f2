"""SQLAlchemy ORM models for the persisted Shelf."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! Timestamps come back "naive" even
# though we store UTC. DiscoverLog compares them with aware file mtimes, so EVERY datetime read
# from the DB goes through this or you get "can't compare offset-naive and offset-aware".
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Listen up, every table carries a "position" column. The Shelf keeps records in tuples and
# several things depend on that order (merge seeds, playlist items, discover log tie-breaks),
# so load() sorts by position to round-trip the exact order. Ids are String(36) UUIDs.
class AlbumModel(Base):
    """Album row."""

    __tablename__ = "albums"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    # "metadata" is reserved on declarative classes, hence the attribute name
    tags: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    cover: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)


class TrackModel(Base):
    """Track row. start/end are CueTime frame counts (negative = sentinel)."""

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(Text, nullable=False)
    start: Mapped[int] = mapped_column(Integer, nullable=False)
    end: Mapped[int] = mapped_column(Integer, nullable=False)
    album_id: Mapped[str] = mapped_column(String(36), nullable=False)
    tags: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)

    __table_args__ = (Index("ix_tracks_album_id", "album_id"),)


class PlaylistModel(Base):
    """Manual playlist row."""

    __tablename__ = "playlists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)

    items: Mapped[list["PlaylistItemModel"]] = relationship(
        "PlaylistItemModel",
        back_populates="playlist",
        cascade="all, delete-orphan",
        order_by="PlaylistItemModel.position",
    )


class PlaylistItemModel(Base):
    """Playlist entry row."""

    __tablename__ = "playlist_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    playlist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("playlists.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    track_id: Mapped[str] = mapped_column(String(36), nullable=False)

    playlist: Mapped["PlaylistModel"] = relationship("PlaylistModel", back_populates="items")

    __table_args__ = (Index("ix_playlist_items_playlist_id", "playlist_id"),)


class DiscoverLogItemModel(Base):
    """Discover log entry row."""

    __tablename__ = "discover_log_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    capability: Mapped[bytes] = mapped_column(LargeBinary, nullable=False, default=b"")
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (Index("ix_discover_log_items_action_url", "action", "url"),)
