"""Persistence layer (SQLAlchemy async over SQLite)."""

from soundshelf.infrastructure.persistence.database import Database
from soundshelf.infrastructure.persistence.shelf_repository import ShelfRepository, ShelfStore

__all__ = ["Database", "ShelfRepository", "ShelfStore"]
