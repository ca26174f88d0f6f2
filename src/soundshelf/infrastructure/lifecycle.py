"""Library lifecycle - wires settings, plugins, persistence and services together.

Startup: configure logging, ensure the data dir, build the plugin registry, open the shelf
store and load the persisted Shelf. Shutdown: dispose the database engine.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from soundshelf.application.services import ArtworkService, Discoverer, LibraryService
from soundshelf.config import Settings, get_settings
from soundshelf.domain.services.consolidation import ConsolidationPolicy
from soundshelf.infrastructure.access_capability import LocalAccessCapabilityProvider
from soundshelf.infrastructure.observability import InFlightRequestTracer, configure_logging
from soundshelf.infrastructure.persistence import Database, ShelfStore
from soundshelf.infrastructure.plugins import build_default_registry

logger = logging.getLogger(__name__)


def create_library_service(settings: Settings, database_url: str | None = None) -> LibraryService:
    """Build a LibraryService with the default plugins.

    Args:
        settings: Application settings
        database_url: Override for the shelf store url (tests use in-memory SQLite)
    """
    registry = build_default_registry()
    tracer = InFlightRequestTracer()
    capability_provider = LocalAccessCapabilityProvider()

    discoverer = Discoverer(
        registry,
        capability_provider=capability_provider,
        tracer=tracer,
        settings=settings.discovery,
    )
    artwork_service = ArtworkService(registry, settings=settings.artwork, tracer=tracer)
    store = ShelfStore(Database(settings.storage, url=database_url))

    logger.debug("Plugins: %r", registry)
    return LibraryService(
        store,
        discoverer,
        artwork_service=artwork_service,
        capability_provider=capability_provider,
        policy=ConsolidationPolicy.from_settings(settings.consolidation),
    )


@asynccontextmanager
async def library_lifespan(settings: Settings | None = None) -> AsyncGenerator[LibraryService, None]:
    """Open the library for the duration of the context.

    Yields:
        LibraryService with the persisted Shelf loaded
    """
    settings = settings or get_settings()
    configure_logging(
        log_level=settings.log.level,
        json_format=settings.log.json_format,
        app_name=settings.app_name,
    )
    settings.ensure_directories()

    service = create_library_service(settings)
    logger.info("Opening library at %s", settings.storage.shelf_path)
    try:
        await service.load()
        yield service
    finally:
        await service.close()
        logger.info("Library closed")
