"""Tests for settings and application wiring."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from soundshelf.application.services import LibraryService
from soundshelf.config import ConsolidationSettings, LogSettings, Settings, StorageSettings
from soundshelf.domain.services.consolidation import ConsolidationPolicy
from soundshelf.infrastructure.lifecycle import create_library_service, library_lifespan


class TestSettings:
    """Tests for the settings model."""

    def test_defaults(self, tmp_path: Path) -> None:
        """Test the default knobs."""
        settings = Settings(storage=StorageSettings(data_dir=tmp_path))
        assert settings.discovery.max_concurrency == 8
        assert settings.consolidation.time_tolerance == 500
        assert settings.storage.shelf_path == tmp_path / "shelf.db"
        assert settings.storage.database_url.startswith("sqlite+aiosqlite:///")

    def test_env_overrides(self, monkeypatch) -> None:
        """Test nested environment variables."""
        monkeypatch.setenv("SOUNDSHELF_DISCOVERY__MAX_CONCURRENCY", "3")
        monkeypatch.setenv("SOUNDSHELF_LOG__LEVEL", "debug")
        settings = Settings()
        assert settings.discovery.max_concurrency == 3
        assert settings.log.level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        """Test log level validation."""
        with pytest.raises(ValidationError):
            LogSettings(level="LOUD")

    def test_policy_from_settings(self) -> None:
        """Test building the consolidation policy."""
        policy = ConsolidationPolicy.from_settings(
            ConsolidationSettings(time_tolerance=10, conflict_keys=["encoder", " date "])
        )
        assert policy.time_tolerance == 10
        assert policy.conflict_keys == frozenset({"ENCODER", "DATE"})


class TestLifecycle:
    """Tests for library wiring."""

    def test_create_library_service(self, tmp_path: Path) -> None:
        """Test that the default wiring builds a service."""
        settings = Settings(storage=StorageSettings(data_dir=tmp_path))
        assert isinstance(create_library_service(settings), LibraryService)

    async def test_library_lifespan_opens_empty_library(self, tmp_path: Path) -> None:
        """Test opening and closing a fresh library."""
        settings = Settings(storage=StorageSettings(data_dir=tmp_path / "data"))
        async with library_lifespan(settings) as service:
            assert service.shelf.is_empty
        assert (tmp_path / "data").is_dir()
