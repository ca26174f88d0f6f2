"""Application settings loaded from environment variables and .env files.

Hey future me - every knob lives here, grouped into nested sections. Env vars use the
SOUNDSHELF_ prefix and "__" for nesting, e.g.:

    SOUNDSHELF_STORAGE__DATA_DIR=/srv/shelf
    SOUNDSHELF_DISCOVERY__MAX_CONCURRENCY=4
    SOUNDSHELF_CONSOLIDATION__CONFLICT_KEYS='["ENCODER","DATE"]'
    SOUNDSHELF_LOG__LEVEL=DEBUG

Use get_settings() everywhere (cached), construct Settings() directly only in tests.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_data_dir() -> Path:
    return Path.home() / ".local" / "share" / "soundshelf"


class StorageSettings(BaseModel):
    """Where the shelf is persisted."""

    data_dir: Path = Field(default_factory=_default_data_dir)
    shelf_filename: str = "shelf.db"
    echo: bool = False

    @property
    def shelf_path(self) -> Path:
        return self.data_dir / self.shelf_filename

    @property
    def database_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.shelf_path}"


class DiscoverySettings(BaseModel):
    """Discovery fan-out behaviour."""

    max_concurrency: int = Field(default=8, ge=1)
    skip_hidden: bool = True
    # Hey future me - a directory that can't be listed used to vanish silently. With this on
    # it shows up in DiscoverResult.errors (and the log) so users learn about permission issues.
    report_listing_errors: bool = True


class ConsolidationSettings(BaseModel):
    """Track/album merge knobs."""

    time_tolerance: int = Field(default=500, ge=0)
    conflict_keys: list[str] = Field(
        default_factory=lambda: ["ENCODER", "ORGANIZATION", "DATE", "YEAR"]
    )
    unhoistable_keys: list[str] = Field(
        default_factory=lambda: [
            "TRACKNUMBER",
            "DISCNUMBER",
            "ISRC",
            "TOTALDISCS",
            "TOTALTRACKS",
            "DISCTOTAL",
            "TRACKTOTAL",
        ]
    )

    @field_validator("conflict_keys", "unhoistable_keys")
    @classmethod
    def _uppercase_keys(cls, value: list[str]) -> list[str]:
        return [key.strip().upper() for key in value if key.strip()]


class ArtworkSettings(BaseModel):
    """Cover pipeline output format."""

    target_width: int = Field(default=600, ge=16)
    quality: int = Field(default=85, ge=1, le=100)
    format: str = "WEBP"
    cover_stems: list[str] = Field(default_factory=lambda: ["cover"])
    max_concurrency: int = Field(default=4, ge=1)


class LogSettings(BaseModel):
    """Logging output."""

    level: str = "INFO"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="SOUNDSHELF_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "soundshelf"
    storage: StorageSettings = Field(default_factory=StorageSettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    consolidation: ConsolidationSettings = Field(default_factory=ConsolidationSettings)
    artwork: ArtworkSettings = Field(default_factory=ArtworkSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    def ensure_directories(self) -> None:
        """Create the data directory if missing."""
        self.storage.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
