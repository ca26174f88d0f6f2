"""Configuration module for SoundShelf."""

from .settings import (
    ArtworkSettings,
    ConsolidationSettings,
    DiscoverySettings,
    LogSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "ArtworkSettings",
    "ConsolidationSettings",
    "DiscoverySettings",
    "LogSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
