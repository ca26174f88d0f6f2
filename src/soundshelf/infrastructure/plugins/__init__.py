"""Media plugins and the registry that orders them."""

from soundshelf.infrastructure.plugins.registry import PluginRegistry, build_default_registry

__all__ = ["PluginRegistry", "build_default_registry"]
