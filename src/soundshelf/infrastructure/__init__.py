"""Infrastructure adapters (plugins, persistence, observability)."""
