"""Domain layer: records, value objects, ports and pure services."""
