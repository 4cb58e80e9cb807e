"""Domain layer: entities, pure rules, interfaces and services."""
