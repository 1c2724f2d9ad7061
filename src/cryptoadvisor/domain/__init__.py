"""Domain layer: entities, value objects and the alert error taxonomy."""
