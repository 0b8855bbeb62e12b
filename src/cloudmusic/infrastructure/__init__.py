"""Infrastructure layer: persistence, provider adapters, observability."""
