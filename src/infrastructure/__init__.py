"""Infrastructure layer - network access."""
