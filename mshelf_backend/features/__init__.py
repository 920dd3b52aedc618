"""Feature services."""
