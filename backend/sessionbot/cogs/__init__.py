"""Bot extensions."""
