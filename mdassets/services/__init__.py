"""Publishing services."""
