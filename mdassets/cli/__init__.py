"""Command-line interface for mdassets."""
