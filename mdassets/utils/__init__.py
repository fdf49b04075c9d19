"""Utility modules for mdassets."""
