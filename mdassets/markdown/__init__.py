"""Markdown reference extraction and rewriting."""
