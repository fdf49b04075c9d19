"""mdassets - localize remote images referenced by Markdown documents."""

__version__ = "0.3.0"
