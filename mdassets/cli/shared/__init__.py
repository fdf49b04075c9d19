"""Shared CLI utilities for localize and publish commands."""

from mdassets.cli.shared.display import run_with_spinner, show_plan, show_result
from mdassets.cli.shared.options import LocalizeOptions

__all__ = [
    "LocalizeOptions",
    "run_with_spinner",
    "show_plan",
    "show_result",
]
