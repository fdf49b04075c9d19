"""File system utilities for mdassets."""

import os
from pathlib import Path

from mdassets.exceptions import FilesystemError


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Safe to call concurrently for the same path.

    Args:
        path: Directory path

    Returns:
        The directory path

    Raises:
        FilesystemError: If the directory cannot be created
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(path, "cannot create directory", cause=e) from e
    return path


def remove_quietly(path: Path) -> bool:
    """Delete a file if it exists.

    Returns:
        True if a file was removed
    """
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False


def replace_file(source: Path, target: Path) -> Path:
    """Atomically move ``source`` onto ``target``, replacing it."""
    os.replace(source, target)
    return target


def partial_path(path: Path) -> Path:
    """Sibling path used while a download is in flight."""
    return path.with_name(path.name + ".part")


def get_unique_path(path: Path) -> Path:
    """Get a unique path by adding a counter suffix if path exists.

    Args:
        path: Original path

    Returns:
        Unique path that doesn't exist
    """
    if not path.exists():
        return path

    counter = 1
    while True:
        new_path = path.parent / f"{path.stem}_{counter}{path.suffix}"
        if not new_path.exists():
            return new_path
        counter += 1


def format_size(size_bytes: int) -> str:
    """Format a byte count as a human-readable string."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} TB"
