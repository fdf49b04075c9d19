"""Ownership index of localized images.

Records which remote URL each file under the images root was localized from,
so a later run can tell its own earlier output apart from another image that
happens to share the name.
"""

import json
from pathlib import Path, PurePosixPath

from mdassets.config.constants import CATEGORY_FILE, INDEX_FILENAME
from mdassets.exceptions import FilesystemError
from mdassets.utils.fs import ensure_directory, partial_path, replace_file
from mdassets.utils.logging import BoundLogger, get_logger


class AssetIndex:
    """Relative image path to source URL, persisted as JSON at the images root."""

    def __init__(self, images_root: Path, logger: BoundLogger | None = None) -> None:
        self.images_root = Path(images_root)
        self.index_file = self.images_root / INDEX_FILENAME
        self._owners: dict[str, str] = {}
        self._dirty = False
        self._log = (logger or get_logger(__name__)).bind(category=CATEGORY_FILE)

    @classmethod
    def load(cls, images_root: Path, logger: BoundLogger | None = None) -> "AssetIndex":
        """Load the index of ``images_root``; a missing or unreadable file gives an empty one."""
        index = cls(images_root, logger=logger)
        if not index.index_file.exists():
            return index

        try:
            data = json.loads(index.index_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            index._log.warning(
                "Ignoring unreadable asset index", path=str(index.index_file), error=str(e)
            )
            return index

        files = data.get("files") if isinstance(data, dict) else None
        if isinstance(files, dict):
            index._owners = {str(k): v for k, v in files.items() if isinstance(v, str)}
        return index

    def owner(self, relative: PurePosixPath) -> str | None:
        """URL the file at ``relative`` was localized from, if recorded."""
        return self._owners.get(relative.as_posix())

    def record(self, relative: PurePosixPath, url: str) -> None:
        key = relative.as_posix()
        if self._owners.get(key) != url:
            self._owners[key] = url
            self._dirty = True

    def save(self) -> None:
        """Write the index if anything changed.

        Raises:
            FilesystemError: If the index cannot be written
        """
        if not self._dirty:
            return

        ensure_directory(self.images_root)
        payload = {"files": dict(sorted(self._owners.items()))}
        temp_file = partial_path(self.index_file)
        try:
            temp_file.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
            replace_file(temp_file, self.index_file)
        except OSError as e:
            raise FilesystemError(self.index_file, "cannot write asset index", cause=e) from e

        self._dirty = False
        self._log.debug("Asset index saved", path=str(self.index_file), files=len(self._owners))

    def __len__(self) -> int:
        return len(self._owners)
