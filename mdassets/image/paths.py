"""Deterministic local paths for remote images.

Layout: ``<images root>/YYYY/MM/DD/<sanitized-name>.<ext>``.
"""

import hashlib
import re
from collections.abc import Callable
from datetime import datetime
from pathlib import Path, PurePosixPath
from urllib.parse import parse_qs, unquote, urlparse

from mdassets.config.constants import (
    CATEGORY_PATH,
    DEFAULT_IMAGE_EXTENSION,
    IMAGE_EXTENSIONS,
    MAX_FILENAME_LENGTH,
)
from mdassets.core.references import ImageReference
from mdassets.core.state import AssetIndex
from mdassets.utils.logging import BoundLogger, get_logger

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_DISALLOWED_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")
_FORMAT_VALUE = re.compile(r"^[A-Za-z0-9]{1,5}$")


def sanitize_filename(filename: str, max_length: int = MAX_FILENAME_LENGTH) -> str:
    """Reduce a filename to letters, digits, dot, dash and underscore.

    Args:
        filename: Original filename
        max_length: Maximum length, the extension is preserved when truncating

    Returns:
        Safe filename (``file`` if nothing usable remains, ``image.<ext>`` if
        only the extension survives)
    """
    cleaned = _UNSAFE_CHARS.sub("", filename)
    cleaned = re.sub(r"\s+", "_", cleaned)
    cleaned = _DISALLOWED_CHARS.sub("_", cleaned)
    cleaned = _REPEATED_UNDERSCORES.sub("_", cleaned)

    stem, dot, extension = cleaned.rpartition(".")
    if not dot:
        stem, extension = cleaned, ""
    stem = stem.strip("_.")
    extension = extension.strip("_")
    suffix = f".{extension}" if extension and len(extension) + 1 < max_length else ""

    if not stem:
        if not suffix:
            return "file"
        stem = "image"

    if len(stem) + len(suffix) > max_length:
        stem = stem[: max_length - len(suffix)].rstrip("_.") or "image"

    return stem + suffix


def date_bucket(moment: datetime) -> PurePosixPath:
    """``YYYY/MM/DD`` directory for a moment in time."""
    return PurePosixPath(f"{moment.year:04d}", f"{moment.month:02d}", f"{moment.day:02d}")


def build_link(prefix: str, relative_path: PurePosixPath) -> str:
    """Join a link prefix (``/images``) and a relative image path."""
    relative = relative_path.as_posix()
    if not prefix:
        return relative
    return f"{prefix.rstrip('/')}/{relative}"


def filename_from_url(url: str) -> str:
    """Derive an unsanitized filename from the URL path and query.

    Raises:
        ValueError: If the URL cannot be parsed
    """
    parsed = urlparse(url)
    name = unquote(PurePosixPath(parsed.path).name) or "image"

    if PurePosixPath(name).suffix.lower() not in IMAGE_EXTENSIONS:
        values = parse_qs(parsed.query).get("format", [])
        fmt = values[0].lower() if values and _FORMAT_VALUE.match(values[0]) else None
        name = f"{name}.{fmt or DEFAULT_IMAGE_EXTENSION}"

    return name


class PathGenerator:
    """Assign local paths to references.

    Paths are deterministic for a given URL and generation date. Two different
    URLs that would land on the same file are told apart by a short hash of the
    URL. With a ``reserved_extension`` each path also claims its converted name
    (``a.png`` claims ``a.webp``), so a later conversion never lands on a file
    that belongs to another URL. An ``index`` extends the check to files that
    earlier runs localized.
    """

    def __init__(
        self,
        images_root: Path,
        clock: Callable[[], datetime] = datetime.now,
        max_length: int = MAX_FILENAME_LENGTH,
        reserved_extension: str | None = None,
        index: AssetIndex | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self.images_root = Path(images_root)
        self.max_length = max_length
        self.reserved_extension = reserved_extension
        self.index = index
        self._clock = clock
        self._assigned: dict[PurePosixPath, str] = {}
        self._log = (logger or get_logger(__name__)).bind(category=CATEGORY_PATH)

    def relative_path_for(self, url: str) -> PurePosixPath:
        """Relative path (date bucket + filename) for ``url``. Never raises."""
        now = self._clock()
        bucket = date_bucket(now)
        try:
            filename = sanitize_filename(filename_from_url(url), self.max_length)
        except ValueError as e:
            self._log.warning("Falling back to synthetic filename", url=url, error=str(e))
            filename = f"image_{int(now.timestamp() * 1000)}.{DEFAULT_IMAGE_EXTENSION}"

        relative = bucket / filename
        if not self._available(relative, url):
            relative = bucket / self._disambiguate(filename, url)
            self._log.debug("Name taken by another image", url=url, path=str(relative))
        for claimed in self._claims(relative):
            self._assigned.setdefault(claimed, url)
        return relative

    def assign(self, reference: ImageReference) -> ImageReference:
        """Set the local paths of ``reference`` in place and return it."""
        relative = self.relative_path_for(reference.original_url)
        reference.local_relative_path = relative
        reference.local_absolute_path = self.absolute_path(relative)
        self._log.debug("Assigned local path", url=reference.original_url, path=str(relative))
        return reference

    def assign_all(self, references: list[ImageReference]) -> list[ImageReference]:
        return [self.assign(reference) for reference in references]

    def absolute_path(self, relative: PurePosixPath) -> Path:
        return self.images_root.joinpath(*relative.parts)

    def _claims(self, relative: PurePosixPath) -> list[PurePosixPath]:
        """The path itself plus its converted sibling, if conversion is on."""
        claims = [relative]
        if self.reserved_extension:
            sibling = relative.with_suffix(self.reserved_extension)
            if sibling != relative:
                claims.append(sibling)
        return claims

    def _available(self, relative: PurePosixPath, url: str) -> bool:
        for position, claimed in enumerate(self._claims(relative)):
            owner = self._assigned.get(claimed)
            if owner is None and self.index is not None:
                owner = self.index.owner(claimed)
            if owner is not None and owner != url:
                return False
            # An unrecorded converted sibling on disk belongs to nobody we know
            if owner is None and position > 0 and self.absolute_path(claimed).exists():
                return False
        return True

    def _disambiguate(self, filename: str, url: str) -> str:
        digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:8]
        path = PurePosixPath(filename)
        stem = path.stem[: max(1, self.max_length - len(path.suffix) - len(digest) - 1)]
        return f"{stem}_{digest}{path.suffix}"
