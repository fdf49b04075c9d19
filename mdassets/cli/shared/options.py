"""Shared localization options for the localize and publish commands."""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mdassets.config.settings import MdAssetsSettings


@dataclass
class LocalizeOptions:
    """CLI parameters that shape a pipeline run."""

    images_dir: Path | None = None
    link_prefix: str | None = None
    no_compress: bool = False
    concurrency: int | None = None
    verbose: bool = False

    @property
    def compress_images(self) -> bool | None:
        """Explicit override, or None to defer to settings."""
        return False if self.no_compress else None

    def resolve_images_root(self, settings: "MdAssetsSettings", base_path: Path) -> Path:
        """Resolve the images root with fallback to ``site.images_dir``."""
        if self.images_dir:
            return self.images_dir
        return settings.get_images_root(base_path)
