"""Data model shared by the pipeline stages."""

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path, PurePosixPath


class ReferenceCategory(StrEnum):
    """Where in the document a remote image reference was found."""

    STANDARD = "standard"
    FRONT_MATTER_COVER = "front_matter_cover"
    HTML_TAG = "html_tag"


@dataclass
class ImageReference:
    """A single remote image mention inside a document.

    Created by the extractor, given local paths by the path generator and
    discarded at the end of the run.
    """

    alt_text: str
    original_url: str
    category: ReferenceCategory
    local_relative_path: PurePosixPath | None = None
    local_absolute_path: Path | None = None

    def __str__(self) -> str:
        return f"{self.category.value}:{self.original_url}"


@dataclass
class FetchResult:
    """Outcome of materializing one reference on disk."""

    reference: ImageReference
    path: Path | None = None
    error: str | None = None
    attempts: int = 0
    skipped: bool = False  # target already existed, nothing downloaded

    @property
    def success(self) -> bool:
        return self.error is None and self.path is not None


@dataclass
class TranscodeResult:
    """Outcome of applying the compression policy to one local file."""

    source_path: Path
    final_path: Path
    action: str = "kept"  # kept, resized, reencoded, converted
    lossless: bool | None = None
    original_size: int = 0
    final_size: int = 0
    error: str | None = None

    @property
    def changed_path(self) -> bool:
        return self.final_path != self.source_path

    @property
    def savings_percent(self) -> float:
        if self.original_size == 0:
            return 0.0
        return (1 - self.final_size / self.original_size) * 100


@dataclass
class ReferenceOutcome:
    """Per-reference report returned to callers of the pipeline."""

    original_url: str
    category: ReferenceCategory
    succeeded: bool
    final_local_path: Path | None = None
    link: str | None = None
    error: str | None = None
    attempts: int = 0
    skipped_download: bool = False
    transcode: TranscodeResult | None = None


@dataclass
class PipelineResult:
    """Result of localizing one document."""

    markdown: str
    outcomes: list[ReferenceOutcome] = field(default_factory=list)
    elapsed: float = 0.0
    index_file: Path | None = None  # ownership index, when written

    @property
    def succeeded(self) -> list[ReferenceOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> list[ReferenceOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def artifacts(self) -> list[Path]:
        """Local files the rewritten document now points at."""
        return [o.final_local_path for o in self.succeeded if o.final_local_path is not None]
