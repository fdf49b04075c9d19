"""Asset localization pipeline."""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path, PurePosixPath

import httpx

from mdassets.config.constants import CATEGORY_PIPELINE, DEFAULT_IMAGE_WORKERS, DEFAULT_LINK_PREFIX
from mdassets.config.settings import MdAssetsSettings
from mdassets.core.references import (
    FetchResult,
    ImageReference,
    PipelineResult,
    ReferenceOutcome,
    TranscodeResult,
)
from mdassets.core.state import AssetIndex
from mdassets.exceptions import FilesystemError
from mdassets.image.compressor import CompressionConfig, ImageCompressor
from mdassets.image.fetcher import ImageFetcher
from mdassets.image.paths import PathGenerator
from mdassets.markdown.extractor import ReferenceExtractor
from mdassets.markdown.rewriter import ReferenceRewriter
from mdassets.utils.concurrency import BatchRunner
from mdassets.utils.logging import BoundLogger, get_logger
from mdassets.utils.retry import RetryPolicy


class AssetPipeline:
    """Localize the remote images of a Markdown document.

    Handles the complete flow:
    1. Extract unique remote references
    2. Assign each one a local path under the images root
    3. Fetch all of them in sequential batches
    4. Transcode the files now on disk
    5. Rewrite the document for every reference that ended up on disk

    Per-reference failures are collected into the result, never raised.
    """

    def __init__(
        self,
        images_root: Path,
        link_prefix: str = DEFAULT_LINK_PREFIX,
        fetcher: ImageFetcher | None = None,
        compressor: ImageCompressor | None = None,
        compress_images: bool = True,
        image_workers: int = DEFAULT_IMAGE_WORKERS,
        clock: Callable[[], datetime] = datetime.now,
        logger: BoundLogger | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            images_root: Directory localized images are written under
            link_prefix: Prefix of the links written into the document
            fetcher: Image fetcher (a default one is created if omitted)
            compressor: Transcode policy engine (a default one is created if omitted)
            compress_images: Run the transcode stage
            image_workers: Number of images transcoded in parallel
            clock: Time source for the date buckets
            logger: Logger handed down to every component
        """
        self.images_root = Path(images_root)
        self.link_prefix = link_prefix
        self.compress_images = compress_images
        self.image_workers = image_workers
        self._clock = clock
        self._logger = logger or get_logger(__name__)
        self._log = self._logger.bind(category=CATEGORY_PIPELINE)

        self.extractor = ReferenceExtractor(logger=self._logger)
        self.rewriter = ReferenceRewriter(link_prefix=link_prefix, logger=self._logger)
        self.fetcher = fetcher or ImageFetcher(logger=self._logger)
        self.compressor = compressor or ImageCompressor(logger=self._logger)

    @classmethod
    def from_settings(
        cls,
        settings: MdAssetsSettings,
        base_path: Path | None = None,
        images_root: Path | None = None,
        link_prefix: str | None = None,
        compress_images: bool | None = None,
        concurrency: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = datetime.now,
        logger: BoundLogger | None = None,
    ) -> "AssetPipeline":
        """Build a pipeline from application settings.

        Args:
            settings: Application settings
            base_path: Directory a relative ``site.images_dir`` is resolved against
            images_root: Override the images root derived from ``site.images_dir``
            link_prefix: Override ``site.link_prefix``
            compress_images: Override ``download.compress_images``
            concurrency: Override ``download.concurrency``
            transport: Optional HTTP transport (tests)
            clock: Time source for the date buckets
            logger: Optional logger
        """
        download = settings.download
        logger = logger or get_logger(__name__)

        fetcher = ImageFetcher(
            retry_policy=RetryPolicy(
                max_attempts=download.max_retries,
                base_delay=download.retry_base_delay,
            ),
            concurrency=concurrency or download.concurrency,
            timeout_ms=download.timeout_ms,
            min_payload_bytes=download.min_payload_bytes,
            deadline=download.deadline_seconds,
            transport=transport,
            logger=logger,
        )
        compressor = ImageCompressor(
            config=CompressionConfig.from_settings(settings.compression),
            logger=logger,
        )
        return cls(
            images_root=images_root or settings.get_images_root(base_path),
            link_prefix=settings.site.link_prefix if link_prefix is None else link_prefix,
            fetcher=fetcher,
            compressor=compressor,
            compress_images=(
                download.compress_images if compress_images is None else compress_images
            ),
            image_workers=settings.compression.image_workers,
            clock=clock,
            logger=logger,
        )

    def plan(self, document: str, index: AssetIndex | None = None) -> list[ImageReference]:
        """Extract unique references and assign their local paths.

        Args:
            document: Markdown text
            index: Ownership index of the images root (loaded from disk if omitted)
        """
        references = self.extractor.extract(document)
        if index is None:
            index = AssetIndex.load(self.images_root, logger=self._logger)
        generator = PathGenerator(
            self.images_root,
            clock=self._clock,
            reserved_extension=self._conversion_extension,
            index=index,
            logger=self._logger,
        )
        return generator.assign_all(references)

    @property
    def _conversion_extension(self) -> str | None:
        config = self.compressor.config
        if not self.compress_images or not config.convert_to_target_format:
            return None
        return config.target_extension

    def run(self, document: str) -> PipelineResult:
        """Synchronous wrapper around run_async."""
        return asyncio.run(self.run_async(document))

    async def run_async(self, document: str) -> PipelineResult:
        """Localize every remote image of ``document``.

        Args:
            document: Markdown text

        Returns:
            Rewritten text plus one outcome per unique reference
        """
        started = time.monotonic()
        index = AssetIndex.load(self.images_root, logger=self._logger)
        references = self.plan(document, index)
        if not references:
            self._log.info("No remote images found")
            return PipelineResult(markdown=document, elapsed=time.monotonic() - started)

        already_localized: dict[str, FetchResult] = {}
        to_fetch: list[ImageReference] = []
        for reference in references:
            sibling = self._converted_sibling(reference, index)
            if sibling is not None:
                self._relocate(reference, sibling)
                already_localized[reference.original_url] = FetchResult(
                    reference=reference, path=sibling, skipped=True
                )
            else:
                to_fetch.append(reference)

        fetched = {r.reference.original_url: r for r in await self.fetcher.fetch_all(to_fetch)}
        fetched.update(already_localized)

        transcoded: dict[str, TranscodeResult] = {}
        if self.compress_images:
            # Converted siblings are earlier transcode outputs
            local_files = [
                r for url, r in fetched.items() if r.success and url not in already_localized
            ]
            transcoded = await self._transcode_all(local_files)

        outcomes: list[ReferenceOutcome] = []
        localized: list[ImageReference] = []
        for reference in references:
            outcome = self._outcome(
                reference,
                fetched.get(reference.original_url),
                transcoded.get(reference.original_url),
            )
            outcomes.append(outcome)
            if outcome.succeeded:
                localized.append(reference)
                index.record(reference.local_relative_path, reference.original_url)

        index_file: Path | None = None
        try:
            index.save()
            if index.index_file.exists():
                index_file = index.index_file
        except FilesystemError as e:
            self._log.warning("Asset index not saved", error=str(e))

        markdown = self.rewriter.rewrite(document, localized)
        elapsed = time.monotonic() - started
        self._log.info(
            "Localization finished",
            total=len(outcomes),
            localized=len(localized),
            failed=len(outcomes) - len(localized),
            elapsed=f"{elapsed:.2f}s",
        )
        return PipelineResult(
            markdown=markdown, outcomes=outcomes, elapsed=elapsed, index_file=index_file
        )

    async def _transcode_all(self, local_files: list[FetchResult]) -> dict[str, TranscodeResult]:
        runner = BatchRunner(self.image_workers, logger=self._log)
        tasks = await runner.run(
            local_files,
            lambda fetched: asyncio.to_thread(self.compressor.transcode, fetched.path),
        )

        results: dict[str, TranscodeResult] = {}
        for task in tasks:
            url = task.item.reference.original_url
            if task.success and task.result is not None:
                results[url] = task.result
            else:
                # The original download stays in place
                results[url] = TranscodeResult(
                    source_path=task.item.path,
                    final_path=task.item.path,
                    error=task.error,
                )
        return results

    def _outcome(
        self,
        reference: ImageReference,
        fetched: FetchResult | None,
        transcoded: TranscodeResult | None,
    ) -> ReferenceOutcome:
        if fetched is None or not fetched.success:
            return ReferenceOutcome(
                original_url=reference.original_url,
                category=reference.category,
                succeeded=False,
                error=fetched.error if fetched is not None else "not fetched",
                attempts=fetched.attempts if fetched is not None else 0,
            )

        if transcoded is not None and transcoded.changed_path:
            self._relocate(reference, transcoded.final_path)

        final_path = reference.local_absolute_path
        if final_path is None or not final_path.exists():
            return ReferenceOutcome(
                original_url=reference.original_url,
                category=reference.category,
                succeeded=False,
                error="localized file is missing",
                attempts=fetched.attempts,
            )

        return ReferenceOutcome(
            original_url=reference.original_url,
            category=reference.category,
            succeeded=True,
            final_local_path=final_path,
            link=self.rewriter.link_for(reference),
            attempts=fetched.attempts,
            skipped_download=fetched.skipped,
            transcode=transcoded,
        )

    def _converted_sibling(self, reference: ImageReference, index: AssetIndex) -> Path | None:
        """Target-format file left by an earlier run that converted this image."""
        path = reference.local_absolute_path
        relative = reference.local_relative_path
        extension = self._conversion_extension
        if path is None or relative is None or extension is None or path.exists():
            return None
        sibling = relative.with_suffix(extension)
        if sibling == relative or index.owner(sibling) != reference.original_url:
            return None
        sibling_path = path.with_suffix(extension)
        return sibling_path if sibling_path.exists() else None

    @staticmethod
    def _relocate(reference: ImageReference, path: Path) -> None:
        relative = reference.local_relative_path or PurePosixPath(path.name)
        reference.local_relative_path = relative.with_name(path.name)
        reference.local_absolute_path = path


def localize(
    document: str, settings: MdAssetsSettings, base_path: Path | None = None
) -> PipelineResult:
    """Run the pipeline once with settings-derived components."""
    return AssetPipeline.from_settings(settings, base_path=base_path).run(document)
