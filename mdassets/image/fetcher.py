"""Download remote images to their generated local paths."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from urllib.parse import urljoin

import anyio
import httpx

from mdassets.config.constants import (
    BROWSER_HEADERS,
    CATEGORY_NETWORK,
    DEFAULT_CONCURRENCY,
    DEFAULT_MIN_PAYLOAD_BYTES,
    DEFAULT_TIMEOUT_MS,
)
from mdassets.core.references import FetchResult, ImageReference
from mdassets.exceptions import FilesystemError, NetworkError
from mdassets.utils.concurrency import BatchRunner, TaskResult
from mdassets.utils.fs import ensure_directory, partial_path, remove_quietly, replace_file
from mdassets.utils.logging import BoundLogger, get_logger
from mdassets.utils.retry import RetryPolicy


class ImageFetcher:
    """Materialize remote images on disk.

    References are processed in sequential batches of ``concurrency``
    downloads. Each reference gets ``retry_policy.max_attempts`` requests in
    total; redirect hops are re-issued manually and draw from the same budget.
    Bodies stream into a ``.part`` file that only replaces the target once the
    transfer completed and passed the minimum size check.
    """

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        min_payload_bytes: int = DEFAULT_MIN_PAYLOAD_BYTES,
        deadline: float | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            retry_policy: Attempt budget and backoff between failed attempts
            concurrency: Width of each download batch
            timeout_ms: Transport timeout per request
            min_payload_bytes: Smaller bodies are rejected as error pages
            deadline: Optional budget in seconds for the whole run
            client: Optional shared client (not closed by the fetcher)
            transport: Optional transport for the client the fetcher creates
            logger: Optional logger
        """
        self.retry_policy = retry_policy or RetryPolicy()
        self.concurrency = concurrency
        self.timeout = httpx.Timeout(timeout_ms / 1000)
        self.min_payload_bytes = min_payload_bytes
        self.deadline = deadline
        self._client = client
        self._transport = transport
        self._log = (logger or get_logger(__name__)).bind(category=CATEGORY_NETWORK)

    @asynccontextmanager
    async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=False,
            timeout=self.timeout,
        ) as client:
            yield client

    async def fetch_all(self, references: list[ImageReference]) -> list[FetchResult]:
        """Fetch every reference, one batch at a time.

        Args:
            references: Unique references with local paths assigned

        Returns:
            One FetchResult per reference, in completion order
        """
        if not references:
            return []

        runner = BatchRunner(self.concurrency, deadline=self.deadline, logger=self._log)
        done = 0

        def report(task: TaskResult[ImageReference]) -> None:
            nonlocal done
            done += 1
            fetched = task.result if task.success else None
            if fetched is not None and fetched.success:
                self._log.info(
                    "Image ready",
                    progress=f"{done}/{len(references)}",
                    path=str(fetched.path),
                    skipped=fetched.skipped,
                )
            else:
                error = fetched.error if fetched is not None else task.error
                self._log.warning(
                    "Image failed",
                    progress=f"{done}/{len(references)}",
                    url=task.item.original_url,
                    error=error,
                )

        async with self._client_context() as client:
            tasks = await runner.run(
                references,
                lambda reference: self.fetch(reference, client),
                on_complete=report,
            )

        return [
            task.result
            if task.success and task.result is not None
            else FetchResult(reference=task.item, error=task.error)
            for task in tasks
        ]

    async def fetch(
        self, reference: ImageReference, client: httpx.AsyncClient | None = None
    ) -> FetchResult:
        """Fetch a single reference with retries. Never raises for I/O failures."""
        if client is None:
            async with self._client_context() as own_client:
                return await self.fetch(reference, own_client)

        path = reference.local_absolute_path
        if path is None:
            return FetchResult(reference=reference, error="no local path assigned")

        if path.exists():
            self._log.debug("Target exists, skipping download", path=str(path))
            return FetchResult(reference=reference, path=path, skipped=True)

        try:
            ensure_directory(path.parent)
        except FilesystemError as e:
            return FetchResult(reference=reference, error=str(e))

        policy = self.retry_policy
        url = reference.original_url
        last_error: Exception | None = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                redirect = await self._download(client, url, path)
            except FilesystemError as e:
                return FetchResult(reference=reference, error=str(e), attempts=attempt)
            except NetworkError as e:
                last_error = e
                self._log.warning(
                    "Download attempt failed",
                    url=url,
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    error=str(e),
                )
                if policy.should_retry(attempt):
                    await policy.wait(attempt)
                continue

            if redirect is not None:
                self._log.debug("Following redirect", url=url, location=redirect, attempt=attempt)
                url = redirect
                last_error = NetworkError(url, "redirect budget exhausted", attempts=attempt)
                continue

            return FetchResult(reference=reference, path=path, attempts=attempt)

        error = NetworkError(
            reference.original_url,
            f"giving up after {policy.max_attempts} attempts: {last_error}",
            status_code=getattr(last_error, "status_code", None),
            attempts=policy.max_attempts,
        )
        return FetchResult(reference=reference, error=str(error), attempts=policy.max_attempts)

    async def _download(self, client: httpx.AsyncClient, url: str, path: Path) -> str | None:
        """Perform one request.

        Returns:
            The redirect target if the server answered with a redirect,
            otherwise None after the body was stored at ``path``
        """
        part = partial_path(path)
        headers = {**BROWSER_HEADERS, "Referer": url}
        size = 0

        try:
            async with client.stream("GET", url, headers=headers, timeout=self.timeout) as response:
                if response.is_redirect:
                    return urljoin(url, response.headers["location"])

                if not response.is_success:
                    raise NetworkError(
                        url,
                        f"HTTP {response.status_code}: {response.reason_phrase}",
                        status_code=response.status_code,
                    )

                content_type = response.headers.get("content-type")
                if content_type and not content_type.startswith("image/"):
                    self._log.warning("Suspicious content type", url=url, content_type=content_type)

                async with await anyio.open_file(part, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        await f.write(chunk)
                        size += len(chunk)
        except httpx.TimeoutException as e:
            remove_quietly(part)
            raise NetworkError(url, "request timed out") from e
        except httpx.HTTPError as e:
            remove_quietly(part)
            raise NetworkError(url, str(e) or type(e).__name__) from e
        except NetworkError:
            remove_quietly(part)
            raise
        except OSError as e:
            remove_quietly(part)
            raise FilesystemError(part, "cannot write download", cause=e) from e

        if size < self.min_payload_bytes:
            remove_quietly(part)
            raise NetworkError(url, f"payload too small ({size} bytes), likely an error page")

        try:
            replace_file(part, path)
        except OSError as e:
            remove_quietly(part)
            raise FilesystemError(path, "cannot move download into place", cause=e) from e

        self._log.info("Downloaded image", url=url, path=str(path), size=size)
        return None
