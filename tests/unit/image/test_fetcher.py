"""Tests for the image fetcher."""

import asyncio
from pathlib import Path

import httpx
import pytest

from mdassets.core.references import ImageReference, ReferenceCategory
from mdassets.image.fetcher import ImageFetcher
from mdassets.utils.concurrency import DEADLINE_EXCEEDED
from mdassets.utils.retry import RetryPolicy

PAYLOAD = b"\x89PNG\r\n\x1a\n" + b"\x00" * 400


def _reference(url: str, target: Path) -> ImageReference:
    return ImageReference(
        alt_text="x",
        original_url=url,
        category=ReferenceCategory.STANDARD,
        local_absolute_path=target,
    )


def _fetcher(transport: httpx.MockTransport, **kwargs) -> ImageFetcher:
    kwargs.setdefault("retry_policy", RetryPolicy.immediate(3))
    return ImageFetcher(transport=transport, **kwargs)


class TestImageFetcher:
    """Tests for ImageFetcher.fetch."""

    @pytest.mark.asyncio
    async def test_successful_download(self, temp_dir, mock_images):
        target = temp_dir / "2024" / "05" / "06" / "a.png"
        transport = mock_images({"https://e.com/a.png": PAYLOAD})

        result = await _fetcher(transport).fetch(_reference("https://e.com/a.png", target))

        assert result.success
        assert result.attempts == 1
        assert result.path == target
        assert target.read_bytes() == PAYLOAD
        assert not (target.parent / "a.png.part").exists()

    @pytest.mark.asyncio
    async def test_browser_headers_and_referer(self, temp_dir):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=PAYLOAD, headers={"Content-Type": "image/png"})

        url = "https://e.com/a.png"
        await _fetcher(httpx.MockTransport(handler)).fetch(_reference(url, temp_dir / "a.png"))

        headers = seen[0].headers
        assert headers["Referer"] == url
        assert "Mozilla" in headers["User-Agent"]
        assert headers["Accept"].startswith("image/")
        assert "Accept-Language" in headers

    @pytest.mark.asyncio
    async def test_always_500_exhausts_attempts(self, temp_dir, mock_images):
        """A failing URL is attempted exactly max_retries times and reported, not raised."""
        calls: list[str] = []
        transport = mock_images(
            {"https://e.com/a.png": lambda request: httpx.Response(500)}, calls=calls
        )
        target = temp_dir / "a.png"

        result = await _fetcher(transport).fetch(_reference("https://e.com/a.png", target))

        assert not result.success
        assert len(calls) == 3
        assert result.attempts == 3
        assert "HTTP 500" in result.error
        assert not target.exists()
        assert list(temp_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_retry_then_success_waits_linearly(self, temp_dir):
        statuses = [503, 503]
        delays: list[float] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if statuses:
                return httpx.Response(statuses.pop())
            return httpx.Response(200, content=PAYLOAD, headers={"Content-Type": "image/png"})

        async def record_sleep(seconds: float) -> None:
            delays.append(seconds)

        fetcher = _fetcher(
            httpx.MockTransport(handler),
            retry_policy=RetryPolicy(max_attempts=3, base_delay=1.0, sleep=record_sleep),
        )
        result = await fetcher.fetch(_reference("https://e.com/a.png", temp_dir / "a.png"))

        assert result.success
        assert result.attempts == 3
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_redirect_followed_manually(self, temp_dir, mock_images):
        calls: list[str] = []
        transport = mock_images(
            {
                "https://e.com/a.png": lambda request: httpx.Response(
                    302, headers={"Location": "/real/a.png"}
                ),
                "https://e.com/real/a.png": PAYLOAD,
            },
            calls=calls,
        )
        target = temp_dir / "a.png"

        result = await _fetcher(transport).fetch(_reference("https://e.com/a.png", target))

        assert result.success
        assert calls == ["https://e.com/a.png", "https://e.com/real/a.png"]
        assert result.attempts == 2
        assert target.read_bytes() == PAYLOAD

    @pytest.mark.asyncio
    async def test_redirect_loop_consumes_budget(self, temp_dir, mock_images):
        calls: list[str] = []
        transport = mock_images(
            {
                "https://e.com/a.png": lambda request: httpx.Response(
                    301, headers={"Location": "https://e.com/a.png"}
                )
            },
            calls=calls,
        )

        reference = _reference("https://e.com/a.png", temp_dir / "a.png")
        result = await _fetcher(transport).fetch(reference)

        assert not result.success
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_undersized_payload_rejected(self, temp_dir, mock_images):
        transport = mock_images({"https://e.com/a.png": b"tiny"})
        target = temp_dir / "a.png"

        result = await _fetcher(transport).fetch(_reference("https://e.com/a.png", target))

        assert not result.success
        assert "too small" in result.error
        assert not target.exists()
        assert not (temp_dir / "a.png.part").exists()

    @pytest.mark.asyncio
    async def test_min_payload_configurable(self, temp_dir, mock_images):
        transport = mock_images({"https://e.com/a.png": b"tiny"})

        result = await _fetcher(transport, min_payload_bytes=1).fetch(
            _reference("https://e.com/a.png", temp_dir / "a.png")
        )

        assert result.success

    @pytest.mark.asyncio
    async def test_non_image_content_type_accepted(self, temp_dir, mock_images):
        transport = mock_images(
            {
                "https://e.com/a.png": lambda request: httpx.Response(
                    200, content=PAYLOAD, headers={"Content-Type": "application/octet-stream"}
                )
            }
        )

        reference = _reference("https://e.com/a.png", temp_dir / "a.png")
        result = await _fetcher(transport).fetch(reference)

        assert result.success

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, temp_dir):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ReadTimeout("slow", request=request)

        target = temp_dir / "a.png"
        result = await _fetcher(httpx.MockTransport(handler)).fetch(
            _reference("https://e.com/a.png", target)
        )

        assert not result.success
        assert calls == 3
        assert "timed out" in result.error
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_existing_target_skipped(self, temp_dir):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("network must not be used")

        target = temp_dir / "a.png"
        target.write_bytes(b"existing")

        result = await _fetcher(httpx.MockTransport(handler)).fetch(
            _reference("https://e.com/a.png", target)
        )

        assert result.success
        assert result.skipped
        assert result.attempts == 0
        assert target.read_bytes() == b"existing"

    @pytest.mark.asyncio
    async def test_filesystem_error_not_retried(self, temp_dir, mock_images):
        calls: list[str] = []
        blocker = temp_dir / "blocker"
        blocker.write_text("a file where a directory should be")
        transport = mock_images({"https://e.com/a.png": PAYLOAD}, calls=calls)

        result = await _fetcher(transport).fetch(
            _reference("https://e.com/a.png", blocker / "a.png")
        )

        assert not result.success
        assert calls == []
        assert "Filesystem error" in result.error

    @pytest.mark.asyncio
    async def test_missing_local_path(self, mock_images):
        reference = ImageReference(
            alt_text="x", original_url="https://e.com/a.png", category=ReferenceCategory.STANDARD
        )
        result = await _fetcher(mock_images({})).fetch(reference)

        assert not result.success


class TestFetchAll:
    """Tests for ImageFetcher.fetch_all."""

    @pytest.mark.asyncio
    async def test_empty(self, mock_images):
        assert await _fetcher(mock_images({})).fetch_all([]) == []

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, temp_dir, mock_images):
        transport = mock_images(
            {"https://e.com/ok.png": PAYLOAD, "https://e.com/ok2.png": PAYLOAD}
        )
        references = [
            _reference("https://e.com/ok.png", temp_dir / "ok.png"),
            _reference("https://e.com/missing.png", temp_dir / "missing.png"),
            _reference("https://e.com/ok2.png", temp_dir / "ok2.png"),
        ]

        results = await _fetcher(transport).fetch_all(references)
        by_url = {r.reference.original_url: r for r in results}

        assert len(results) == 3
        assert by_url["https://e.com/ok.png"].success
        assert by_url["https://e.com/ok2.png"].success
        assert not by_url["https://e.com/missing.png"].success
        assert "HTTP 404" in by_url["https://e.com/missing.png"].error

    @pytest.mark.asyncio
    async def test_batches_bound_in_flight_requests(self, temp_dir):
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, content=PAYLOAD, headers={"Content-Type": "image/png"})

        references = [
            _reference(f"https://e.com/{i}.png", temp_dir / f"{i}.png") for i in range(5)
        ]
        results = await _fetcher(httpx.MockTransport(handler), concurrency=2).fetch_all(references)

        assert all(r.success for r in results)
        assert peak == 2

    @pytest.mark.asyncio
    async def test_deadline_marks_unstarted_batches_failed(self, temp_dir, mock_images):
        calls: list[str] = []
        transport = mock_images(
            {f"https://e.com/{i}.png": PAYLOAD for i in range(4)}, calls=calls
        )
        references = [
            _reference(f"https://e.com/{i}.png", temp_dir / f"{i}.png") for i in range(4)
        ]

        results = await _fetcher(transport, concurrency=2, deadline=0.0).fetch_all(references)

        assert calls == []
        assert all(not r.success for r in results)
        assert all(r.error == DEADLINE_EXCEEDED for r in results)
