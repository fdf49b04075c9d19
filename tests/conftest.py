"""Pytest configuration and fixtures."""

import io
import os
import random
import tempfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import httpx
import pytest
from PIL import Image

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Generation date used wherever paths must be predictable
FIXED_NOW = datetime(2024, 5, 6, 12, 30, 0)


def png_bytes(size: tuple[int, int] = (128, 128), compress_level: int = 0) -> bytes:
    """A striped palette-friendly PNG; uncompressed by default so it shrinks well."""
    img = Image.new("RGB", size, (255, 255, 255))
    for x in range(0, size[0], 8):
        for y in range(size[1]):
            img.putpixel((x, y), (200, 30, 30))
    output = io.BytesIO()
    img.save(output, format="PNG", compress_level=compress_level)
    return output.getvalue()


def gradient_bytes(size: tuple[int, int] = (200, 150), fmt: str = "PNG", **save_kwargs) -> bytes:
    """A smooth photographic-like gradient."""
    width, height = size
    img = Image.new("RGB", size)
    img.putdata(
        [
            (x * 255 // width, y * 255 // height, (x + y) * 255 // (width + height))
            for y in range(height)
            for x in range(width)
        ]
    )
    output = io.BytesIO()
    img.save(output, format=fmt, **save_kwargs)
    return output.getvalue()


def noise_png_bytes(size: tuple[int, int] = (64, 64)) -> bytes:
    """Random noise, which no encoder shrinks meaningfully."""
    data = random.Random(42).randbytes(size[0] * size[1] * 3)
    img = Image.frombytes("RGB", size, data)
    output = io.BytesIO()
    img.save(output, format="PNG", optimize=True)
    return output.getvalue()


def image_transport(
    routes: dict[str, bytes | Callable[[httpx.Request], httpx.Response]],
    calls: list[str] | None = None,
) -> httpx.MockTransport:
    """MockTransport answering by full URL; unknown URLs get a 404.

    A bytes route is served as a fresh 200 image/png response on every request.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if calls is not None:
            calls.append(url)
        route = routes.get(url)
        if route is None:
            return httpx.Response(404, text="not found")
        if isinstance(route, bytes):
            return image_response(route)
        return route(request)

    return httpx.MockTransport(handler)


def image_response(content: bytes, content_type: str = "image/png") -> httpx.Response:
    return httpx.Response(200, content=content, headers={"Content-Type": content_type})


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def images_root(temp_dir: Path) -> Path:
    """Directory localized images are written under."""
    return temp_dir / "source" / "images"


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Run in an isolated directory without mdassets.yaml or MDASSETS_ variables."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("MDASSETS_"):
            monkeypatch.delenv(name)

    from mdassets.config.settings import get_settings

    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


@pytest.fixture
def sample_document() -> str:
    """Document with one reference of each category."""
    return """---
title: Hello
cover: https://example.com/a.png
tags: [demo]
---

# Hello

![x](https://example.com/b.jpg)

Some text.

<img src="https://example.com/c.png" width="300">
"""


@pytest.fixture
def sample_markdown_file(temp_dir: Path, sample_document: str) -> Path:
    """Write the sample document to disk."""
    file_path = temp_dir / "hello.md"
    file_path.write_text(sample_document, encoding="utf-8")
    return file_path


@pytest.fixture
def make_png():
    return png_bytes


@pytest.fixture
def make_gradient():
    return gradient_bytes


@pytest.fixture
def make_noise_png():
    return noise_png_bytes


@pytest.fixture
def mock_images():
    """Factory for a MockTransport serving the given routes."""
    return image_transport


@pytest.fixture
def ok_image():
    """Factory for a successful image response."""
    return image_response
