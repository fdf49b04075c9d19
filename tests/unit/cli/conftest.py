"""Fixtures shared by the CLI tests."""

import logging
import sys
from pathlib import Path

import pytest
import structlog
from typer.testing import CliRunner

from mdassets.core.pipeline import AssetPipeline
from mdassets.image.fetcher import ImageFetcher
from mdassets.utils.logging import set_log_output
from mdassets.utils.retry import RetryPolicy


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_root_logging():
    """Commands install task log handlers; drop them after each test."""
    yield
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    set_log_output(sys.stderr)
    structlog.reset_defaults()


@pytest.fixture
def sample_routes(make_png):
    """Routes serving every image of the sample document."""
    return {
        "https://example.com/a.png": make_png(),
        "https://example.com/b.jpg": make_png((96, 64)),
        "https://example.com/c.png": make_png((64, 96)),
    }


@pytest.fixture
def offline_pipeline(monkeypatch, fixed_clock, mock_images):
    """Replace a command's build_pipeline with one served by a MockTransport.

    Returns a function taking the command module path and the routes; the
    pipelines it builds keep the images root the command asked for.
    """

    def _install(module: str, routes: dict) -> list[AssetPipeline]:
        built: list[AssetPipeline] = []

        def build_pipeline(settings, options, base_path=None):
            base_path = base_path or Path.cwd()
            fetcher = ImageFetcher(
                retry_policy=RetryPolicy.immediate(1),
                transport=mock_images(routes),
            )
            pipeline = AssetPipeline(
                options.resolve_images_root(settings, base_path),
                link_prefix=settings.site.link_prefix,
                fetcher=fetcher,
                compress_images=options.compress_images is not False,
                clock=fixed_clock,
            )
            built.append(pipeline)
            return pipeline

        monkeypatch.setattr(f"{module}.build_pipeline", build_pipeline)
        return built

    return _install
