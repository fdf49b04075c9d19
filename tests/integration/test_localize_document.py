"""End-to-end localization of a document through settings-built components."""

import httpx
from PIL import Image

from mdassets.config.settings import MdAssetsSettings
from mdassets.core.pipeline import AssetPipeline
from mdassets.markdown.extractor import extract_references


def _settings(config_dir, **download) -> MdAssetsSettings:
    (config_dir / "mdassets.yaml").write_text(
        "download:\n  retry_base_delay: 0\n  max_retries: 3\n"
        "site:\n  images_dir: static/img\n  link_prefix: /img\n",
        encoding="utf-8",
    )
    settings = MdAssetsSettings()
    if download:
        settings = settings.model_copy(
            update={"download": settings.download.model_copy(update=download)}
        )
    return settings


class TestLocalizeDocument:
    """A realistic post with flaky hosts, redirects and duplicates."""

    def test_full_run(self, isolated_settings, make_png, ok_image, fixed_clock):
        flaky = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            if url == "https://example.com/a.png":
                return ok_image(make_png())
            if url == "https://example.com/b.jpg":
                flaky["count"] += 1
                if flaky["count"] == 1:
                    return httpx.Response(503, text="busy")
                return ok_image(make_png((96, 64)), "image/jpeg")
            if url == "https://example.com/c.png":
                return httpx.Response(302, headers={"Location": "/cdn/c.png"})
            if url == "https://example.com/cdn/c.png":
                return ok_image(make_png((64, 96)))
            return httpx.Response(404)

        document = (
            "---\ntitle: Trip\ncover: https://example.com/a.png\n---\n\n"
            "![x](https://example.com/b.jpg)\n\n"
            "Again: ![x](https://example.com/b.jpg)\n\n"
            '<img src="https://example.com/c.png" width="300">\n\n'
            "![gone](https://example.com/missing.png)\n"
        )
        settings = _settings(isolated_settings)
        pipeline = AssetPipeline.from_settings(
            settings,
            base_path=isolated_settings,
            transport=httpx.MockTransport(handler),
            clock=fixed_clock,
        )

        result = pipeline.run(document)

        assert [o.original_url for o in result.outcomes] == [
            "https://example.com/a.png",
            "https://example.com/b.jpg",
            "https://example.com/c.png",
            "https://example.com/missing.png",
        ]
        assert [o.succeeded for o in result.outcomes] == [True, True, True, False]
        assert result.outcomes[1].attempts == 2
        assert result.outcomes[2].attempts == 2

        day = isolated_settings / "static" / "img" / "2024" / "05" / "06"
        for name in ("a.webp", "b.webp", "c.webp"):
            with Image.open(day / name) as img:
                assert img.format == "WEBP"

        markdown = result.markdown
        assert "cover: /img/2024/05/06/a.webp" in markdown
        assert markdown.count("![x](/img/2024/05/06/b.webp)") == 2
        assert '<img src="/img/2024/05/06/c.webp" width="300">' in markdown
        assert "![gone](https://example.com/missing.png)" in markdown
        assert [r.original_url for r in extract_references(markdown)] == [
            "https://example.com/missing.png"
        ]

    def test_rerun_after_failure_only_fetches_the_rest(
        self, isolated_settings, make_png, ok_image, fixed_clock
    ):
        requested: list[str] = []
        available = {"https://example.com/a.png"}

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            requested.append(url)
            if url in available:
                return ok_image(make_png())
            return httpx.Response(500)

        document = "![a](https://example.com/a.png)\n![b](https://example.com/b.png)\n"
        settings = _settings(isolated_settings, max_retries=1)

        def run(text: str):
            pipeline = AssetPipeline.from_settings(
                settings,
                base_path=isolated_settings,
                transport=httpx.MockTransport(handler),
                clock=fixed_clock,
            )
            return pipeline.run(text)

        first = run(document)
        assert len(first.failed) == 1

        available.add("https://example.com/b.png")
        requested.clear()
        second = run(first.markdown)

        assert requested == ["https://example.com/b.png"]
        assert "example.com" not in second.markdown
