"""Remote image reference extraction.

Three independent scanners each cover one surface of the document:

- inline Markdown images ``![alt](url)`` in the body,
- the cover field of the leading metadata block,
- ``<img>`` tags in the body.

Their hits are merged by position and deduplicated by URL.
"""

import re
from collections.abc import Iterator
from urllib.parse import urlparse

from mdassets.config.constants import (
    CATEGORY_EXTRACT,
    COVER_ALT_TEXT,
    COVER_FIELDS,
    HTML_IMAGE_ALT_TEXT,
)
from mdassets.core.references import ImageReference, ReferenceCategory
from mdassets.exceptions import ExtractionError
from mdassets.markdown.frontmatter import FrontMatterBlock, field_pattern, locate_front_matter
from mdassets.utils.logging import BoundLogger, get_logger

INLINE_IMAGE_PATTERN = re.compile(r"!\[(?P<alt>[^\]\n]*)\]\((?P<url>[^)\s]+)\)")
IMG_TAG_PATTERN = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
SRC_ATTRIBUTE_PATTERN = re.compile(
    r"(?<![\w-])src\s*=\s*"
    r"(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)'|(?P<bare>[^\s\"'>]+))",
    re.IGNORECASE,
)

Hit = tuple[int, ImageReference]


def is_remote_url(url: str) -> bool:
    """Check whether ``url`` is an absolute http(s) URL."""
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme.lower() in ("http", "https") and bool(parsed.netloc)


def src_value(match: re.Match[str]) -> str:
    """Attribute value of a SRC_ATTRIBUTE_PATTERN match, whatever its quoting."""
    for group in ("dq", "sq", "bare"):
        value = match.group(group)
        if value is not None:
            return value
    return ""


def scan_inline_images(text: str, start: int = 0) -> Iterator[Hit]:
    """Yield ``standard`` references for inline images from ``start`` on."""
    for match in INLINE_IMAGE_PATTERN.finditer(text, start):
        url = match.group("url")
        if is_remote_url(url):
            yield match.start(), ImageReference(
                alt_text=match.group("alt"),
                original_url=url,
                category=ReferenceCategory.STANDARD,
            )


def scan_front_matter(text: str, block: FrontMatterBlock) -> Iterator[Hit]:
    """Yield the cover reference of the metadata block, if any.

    Fields are tried in priority order; only the first one holding an
    absolute URL produces a reference.
    """
    content = block.content(text)
    for name in COVER_FIELDS:
        match = field_pattern(name).search(content)
        if match:
            yield block.content_start + match.start(), ImageReference(
                alt_text=COVER_ALT_TEXT,
                original_url=match.group("value"),
                category=ReferenceCategory.FRONT_MATTER_COVER,
            )
            return


def scan_html_images(text: str, start: int = 0) -> Iterator[Hit]:
    """Yield ``html_tag`` references for ``<img>`` tags from ``start`` on."""
    for tag in IMG_TAG_PATTERN.finditer(text, start):
        src = SRC_ATTRIBUTE_PATTERN.search(tag.group(0))
        if not src:
            continue
        url = src_value(src)
        if is_remote_url(url):
            yield tag.start(), ImageReference(
                alt_text=HTML_IMAGE_ALT_TEXT,
                original_url=url,
                category=ReferenceCategory.HTML_TAG,
            )


class ReferenceExtractor:
    """Extract remote image references from a Markdown document."""

    def __init__(self, logger: BoundLogger | None = None) -> None:
        self._log = (logger or get_logger(__name__)).bind(category=CATEGORY_EXTRACT)

    def scan(self, text: str) -> list[ImageReference]:
        """Every remote reference in order of appearance, duplicates included."""
        hits: list[Hit] = []
        body_offset = 0

        try:
            block = locate_front_matter(text)
        except ExtractionError as e:
            self._log.debug("Ignoring metadata block", reason=str(e))
            block = None

        if block is not None:
            hits.extend(scan_front_matter(text, block))
            body_offset = block.body_start

        hits.extend(scan_inline_images(text, body_offset))
        hits.extend(scan_html_images(text, body_offset))
        hits.sort(key=lambda hit: hit[0])
        return [reference for _, reference in hits]

    def extract(self, text: str) -> list[ImageReference]:
        """Extract unique remote image references.

        The first occurrence of a URL decides its category and alt text.
        Never raises.

        Args:
            text: Document text

        Returns:
            References in order of first appearance
        """
        seen: set[str] = set()
        references: list[ImageReference] = []

        for reference in self.scan(text):
            if reference.original_url in seen:
                continue
            seen.add(reference.original_url)
            references.append(reference)

        self._log.info(
            "Extracted image references",
            total=len(references),
            standard=sum(r.category is ReferenceCategory.STANDARD for r in references),
            cover=sum(r.category is ReferenceCategory.FRONT_MATTER_COVER for r in references),
            html=sum(r.category is ReferenceCategory.HTML_TAG for r in references),
        )
        return references


def extract_references(text: str) -> list[ImageReference]:
    """Convenience wrapper around ReferenceExtractor.extract."""
    return ReferenceExtractor().extract(text)
