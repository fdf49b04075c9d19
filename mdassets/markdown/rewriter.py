"""Substitute local paths for remote image URLs in a document."""

import re
from collections.abc import Iterable

from mdassets.config.constants import CATEGORY_REWRITE, COVER_FIELDS, DEFAULT_LINK_PREFIX
from mdassets.core.references import ImageReference, ReferenceCategory
from mdassets.exceptions import ExtractionError
from mdassets.image.paths import build_link
from mdassets.markdown.extractor import IMG_TAG_PATTERN, SRC_ATTRIBUTE_PATTERN, src_value
from mdassets.markdown.frontmatter import field_pattern, locate_front_matter
from mdassets.utils.logging import BoundLogger, get_logger


def _split_document(text: str) -> tuple[str, str, str]:
    """Split into (block prefix, block content, rest) around the metadata block."""
    try:
        block = locate_front_matter(text)
    except ExtractionError:
        block = None
    if block is None:
        return "", "", text
    return (
        text[: block.content_start],
        text[block.content_start : block.content_end],
        text[block.content_end :],
    )


def rewrite_inline(body: str, reference: ImageReference, link: str) -> tuple[str, int]:
    """Replace every exact ``![alt](url)`` occurrence."""
    original = f"![{reference.alt_text}]({reference.original_url})"
    count = body.count(original)
    if count:
        body = body.replace(original, f"![{reference.alt_text}]({link})")
    return body, count


def rewrite_cover(content: str, reference: ImageReference, link: str) -> tuple[str, int]:
    """Replace the URL value of every cover field holding it."""
    total = 0
    for name in COVER_FIELDS:
        pattern = field_pattern(name, reference.original_url)
        content, count = pattern.subn(
            lambda m: f"{m.group('prefix')}{m.group('quote')}{link}{m.group('quote')}",
            content,
        )
        total += count
    return content, total


def rewrite_html(body: str, reference: ImageReference, link: str) -> tuple[str, int]:
    """Replace the ``src`` value of every ``<img>`` tag pointing at the URL."""
    count = 0

    def replace_tag(tag: re.Match[str]) -> str:
        nonlocal count
        markup = tag.group(0)
        src = SRC_ATTRIBUTE_PATTERN.search(markup)
        if not src or src_value(src) != reference.original_url:
            return markup
        group = next(g for g in ("dq", "sq", "bare") if src.group(g) is not None)
        start, end = src.span(group)
        count += 1
        return markup[:start] + link + markup[end:]

    body = IMG_TAG_PATTERN.sub(replace_tag, body)
    return body, count


class ReferenceRewriter:
    """Point references at their localized copies.

    Only references carrying a ``local_relative_path`` are rewritten. A miss
    (the expected markup is no longer in the document) is logged and skipped,
    which also makes a second pass over an already rewritten document a no-op.
    """

    def __init__(
        self,
        link_prefix: str = DEFAULT_LINK_PREFIX,
        logger: BoundLogger | None = None,
    ) -> None:
        self.link_prefix = link_prefix
        self._log = (logger or get_logger(__name__)).bind(category=CATEGORY_REWRITE)

    def link_for(self, reference: ImageReference) -> str | None:
        """Document link for a localized reference."""
        if reference.local_relative_path is None:
            return None
        return build_link(self.link_prefix, reference.local_relative_path)

    def rewrite(self, text: str, references: Iterable[ImageReference]) -> str:
        """Rewrite ``text`` so localized references point at local paths.

        Args:
            text: Original document text
            references: References with their final local paths assigned

        Returns:
            The rewritten document
        """
        prefix, front_matter, body = _split_document(text)

        for reference in references:
            link = self.link_for(reference)
            if link is None:
                continue

            if reference.category is ReferenceCategory.STANDARD:
                body, count = rewrite_inline(body, reference, link)
            elif reference.category is ReferenceCategory.FRONT_MATTER_COVER:
                front_matter, count = rewrite_cover(front_matter, reference, link)
            else:
                body, count = rewrite_html(body, reference, link)

            if count:
                self._log.debug(
                    "Rewrote reference",
                    url=reference.original_url,
                    link=link,
                    occurrences=count,
                )
            else:
                self._log.debug("Reference not found in document", url=reference.original_url)

        return prefix + front_matter + body
