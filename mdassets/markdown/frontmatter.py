"""Locating the leading metadata block of a Markdown document.

Only the block boundaries and single-line ``key: value`` fields are
recognized; the block is never parsed as a whole, so hand-written front
matter that is not valid YAML still yields its cover fields.
"""

import re
from dataclasses import dataclass

from mdassets.exceptions import ExtractionError

_OPENING_PATTERN = re.compile(r"\A\ufeff?---[ \t]*\r?\n")
_CLOSING_PATTERN = re.compile(r"^---[ \t]*\r?$", re.MULTILINE)


@dataclass(frozen=True)
class FrontMatterBlock:
    """Offsets of a metadata block inside its document."""

    content_start: int
    content_end: int
    body_start: int

    def content(self, text: str) -> str:
        return text[self.content_start : self.content_end]


def locate_front_matter(text: str) -> FrontMatterBlock | None:
    """Find the metadata block at the very start of ``text``.

    Args:
        text: Document text

    Returns:
        Block offsets, or None if the document has no metadata block

    Raises:
        ExtractionError: If the opening delimiter has no closing delimiter
    """
    opening = _OPENING_PATTERN.match(text)
    if not opening:
        return None

    closing = _CLOSING_PATTERN.search(text, opening.end())
    if not closing:
        raise ExtractionError("metadata block is missing its closing '---' line")

    return FrontMatterBlock(
        content_start=opening.end(),
        content_end=closing.start(),
        body_start=closing.end(),
    )


def field_pattern(field: str, value: str | None = None) -> re.Pattern[str]:
    """Pattern for a top-level ``field: value`` line.

    Groups: ``prefix`` (field name, colon, spacing), ``quote`` and ``value``.
    Without ``value`` any absolute http(s) URL matches.
    """
    value_pattern = re.escape(value) if value is not None else r"(?i:https?)://[^\s\"']+"
    return re.compile(
        rf"^(?P<prefix>{re.escape(field)}[ \t]*:[ \t]*)"
        rf"(?P<quote>[\"']?)(?P<value>{value_pattern})(?P=quote)"
        r"(?=[ \t]*(?:#.*)?\r?$)",
        re.MULTILINE,
    )
