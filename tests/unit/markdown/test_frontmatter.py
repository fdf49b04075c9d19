"""Tests for metadata block location."""

import pytest

from mdassets.exceptions import ExtractionError
from mdassets.markdown.frontmatter import field_pattern, locate_front_matter


class TestLocateFrontMatter:
    """Tests for locate_front_matter."""

    def test_block_offsets(self):
        text = "---\ntitle: T\n---\nBody\n"
        block = locate_front_matter(text)

        assert block is not None
        assert block.content(text) == "title: T\n"
        assert text[block.body_start :] == "\nBody\n"

    def test_no_block(self):
        assert locate_front_matter("# Title\n---\n") is None

    def test_block_must_start_document(self):
        assert locate_front_matter("\n---\ntitle: T\n---\n") is None

    def test_unclosed_block_raises(self):
        with pytest.raises(ExtractionError):
            locate_front_matter("---\ntitle: T\n")

    def test_crlf_line_endings(self):
        text = "---\r\ntitle: T\r\n---\r\nBody\r\n"
        block = locate_front_matter(text)

        assert block is not None
        assert "title: T" in block.content(text)

    def test_byte_order_mark(self):
        text = "\ufeff---\ntitle: T\n---\n"
        assert locate_front_matter(text) is not None


class TestFieldPattern:
    """Tests for field_pattern."""

    def test_matches_urls_only(self):
        pattern = field_pattern("cover")

        assert pattern.search("cover: https://e.com/a.png\n")
        assert not pattern.search("cover: images/a.png\n")

    def test_groups(self):
        match = field_pattern("cover").search("cover:  'https://e.com/a.png'\n")

        assert match.group("prefix") == "cover:  "
        assert match.group("quote") == "'"
        assert match.group("value") == "https://e.com/a.png"

    def test_upper_case_scheme(self):
        match = field_pattern("cover").search("cover: HTTPS://e.com/a.png\n")
        assert match.group("value") == "HTTPS://e.com/a.png"

    def test_trailing_comment(self):
        match = field_pattern("cover").search("cover: https://e.com/a.png  # hero\n")
        assert match.group("value") == "https://e.com/a.png"

    def test_exact_value(self):
        pattern = field_pattern("image", "https://e.com/a.png?x=1")

        assert pattern.search("image: https://e.com/a.png?x=1")
        assert not pattern.search("image: https://e.com/a.png?x=12")

    def test_field_name_must_match_exactly(self):
        assert not field_pattern("image").search("og_image: https://e.com/a.png")
