"""Tests for file system utilities."""

import pytest

from mdassets.exceptions import FilesystemError
from mdassets.utils.fs import (
    ensure_directory,
    format_size,
    get_unique_path,
    partial_path,
    remove_quietly,
    replace_file,
)


class TestEnsureDirectory:
    def test_creates_nested(self, temp_dir):
        target = temp_dir / "a" / "b" / "c"

        assert ensure_directory(target) == target
        assert target.is_dir()

    def test_existing_is_fine(self, temp_dir):
        ensure_directory(temp_dir)
        ensure_directory(temp_dir)

    def test_file_in_the_way(self, temp_dir):
        blocker = temp_dir / "file"
        blocker.write_text("x")

        with pytest.raises(FilesystemError) as exc_info:
            ensure_directory(blocker / "sub")

        assert exc_info.value.path == blocker / "sub"
        assert exc_info.value.cause is not None


class TestFileHelpers:
    def test_remove_quietly(self, temp_dir):
        target = temp_dir / "a.txt"
        target.write_text("x")

        assert remove_quietly(target) is True
        assert remove_quietly(target) is False

    def test_partial_path(self, temp_dir):
        assert partial_path(temp_dir / "a.png") == temp_dir / "a.png.part"

    def test_replace_file(self, temp_dir):
        source = temp_dir / "a.part"
        target = temp_dir / "a.png"
        source.write_bytes(b"new")
        target.write_bytes(b"old")

        replace_file(source, target)

        assert target.read_bytes() == b"new"
        assert not source.exists()

    def test_get_unique_path(self, temp_dir):
        target = temp_dir / "post.md"
        assert get_unique_path(target) == target

        target.write_text("x")
        (temp_dir / "post_1.md").write_text("x")

        assert get_unique_path(target) == temp_dir / "post_2.md"


class TestFormatSize:
    def test_units(self):
        assert format_size(512) == "512 B"
        assert format_size(2048) == "2.00 KB"
        assert format_size(5 * 1024 * 1024) == "5.00 MB"
