"""Tests for the asset ownership index."""

import json
from pathlib import PurePosixPath

import pytest

from mdassets.config.constants import INDEX_FILENAME
from mdassets.core.state import AssetIndex
from mdassets.exceptions import FilesystemError

RELATIVE = PurePosixPath("2024/05/06/a.webp")


class TestAssetIndex:
    """Tests for AssetIndex."""

    def test_missing_file_is_empty(self, images_root):
        index = AssetIndex.load(images_root)

        assert len(index) == 0
        assert index.owner(RELATIVE) is None

    def test_record_and_reload(self, images_root):
        index = AssetIndex.load(images_root)
        index.record(RELATIVE, "https://x.test/a.png")
        index.save()

        data = json.loads((images_root / INDEX_FILENAME).read_text(encoding="utf-8"))
        assert data == {"files": {"2024/05/06/a.webp": "https://x.test/a.png"}}
        assert AssetIndex.load(images_root).owner(RELATIVE) == "https://x.test/a.png"
        assert not (images_root / (INDEX_FILENAME + ".part")).exists()

    def test_unchanged_index_not_written(self, images_root):
        AssetIndex.load(images_root).save()
        assert not (images_root / INDEX_FILENAME).exists()

    def test_unreadable_file_is_empty(self, images_root):
        images_root.mkdir(parents=True)
        (images_root / INDEX_FILENAME).write_text("{not json", encoding="utf-8")

        assert len(AssetIndex.load(images_root)) == 0

    def test_save_failure(self, temp_dir):
        blocker = temp_dir / "blocker"
        blocker.write_text("a file where the images root should be")
        index = AssetIndex(blocker)
        index.record(RELATIVE, "https://x.test/a.png")

        with pytest.raises(FilesystemError):
            index.save()
