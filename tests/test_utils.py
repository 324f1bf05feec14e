# tests/test_utils.py
"""Test utilities and helpers"""

from moss_music.utils import (
    BUCKET_CHARACTERS,
    bucket_for_item_id,
    ensure_directory,
    is_manifest_reference,
    is_under_directory,
    prepare_media_layout,
)


class TestHelpers:
    """Test helper functions"""

    def test_bucket_for_item_id(self):
        """Test bucket selection by first character"""
        assert bucket_for_item_id("dQw4w9WgXcQ") == "d"
        assert bucket_for_item_id("Abc") == "a"
        assert bucket_for_item_id("9bZkp7q19f0") == "9"
        assert bucket_for_item_id("_under") == "_"
        assert bucket_for_item_id("-dash") == "_"
        assert bucket_for_item_id("éclair") == "_"
        assert bucket_for_item_id("") == "_"

    def test_prepare_media_layout(self, temp_dir):
        """Test every bucket and the files root are created"""
        prepare_media_layout(temp_dir / "songs", temp_dir / "files")

        buckets = sorted(p.name for p in (temp_dir / "songs").iterdir())
        assert buckets == sorted(BUCKET_CHARACTERS)
        assert len(buckets) == 37
        assert (temp_dir / "files").is_dir()

    def test_ensure_directory(self, temp_dir):
        """Test nested directory creation is idempotent"""
        target = temp_dir / "a" / "b"
        assert ensure_directory(target) == target
        assert ensure_directory(target).is_dir()

    def test_is_manifest_reference(self, temp_dir, monkeypatch):
        """Test manifest detection by extension and path shape"""
        monkeypatch.chdir(temp_dir)
        (temp_dir / "here.m3u").write_text("a.mp3\n", encoding="utf-8")

        assert is_manifest_reference("here.m3u")
        assert is_manifest_reference("./missing.m3u")
        assert is_manifest_reference("../up/list.M3U8")
        assert is_manifest_reference("/abs/list.m3u")
        assert not is_manifest_reference("missing.m3u")
        assert not is_manifest_reference("PLrAXtmErZgOeiKm4sgNOknGvNjby9efdf")
        assert not is_manifest_reference("https://www.youtube.com/playlist?list=PL1")
        assert not is_manifest_reference("./notes.txt")

    def test_is_under_directory(self, temp_dir):
        """Test containment after resolving"""
        root = temp_dir / "songs"
        assert is_under_directory(root / "a" / "x.opus", root)
        assert is_under_directory(str(root / "a" / ".." / "b" / "y.opus"), root)
        assert not is_under_directory(root / ".." / "files" / "x.mp3", root)
        assert not is_under_directory(temp_dir / "songs-other" / "x", root)
