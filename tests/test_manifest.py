"""Test M3U manifest parsing"""

import pytest

from moss_music.catalog.manifest import parse_manifest
from moss_music.core.exceptions import ParseError
from moss_music.core.models import LOCAL_CHANNEL, SourceKind


class TestParseManifest:
    """Test parse_manifest()"""

    def test_single_entry_with_title(self, temp_dir):
        """#EXTINF title is attached to the following reference"""
        manifest = temp_dir / "My Mix.m3u"
        manifest.write_text("#EXTM3U\n#EXTINF:-1,My Song\n./song.mp3\n", encoding="utf-8")

        descriptor = parse_manifest(manifest)

        assert descriptor.id == "My Mix.m3u"
        assert descriptor.title == "My Mix"
        assert len(descriptor.items) == 1
        item = descriptor.items[0]
        assert item.title == "My Song"
        assert item.id == "song.mp3"
        assert item.path == str(temp_dir / "song.mp3")
        assert item.source_kind is SourceKind.LOCAL
        assert item.channel == LOCAL_CHANNEL

    def test_title_falls_back_to_file_name(self, temp_dir):
        """Without #EXTINF the base name is the title"""
        manifest = temp_dir / "list.m3u"
        manifest.write_text("music/track one.flac\n", encoding="utf-8")

        item = parse_manifest(manifest).items[0]

        assert item.title == "track one.flac"
        assert item.path == str(temp_dir / "music" / "track one.flac")

    def test_pending_title_discarded_after_reference(self, temp_dir):
        """A title is used for one reference only"""
        manifest = temp_dir / "list.m3u"
        manifest.write_text(
            "#EXTM3U\n#EXTINF:200,First\na.mp3\nb.mp3\n", encoding="utf-8"
        )

        titles = [item.title for item in parse_manifest(manifest).items]

        assert titles == ["First", "b.mp3"]

    def test_other_comments_keep_pending_title(self, temp_dir):
        """Unknown directives between #EXTINF and the reference are ignored"""
        manifest = temp_dir / "list.m3u"
        manifest.write_text(
            "#EXTM3U\n#EXTINF:10,Kept\n#EXTGRP:Rock\n\n  a.mp3  \n", encoding="utf-8"
        )

        assert parse_manifest(manifest).items[0].title == "Kept"

    def test_relative_parent_references(self, temp_dir):
        """References are resolved against the manifest directory"""
        (temp_dir / "lists").mkdir()
        manifest = temp_dir / "lists" / "up.m3u8"
        manifest.write_text("../audio/x.ogg\n", encoding="utf-8")

        descriptor = parse_manifest(manifest)

        assert descriptor.title == "up"
        assert descriptor.items[0].path == str(temp_dir / "audio" / "x.ogg")

    def test_duplicate_references_are_kept(self, temp_dir):
        """Duplicates stay in order; dedup happens later"""
        manifest = temp_dir / "dup.m3u"
        manifest.write_text("a.mp3\nb.mp3\na.mp3\n", encoding="utf-8")

        assert parse_manifest(manifest).item_ids == ["a.mp3", "b.mp3", "a.mp3"]

    def test_no_references_raises(self, temp_dir):
        """A manifest with only comments is a parse error"""
        manifest = temp_dir / "empty.m3u"
        manifest.write_text("#EXTM3U\n#EXTINF:-1,Orphan title\n\n", encoding="utf-8")

        with pytest.raises(ParseError, match="No valid entries"):
            parse_manifest(manifest)

    def test_missing_file_raises(self, temp_dir):
        """A missing manifest is a parse error"""
        with pytest.raises(ParseError) as exc_info:
            parse_manifest(temp_dir / "missing.m3u")
        assert "path" in exc_info.value.details
