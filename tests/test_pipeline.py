"""Test the acquisition pipeline"""

import asyncio

import pytest

from conftest import FakeDownloader
from moss_music.core.config import AcquisitionConfig
from moss_music.core.models import MediaItem, SourceKind
from moss_music.download.pipeline import AcquisitionPipeline, AcquisitionStats, Outcome


def remote_items(*item_ids: str) -> list[MediaItem]:
    return [MediaItem(id=item_id, title=f"Song {item_id}") for item_id in item_ids]


class SettledRecorder:
    """on_settled callback remembering (index, id) pairs"""

    def __init__(self):
        self.calls: list[tuple[int, str]] = []

    async def __call__(self, index: int, item: MediaItem) -> None:
        self.calls.append((index, item.id))


@pytest.fixture
def make_pipeline(store, sink):
    def _make(downloader, batch_size: int = 5) -> AcquisitionPipeline:
        return AcquisitionPipeline(
            store, downloader, AcquisitionConfig(batch_size=batch_size, batch_delay=0.0), sink
        )
    return _make


class TestAcquire:
    """Test AcquisitionPipeline.acquire()"""

    @pytest.mark.asyncio
    async def test_all_items_acquired(self, make_pipeline, downloader, store, sink):
        """Every remote item is downloaded, stored and settled"""
        settled = SettledRecorder()
        items = remote_items("a", "b", "c")

        stats = await make_pipeline(downloader).acquire("p", items, settled)

        assert stats.acquired == 3
        assert stats.failed == 0
        assert sorted(settled.calls) == [(0, "a"), (1, "b"), (2, "c")]
        for item_id in ("a", "b", "c"):
            assert await store.has_media_item(item_id)
        assert sink.fractions("p")[-1] == 1.0

    @pytest.mark.asyncio
    async def test_stored_items_are_skipped(self, make_pipeline, downloader, store):
        """Items already in the store are not downloaded again"""
        pipeline = make_pipeline(downloader)
        await pipeline.acquire("p", remote_items("a"), SettledRecorder())
        downloader.calls.clear()

        settled = SettledRecorder()
        stats = await pipeline.acquire("p", remote_items("a", "b"), settled)

        assert downloader.calls == ["b"]
        assert stats.skipped == 1
        assert stats.acquired == 1
        assert sorted(settled.calls) == [(0, "a"), (1, "b")]

    @pytest.mark.asyncio
    async def test_partial_failure(self, make_pipeline, config, store, sink):
        """One failed item doesn't stop the others and progress still completes"""
        downloader = FakeDownloader(config.storage.media_directory, fail_ids={"c"})
        settled = SettledRecorder()

        stats = await make_pipeline(downloader).acquire(
            "p", remote_items("a", "b", "c", "d", "e"), settled
        )

        assert stats.acquired == 4
        assert stats.failed == 1
        assert stats.failed_ids == ["c"]
        assert sorted(settled.calls) == [(0, "a"), (1, "b"), (3, "d"), (4, "e")]
        assert not await store.has_media_item("c")
        assert sink.fractions("p")[-1] == 1.0

    @pytest.mark.asyncio
    async def test_duplicates_acquired_once_last_index_wins(self, make_pipeline, downloader, sink):
        """A repeated id is downloaded once and settled at its last index"""
        settled = SettledRecorder()

        stats = await make_pipeline(downloader, batch_size=2).acquire(
            "p", remote_items("a", "b", "a", "c"), settled
        )

        assert downloader.calls.count("a") == 1
        assert stats.total == 3
        assert sorted(settled.calls) == [(1, "b"), (2, "a"), (3, "c")]
        assert len(sink.fractions("p")) == 4

    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self, make_pipeline, downloader, sink):
        """Progress never decreases and ends exactly at 1.0"""
        await make_pipeline(downloader, batch_size=3).acquire(
            "p", remote_items(*"abcdefgh"), SettledRecorder()
        )

        fractions = sink.fractions("p")
        assert len(fractions) == 8
        assert fractions == sorted(fractions)
        assert fractions[-1] == 1.0

    @pytest.mark.asyncio
    async def test_batches_run_in_sequence(self, make_pipeline, config):
        """No more than batch_size downloads are in flight at once"""

        class CountingDownloader(FakeDownloader):
            def __init__(self, media_root):
                super().__init__(media_root)
                self.active = 0
                self.peak = 0

            async def download(self, item):
                self.active += 1
                self.peak = max(self.peak, self.active)
                await asyncio.sleep(0.01)
                self.active -= 1
                return await super().download(item)

        downloader = CountingDownloader(config.storage.media_directory)
        await make_pipeline(downloader, batch_size=2).acquire(
            "p", remote_items(*"abcde"), SettledRecorder()
        )

        assert downloader.peak == 2
        assert len(downloader.calls) == 5

    @pytest.mark.asyncio
    async def test_local_items(self, make_pipeline, downloader, temp_dir, store):
        """Local items bypass the downloader and need an existing file"""
        present = temp_dir / "here.mp3"
        present.write_bytes(b"x")
        items = [
            MediaItem(id="here.mp3", title="Here", path=str(present),
                      channel="file", source_kind=SourceKind.LOCAL),
            MediaItem(id="gone.mp3", title="Gone", path=str(temp_dir / "gone.mp3"),
                      channel="file", source_kind=SourceKind.LOCAL),
        ]
        settled = SettledRecorder()

        stats = await make_pipeline(downloader).acquire("p", items, settled)

        assert downloader.calls == []
        assert stats.acquired == 1
        assert stats.failed_ids == ["gone.mp3"]
        assert settled.calls == [(0, "here.mp3")]
        assert (await store.get_media_item("here.mp3")).path == str(present)

    @pytest.mark.asyncio
    async def test_empty_item_list(self, make_pipeline, downloader, sink):
        """Nothing to acquire still completes progress"""
        stats = await make_pipeline(downloader).acquire("p", [], SettledRecorder())

        assert stats.total == 0
        assert sink.fractions("p") == [1.0]


class TestAcquisitionStats:
    """Test AcquisitionStats bookkeeping"""

    def test_record_and_success_rate(self):
        """Outcomes are counted per category"""
        stats = AcquisitionStats()
        stats.record("a", Outcome.ACQUIRED)
        stats.record("b", Outcome.SKIPPED)
        stats.record("c", Outcome.FAILED)
        stats.record("d", Outcome.ACQUIRED)

        assert (stats.total, stats.acquired, stats.skipped, stats.failed) == (4, 2, 1, 1)
        assert stats.failed_ids == ["c"]
        assert stats.success_rate == 75.0

    def test_empty_success_rate(self):
        """No items means a 0% rate, not a division error"""
        assert AcquisitionStats().success_rate == 0.0
