"""
Acquisition pipeline for moss-music.

Makes sure every desired media item of one sync has a backing file and a
row in the Global Media Registry, downloading only what is missing.

Workflow (per call to acquire()):
    1. Split the desired items into fixed-size batches
    2. For each batch, settle every item concurrently (asyncio.gather):
       a. Already in the store -> skipped, no download
       b. Local item -> acquired if its file exists
       c. Remote item -> acquired if the downloader reports a destination
       d. Acquired items are upserted into the store, then handed to
          on_settled so the caller can commit membership right away
    3. Sleep batch_delay between batches
    4. After every settled item, report completed / total progress

Failure Handling:
    A failed item is logged to the acquisition failure report and excluded.
    It never aborts the batch or the sync. StoreError is not caught: a store
    that can't be written is fatal for the whole sync.

Duplicates:
    Items sharing an id within one call share a single acquisition, and
    on_settled receives the index of the LAST occurrence.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from moss_music.core.config import AcquisitionConfig
from moss_music.core.database import Store
from moss_music.core.exceptions import AcquisitionError
from moss_music.core.logger import get_logger, log_acquisition_failure
from moss_music.core.models import MediaItem
from moss_music.core.progress import NullProgressSink, ProgressSink
from moss_music.download.downloader import Downloader
from moss_music.utils.async_utils import run_blocking

logger = get_logger(__name__)


# Awaited with (desired-order index, stored item) once an item is in the store
SettledCallback = Callable[[int, MediaItem], Awaitable[None]]


class Outcome(str, Enum):
    ACQUIRED = "acquired"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class AcquisitionStats:
    """
    Statistics from one acquire() call, counted per unique item id.

    Attributes:
        total: Unique item ids handled.
        acquired: Newly downloaded or registered local items.
        skipped: Already present in the store.
        failed: Could not be acquired.
        failed_ids: Ids of the failed items, in settle order.
    """

    total: int = 0
    acquired: int = 0
    skipped: int = 0
    failed: int = 0
    failed_ids: list[str] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Share of handled items now present in the store, as percentage."""
        if self.total == 0:
            return 0.0
        return ((self.acquired + self.skipped) / self.total) * 100

    def record(self, item_id: str, outcome: Outcome) -> None:
        self.total += 1
        if outcome is Outcome.ACQUIRED:
            self.acquired += 1
        elif outcome is Outcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            self.failed_ids.append(item_id)


class AcquisitionPipeline:
    """
    Batched, deduplicating acquisition of media items.

    Attributes:
        _store: Store used for dedup checks and media item upserts.
        _downloader: Downloader for remote items.
        _config: Batch size and inter-batch delay.
        _sink: Receives (playlist_id, fraction) after every settled item.
    """

    def __init__(
        self,
        store: Store,
        downloader: Downloader,
        config: AcquisitionConfig,
        sink: ProgressSink | None = None
    ) -> None:
        self._store = store
        self._downloader = downloader
        self._config = config
        self._sink = sink or NullProgressSink()

    async def acquire(
        self,
        playlist_id: str,
        items: Sequence[MediaItem],
        on_settled: SettledCallback
    ) -> AcquisitionStats:
        """
        Acquire every item of one playlist in desired order.

        Args:
            playlist_id: Playlist being synced (progress and failure logs).
            items: Desired items in order; the index of an item in this
                   sequence is its desired membership position.
            on_settled: Awaited once per unique id that ends up in the store.

        Returns:
            AcquisitionStats for this call.

        Raises:
            StoreError: If the store can't be read or written.
        """
        stats = AcquisitionStats()
        total = len(items)
        if total == 0:
            self._sink.on_progress(playlist_id, 1.0)
            return stats

        final_index = {item.id: index for index, item in enumerate(items)}
        in_flight: dict[str, asyncio.Task] = {}
        completed = 0

        async def settle(item: MediaItem) -> None:
            nonlocal completed

            task = in_flight.get(item.id)
            owner = task is None
            if owner:
                task = asyncio.ensure_future(self._obtain(playlist_id, item))
                in_flight[item.id] = task

            outcome, stored = await task

            if owner:
                stats.record(item.id, outcome)
                if stored is not None:
                    await on_settled(final_index[item.id], stored)

            completed += 1
            self._sink.on_progress(playlist_id, completed / total)

        batch_size = self._config.batch_size
        logger.debug(f"Acquiring {total} items for {playlist_id} in batches of {batch_size}")

        for start in range(0, total, batch_size):
            batch = items[start:start + batch_size]
            await asyncio.gather(*(settle(item) for item in batch))

            if start + batch_size < total and self._config.batch_delay > 0:
                await asyncio.sleep(self._config.batch_delay)

        logger.info(
            f"Acquisition complete for {playlist_id}: {stats.acquired} acquired, "
            f"{stats.skipped} already stored, {stats.failed} failed"
        )
        return stats

    async def _obtain(
        self, playlist_id: str, item: MediaItem
    ) -> tuple[Outcome, MediaItem | None]:
        existing = await self._store.get_media_item(item.id)
        if existing is not None:
            logger.debug(f"Already stored: {item.id}")
            return Outcome.SKIPPED, existing

        try:
            acquired = await self._fetch(item)
        except AcquisitionError as e:
            log_acquisition_failure(logger, item.id, item.title, playlist_id, e.message)
            return Outcome.FAILED, None

        await self._store.upsert_media_item(acquired)
        return Outcome.ACQUIRED, acquired

    async def _fetch(self, item: MediaItem) -> MediaItem:
        """
        Produce a stored-ready copy of item.

        Raises:
            AcquisitionError: If the item's file can't be obtained.
        """
        if item.is_local:
            if not item.path or not await run_blocking(Path(item.path).is_file):
                raise AcquisitionError(
                    f"Local file not found: {item.path}",
                    details={"item_id": item.id, "path": item.path}
                )
            return item

        acquired = await self._downloader.download(item)
        if acquired is None:
            raise AcquisitionError(
                "Downloader reported no output file",
                details={"item_id": item.id}
            )
        return acquired
