"""
Playlist reconciliation engine for moss-music.

SyncEngine is the entry point the presentation layer talks to. Every sync
call walks the same state machine:

    RESOLVING -> DIFFING -> ACQUIRING -> COMMITTING -> DONE
        |
        +-> FAILED (resolution error, raised to the caller, nothing written)

RESOLVING:   Build a PlaylistDescriptor from a local manifest or from the
             external resolver.
DIFFING:     Load current membership, compute the ids to remove, upsert the
             playlist row (new rows go to the end, existing rows only get
             their title refreshed).
ACQUIRING:   Hand every desired item to the acquisition pipeline.
COMMITTING:  Membership is committed per item as items settle, at the
             item's index in the desired order. Stale rows are dropped first.

Known Behavior:
    An item that fails acquisition leaves a gap at its index. Positions are
    the desired-order slots, never renumbered, so a playlist may read
    0, 1, 3, 4 after one failure and heal on the next successful sync.

Usage:
    store = Store.open(config.storage.database_path, config.storage.media_directory)
    engine = SyncEngine.from_config(config, store, sink=SyncProgressBar())

    result = await engine.sync_playlist("https://www.youtube.com/playlist?list=PL123")
    result = await engine.sync_playlist("./mixes/road trip.m3u")
    await engine.remove_playlist(result.playlist_id)
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from moss_music.catalog.manifest import parse_manifest
from moss_music.catalog.resolver import CatalogResolver
from moss_music.core.config import Config, StorageConfig
from moss_music.core.database import Store, UpsertOutcome
from moss_music.core.exceptions import (
    MossMusicError,
    ParseError,
    PlaylistNotFoundError,
    ResolutionError,
)
from moss_music.core.logger import get_logger
from moss_music.core.models import MediaItem, Playlist, PlaylistDescriptor, PlaylistItem
from moss_music.core.progress import NullProgressSink, ProgressSink
from moss_music.download.downloader import Downloader
from moss_music.download.pipeline import AcquisitionPipeline
from moss_music.utils import is_manifest_reference, prepare_media_layout
from moss_music.utils.async_utils import run_blocking

logger = get_logger(__name__)


class SyncState(str, Enum):
    RESOLVING = "resolving"
    DIFFING = "diffing"
    ACQUIRING = "acquiring"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


class PlaylistResolver(Protocol):
    async def resolve(self, reference: str) -> PlaylistDescriptor:
        ...


class MediaDownloader(Protocol):
    async def download(self, item: MediaItem) -> MediaItem | None:
        ...


@dataclass
class SyncResult:
    """
    Outcome of one sync_playlist() call.

    Attributes:
        playlist_id: Stable playlist id.
        title: Playlist title after this sync.
        outcome: What happened to the playlist row ("created", "renamed",
                 "unchanged").
        desired: Number of entries in the resolved playlist (duplicates included).
        acquired: Newly downloaded or registered items.
        skipped: Items already in the store.
        failed: Items that could not be acquired (left as position gaps).
        removed: Membership rows dropped because the item left the playlist.
        failed_ids: Ids of the failed items.
        state: Final state, DONE for every returned result.
    """
    playlist_id: str
    title: str
    outcome: UpsertOutcome
    desired: int = 0
    acquired: int = 0
    skipped: int = 0
    failed: int = 0
    removed: int = 0
    failed_ids: list[str] = field(default_factory=list)
    state: SyncState = SyncState.DONE


@dataclass
class RemovalResult:
    """A removed playlist and the orphaned media items swept after it."""
    playlist: Playlist
    swept: list[MediaItem] = field(default_factory=list)


@dataclass
class SyncAllResult:
    """
    Outcome of sync_all().

    Attributes:
        results: One SyncResult per playlist that synced.
        errors: Playlist id -> error for playlists whose sync failed.
        skipped: Ids of playlists with no stored source to sync from.
    """
    results: list[SyncResult] = field(default_factory=list)
    errors: dict[str, MossMusicError] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)


class SyncEngine:
    """
    Reconciles playlists against the store and drives acquisition.

    The engine keeps no state between calls; everything durable lives in
    the store. Two syncs of different playlists may run concurrently.
    """

    def __init__(
        self,
        store: Store,
        resolver: PlaylistResolver,
        downloader: MediaDownloader,
        config: Config,
        sink: ProgressSink | None = None
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._storage: StorageConfig = config.storage
        self._sink = sink or NullProgressSink()
        self._pipeline = AcquisitionPipeline(
            store, downloader, config.acquisition, self._sink
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        store: Store,
        sink: ProgressSink | None = None
    ) -> "SyncEngine":
        """Build an engine wired to the configured external tools."""
        return cls(
            store=store,
            resolver=CatalogResolver(config.resolver, config.storage.files_directory),
            downloader=Downloader(config.downloader, config.storage.media_directory),
            config=config,
            sink=sink,
        )

    # =========================================================================
    # Sync
    # =========================================================================

    async def sync_playlist(self, reference: str) -> SyncResult:
        """
        Bring one playlist in line with its source.

        Args:
            reference: Playlist URL, bare catalog id, or path to a manifest.

        Returns:
            SyncResult with per-item counts.

        Raises:
            ParseError: If the manifest can't be parsed (nothing written).
            ResolutionError: If the resolver fails (nothing written).
            StoreError: If the store can't be written. Earlier writes stay.
        """
        self._enter(reference, SyncState.RESOLVING)
        try:
            descriptor, source = await self._resolve(reference)
        except (ParseError, ResolutionError) as e:
            self._enter(reference, SyncState.FAILED)
            logger.error(f"Could not resolve '{reference}': {e.message}")
            raise

        playlist_id = descriptor.id
        await run_blocking(
            prepare_media_layout,
            self._storage.media_directory,
            self._storage.files_directory,
        )

        self._enter(playlist_id, SyncState.DIFFING)
        current_ids = await self._store.get_member_ids(playlist_id)
        desired_ids = set(descriptor.item_ids)
        to_remove = [item_id for item_id in current_ids if item_id not in desired_ids]

        outcome = await self._store.upsert_playlist(playlist_id, descriptor.title, source)
        if outcome == "created":
            logger.info(f"New playlist '{descriptor.title}' ({playlist_id})")
        elif outcome == "renamed":
            logger.info(f"Playlist {playlist_id} renamed to '{descriptor.title}'")

        for item_id in to_remove:
            await self._store.delete_membership(playlist_id, item_id)
        if to_remove:
            logger.info(f"Removed {len(to_remove)} item(s) from '{descriptor.title}'")

        self._enter(playlist_id, SyncState.ACQUIRING)
        self._sink.on_progress(playlist_id, 0.0)

        async def commit_membership(index: int, item: MediaItem) -> None:
            await self._store.upsert_membership(playlist_id, item.id, index)

        stats = await self._pipeline.acquire(playlist_id, descriptor.items, commit_membership)

        # Membership was committed item by item during acquisition
        self._enter(playlist_id, SyncState.COMMITTING)
        self._enter(playlist_id, SyncState.DONE)

        if stats.failed:
            logger.warning(
                f"'{descriptor.title}': {stats.failed} item(s) could not be acquired "
                "and are missing from the playlist"
            )

        return SyncResult(
            playlist_id=playlist_id,
            title=descriptor.title,
            outcome=outcome,
            desired=len(descriptor.items),
            acquired=stats.acquired,
            skipped=stats.skipped,
            failed=stats.failed,
            removed=len(to_remove),
            failed_ids=list(stats.failed_ids),
        )

    async def sync_all(self) -> SyncAllResult:
        """
        Re-sync every stored playlist from its recorded source.

        Playlists are synced one after another in position order. A parse or
        resolution failure is recorded and the next playlist is tried;
        StoreError still aborts the whole run.
        """
        summary = SyncAllResult()

        for playlist in await self._store.list_playlists():
            if not playlist.source:
                logger.warning(f"No source recorded for '{playlist.title}', skipping")
                summary.skipped.append(playlist.id)
                continue

            try:
                summary.results.append(await self.sync_playlist(playlist.source))
            except (ParseError, ResolutionError) as e:
                summary.errors[playlist.id] = e

        logger.info(
            f"Synced {len(summary.results)} playlist(s), "
            f"{len(summary.errors)} failed, {len(summary.skipped)} skipped"
        )
        return summary

    async def _resolve(self, reference: str) -> tuple[PlaylistDescriptor, str]:
        """Return the descriptor and the source to record for re-syncs."""
        if is_manifest_reference(reference):
            manifest_path = Path(reference).expanduser().resolve()
            descriptor = await run_blocking(parse_manifest, manifest_path)
            return descriptor, str(manifest_path)

        return await self._resolver.resolve(reference), reference

    def _enter(self, playlist_id: str, state: SyncState) -> None:
        logger.debug(f"[{playlist_id}] {state.value}")

    # =========================================================================
    # Playlist management
    # =========================================================================

    async def remove_playlist(self, playlist_id: str) -> RemovalResult:
        """
        Delete a playlist, close the position gap and sweep orphans.

        Items still referenced by another playlist survive. Files are only
        deleted when they live under the managed media root.

        Raises:
            PlaylistNotFoundError: If playlist_id is unknown.
        """
        playlist = await self._store.delete_playlist(playlist_id)
        swept = await self._store.sweep_orphans()
        logger.info(
            f"Removed playlist '{playlist.title}' and {len(swept)} unreferenced item(s)"
        )
        return RemovalResult(playlist=playlist, swept=swept)

    async def list_playlists(self) -> list[Playlist]:
        return await self._store.list_playlists()

    async def list_items(self, playlist_id: str) -> list[PlaylistItem]:
        """
        Items of one playlist ordered by membership position.

        Raises:
            PlaylistNotFoundError: If playlist_id is unknown.
        """
        if await self._store.get_playlist(playlist_id) is None:
            raise PlaylistNotFoundError(
                "Playlist not found in database",
                details={"playlist_id": playlist_id}
            )
        return await self._store.list_items(playlist_id)

    async def reorder_playlists(self, playlist_id_a: str, playlist_id_b: str) -> None:
        """Swap the positions of two playlists atomically."""
        await self._store.swap_playlist_positions(playlist_id_a, playlist_id_b)
        logger.debug(f"Swapped playlist positions: {playlist_id_a} <-> {playlist_id_b}")

    async def prune(self) -> list[MediaItem]:
        """Run the orphan sweep on demand."""
        return await self._store.sweep_orphans()

    async def stats(self) -> dict[str, float]:
        return await self._store.get_global_stats()
