"""
SQLite store for moss-music.

This module uses a Global Media Registry pattern: each unique media item is
stored once in `media_items`, and linked to playlists via `playlist_items`.

Schema:
    playlists:       Playlist rows (id, title, position, source)
    media_items:     One row per unique item id (title, path, channel, source_kind)
    playlist_items:  Membership (playlist_id, media_item_id, position)

Invariants:
    - playlists.position is dense and zero-based at rest: {0, ..., N-1}
    - playlist_items rows cascade away with their playlist or media item
    - a media item with no playlist_items rows is an orphan; the sweep
      deletes its row, and its file only when the file is under media_root

Concurrency:
    The store owns one shared connection, guarded by a lock. The public API
    is async; each method runs its synchronous twin through run_blocking so
    the event loop stays free while SQLite works. Each method is its own
    transaction; nothing spans a whole sync call. An item's media row and
    its membership row are written by separate calls, so a sweep running in
    between (prune, remove_playlist) can delete the fresh row and its file;
    the membership insert then fails its foreign key and the sync raises
    StoreError.

Usage:
    store = Store.open(data_dir / "database.db", media_root=data_dir / "songs")

    await store.upsert_playlist("PL123", "Road Trip", source="PL123")
    await store.upsert_media_item(item)
    await store.upsert_membership("PL123", item.id, 0)

    for row in await store.list_items("PL123"):
        print(row.position, row.title)
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Literal

from moss_music.core.exceptions import PlaylistNotFoundError, StoreError
from moss_music.core.logger import get_logger
from moss_music.core.models import MediaItem, Playlist, PlaylistItem, SourceKind
from moss_music.utils import is_under_directory
from moss_music.utils.async_utils import run_blocking

logger = get_logger(__name__)


DATABASE_VERSION = 1

# Sentinel returned by get_max_position() on an empty table, so +1 gives 0
EMPTY_MAX_POSITION = -1

UpsertOutcome = Literal["created", "renamed", "unchanged"]


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS playlists (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    position INTEGER NOT NULL,
    source TEXT
);

CREATE TABLE IF NOT EXISTS media_items (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    path TEXT NOT NULL CHECK (path <> ''),
    channel TEXT NOT NULL,
    source_kind TEXT NOT NULL CHECK (source_kind IN ('remote', 'local'))
);

CREATE TABLE IF NOT EXISTS playlist_items (
    playlist_id TEXT NOT NULL,
    media_item_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    FOREIGN KEY (playlist_id) REFERENCES playlists(id) ON DELETE CASCADE,
    FOREIGN KEY (media_item_id) REFERENCES media_items(id) ON DELETE CASCADE,
    PRIMARY KEY (playlist_id, media_item_id)
);

CREATE INDEX IF NOT EXISTS idx_playlists_position ON playlists(position);
CREATE INDEX IF NOT EXISTS idx_playlist_items_item ON playlist_items(media_item_id);
"""


def connect(db_path: Path) -> sqlite3.Connection:
    """
    Open a connection configured for the store.

    The connection is shared by the IO executor threads, so same-thread
    checking is off; the Store serializes access with its own lock.
    """
    try:
        conn = sqlite3.connect(str(db_path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.Error as e:
        raise StoreError(
            f"Failed to open database: {e}",
            details={"path": str(db_path), "original_error": str(e)}
        ) from e
    return conn


class Store:
    """
    SQLite store with Global Media Registry and async wrappers.

    Attributes:
        media_root: Managed media directory. Only files under it are ever
                    deleted by sweep_orphans().
    """

    def __init__(self, connection: sqlite3.Connection, media_root: Path) -> None:
        self._conn = connection
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self.media_root = Path(media_root)

        with self._transaction("initialize") as conn:
            conn.execute("PRAGMA foreign_keys = ON")
            conn.executescript(_SCHEMA_SQL)

            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,)
                )
            elif row[0] != DATABASE_VERSION:
                raise StoreError(
                    f"Database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                    details={"expected": DATABASE_VERSION, "actual": row[0]}
                )

    @classmethod
    def open(cls, db_path: Path, media_root: Path) -> "Store":
        """Create the parent directory, connect and initialize the schema."""
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return cls(connect(db_path), media_root)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    @contextmanager
    def _transaction(self, operation: str) -> Generator[sqlite3.Connection, None, None]:
        """
        Run one locked unit of work and commit it.

        sqlite3.Error is rolled back and re-raised as StoreError.
        """
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StoreError(
                    f"Store operation '{operation}' failed: {e}",
                    details={"operation": operation, "original_error": str(e)}
                ) from e
            except BaseException:
                self._conn.rollback()
                raise

    # =========================================================================
    # Async API
    # =========================================================================

    async def list_playlists(self) -> list[Playlist]:
        return await run_blocking(self._list_playlists_sync)

    async def get_playlist(self, playlist_id: str) -> Playlist | None:
        return await run_blocking(self._get_playlist_sync, playlist_id)

    async def get_max_position(self) -> int:
        return await run_blocking(self._get_max_position_sync)

    async def upsert_playlist(
        self, playlist_id: str, title: str, source: str | None = None
    ) -> UpsertOutcome:
        return await run_blocking(self._upsert_playlist_sync, playlist_id, title, source)

    async def swap_playlist_positions(self, playlist_id_a: str, playlist_id_b: str) -> None:
        await run_blocking(self._swap_playlist_positions_sync, playlist_id_a, playlist_id_b)

    async def delete_playlist(self, playlist_id: str) -> Playlist:
        return await run_blocking(self._delete_playlist_sync, playlist_id)

    async def get_member_ids(self, playlist_id: str) -> list[str]:
        return await run_blocking(self._get_member_ids_sync, playlist_id)

    async def list_items(self, playlist_id: str) -> list[PlaylistItem]:
        return await run_blocking(self._list_items_sync, playlist_id)

    async def get_media_item(self, item_id: str) -> MediaItem | None:
        return await run_blocking(self._get_media_item_sync, item_id)

    async def has_media_item(self, item_id: str) -> bool:
        return await run_blocking(self._get_media_item_sync, item_id) is not None

    async def upsert_media_item(self, item: MediaItem) -> None:
        await run_blocking(self._upsert_media_item_sync, item)

    async def upsert_membership(self, playlist_id: str, item_id: str, position: int) -> None:
        await run_blocking(self._upsert_membership_sync, playlist_id, item_id, position)

    async def delete_membership(self, playlist_id: str, item_id: str) -> bool:
        return await run_blocking(self._delete_membership_sync, playlist_id, item_id)

    async def sweep_orphans(self) -> list[MediaItem]:
        orphans = await run_blocking(self._delete_orphan_rows_sync)
        if orphans:
            await run_blocking(self._delete_orphan_files_sync, orphans)
        return orphans

    async def get_global_stats(self) -> dict[str, float]:
        return await run_blocking(self._get_global_stats_sync)

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    def _list_playlists_sync(self) -> list[Playlist]:
        with self._transaction("list_playlists") as conn:
            rows = conn.execute(
                "SELECT id, title, position, source FROM playlists ORDER BY position"
            ).fetchall()
        return [_row_to_playlist(row) for row in rows]

    def _get_playlist_sync(self, playlist_id: str) -> Playlist | None:
        with self._transaction("get_playlist") as conn:
            row = conn.execute(
                "SELECT id, title, position, source FROM playlists WHERE id = ?",
                (playlist_id,)
            ).fetchone()
        return _row_to_playlist(row) if row else None

    def _get_max_position_sync(self) -> int:
        with self._transaction("get_max_position") as conn:
            row = conn.execute("SELECT MAX(position) FROM playlists").fetchone()
        return row[0] if row[0] is not None else EMPTY_MAX_POSITION

    def _upsert_playlist_sync(
        self, playlist_id: str, title: str, source: str | None
    ) -> UpsertOutcome:
        """
        Insert a new playlist at the end, or rename an existing one.

        The end position is computed inside the INSERT so two concurrent
        syncs of new playlists can't both take the same slot. An existing
        row never has its position touched.
        """
        with self._transaction("upsert_playlist") as conn:
            row = conn.execute(
                "SELECT title FROM playlists WHERE id = ?", (playlist_id,)
            ).fetchone()

            if row is None:
                conn.execute(
                    """
                    INSERT INTO playlists (id, title, position, source)
                    VALUES (?, ?, (SELECT COALESCE(MAX(position), ?) + 1 FROM playlists), ?)
                    """,
                    (playlist_id, title, EMPTY_MAX_POSITION, source)
                )
                return "created"

            if source is not None:
                conn.execute(
                    "UPDATE playlists SET source = ? WHERE id = ?", (source, playlist_id)
                )

            if row["title"] != title:
                conn.execute(
                    "UPDATE playlists SET title = ? WHERE id = ?", (title, playlist_id)
                )
                return "renamed"

            return "unchanged"

    def _swap_playlist_positions_sync(self, playlist_id_a: str, playlist_id_b: str) -> None:
        """Exchange two playlists' positions in a single transaction."""
        with self._transaction("swap_playlist_positions") as conn:
            position_a = _require_position(conn, playlist_id_a)
            position_b = _require_position(conn, playlist_id_b)
            conn.executemany(
                "UPDATE playlists SET position = ? WHERE id = ?",
                [(position_b, playlist_id_a), (position_a, playlist_id_b)]
            )

    def _delete_playlist_sync(self, playlist_id: str) -> Playlist:
        """
        Delete a playlist and close the gap it leaves in the ordering.

        Membership rows go with it through the foreign-key cascade. Orphaned
        media items are left for sweep_orphans().
        """
        with self._transaction("delete_playlist") as conn:
            row = conn.execute(
                "SELECT id, title, position, source FROM playlists WHERE id = ?",
                (playlist_id,)
            ).fetchone()
            if row is None:
                raise PlaylistNotFoundError(
                    "Playlist not found in database",
                    details={"playlist_id": playlist_id}
                )

            conn.execute("DELETE FROM playlists WHERE id = ?", (playlist_id,))
            conn.execute(
                "UPDATE playlists SET position = position - 1 WHERE position > ?",
                (row["position"],)
            )

        logger.debug(f"Playlist deleted: {playlist_id}")
        return _row_to_playlist(row)

    # =========================================================================
    # Membership
    # =========================================================================

    def _get_member_ids_sync(self, playlist_id: str) -> list[str]:
        with self._transaction("get_member_ids") as conn:
            rows = conn.execute(
                """
                SELECT media_item_id FROM playlist_items
                WHERE playlist_id = ?
                ORDER BY position
                """,
                (playlist_id,)
            ).fetchall()
        return [row[0] for row in rows]

    def _list_items_sync(self, playlist_id: str) -> list[PlaylistItem]:
        with self._transaction("list_items") as conn:
            rows = conn.execute(
                """
                SELECT m.id, m.title, m.path, m.channel, m.source_kind, pi.position
                FROM media_items m
                JOIN playlist_items pi ON m.id = pi.media_item_id
                WHERE pi.playlist_id = ?
                ORDER BY pi.position
                """,
                (playlist_id,)
            ).fetchall()
        return [
            PlaylistItem(
                id=row["id"],
                title=row["title"],
                path=row["path"],
                channel=row["channel"],
                source_kind=SourceKind(row["source_kind"]),
                position=row["position"],
            )
            for row in rows
        ]

    def _upsert_membership_sync(self, playlist_id: str, item_id: str, position: int) -> None:
        with self._transaction("upsert_membership") as conn:
            conn.execute(
                """
                INSERT INTO playlist_items (playlist_id, media_item_id, position)
                VALUES (?, ?, ?)
                ON CONFLICT(playlist_id, media_item_id) DO UPDATE SET
                    position = excluded.position
                """,
                (playlist_id, item_id, position)
            )

    def _delete_membership_sync(self, playlist_id: str, item_id: str) -> bool:
        with self._transaction("delete_membership") as conn:
            cursor = conn.execute(
                "DELETE FROM playlist_items WHERE playlist_id = ? AND media_item_id = ?",
                (playlist_id, item_id)
            )
        return cursor.rowcount > 0

    # =========================================================================
    # Global Media Registry
    # =========================================================================

    def _get_media_item_sync(self, item_id: str) -> MediaItem | None:
        with self._transaction("get_media_item") as conn:
            row = conn.execute(
                "SELECT id, title, path, channel, source_kind FROM media_items WHERE id = ?",
                (item_id,)
            ).fetchone()
        return _row_to_media_item(row) if row else None

    def _upsert_media_item_sync(self, item: MediaItem) -> None:
        if not item.path:
            raise ValueError(f"Media item {item.id!r} has no path")

        with self._transaction("upsert_media_item") as conn:
            conn.execute(
                """
                INSERT INTO media_items (id, title, path, channel, source_kind)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    path = excluded.path,
                    channel = excluded.channel,
                    source_kind = excluded.source_kind
                """,
                (item.id, item.title, item.path, item.channel, item.source_kind.value)
            )

    def _delete_orphan_rows_sync(self) -> list[MediaItem]:
        """
        Collect every orphaned media item, then delete them all at once.

        Both statements run in the same locked transaction, so the deleted
        set is exactly the returned set.
        """
        with self._transaction("sweep_orphans") as conn:
            rows = conn.execute(
                """
                SELECT id, title, path, channel, source_kind FROM media_items
                WHERE id NOT IN (SELECT media_item_id FROM playlist_items)
                """
            ).fetchall()
            if rows:
                conn.execute(
                    """
                    DELETE FROM media_items
                    WHERE id NOT IN (SELECT media_item_id FROM playlist_items)
                    """
                )
        orphans = [_row_to_media_item(row) for row in rows]
        if orphans:
            logger.info(f"Deleted {len(orphans)} unreferenced item(s) from database")
        return orphans

    def _delete_orphan_files_sync(self, orphans: list[MediaItem]) -> None:
        for item in orphans:
            if not is_under_directory(item.path, self.media_root):
                logger.debug(f"Keeping file outside media root: {item.path}")
                continue
            try:
                Path(item.path).unlink(missing_ok=True)
                logger.debug(f"Deleted media file: {item.path}")
            except OSError as e:
                logger.error(f"Error deleting media file {item.path}: {e}")

    # =========================================================================
    # Statistics
    # =========================================================================

    def _get_global_stats_sync(self) -> dict[str, float]:
        """
        Count playlists, unique items and membership links.

        deduplication_ratio is links per unique item: 2.0 means every file
        on disk is shared by two playlists on average.
        """
        with self._transaction("get_global_stats") as conn:
            playlists = conn.execute("SELECT COUNT(*) FROM playlists").fetchone()[0]
            items = conn.execute("SELECT COUNT(*) FROM media_items").fetchone()[0]
            local_items = conn.execute(
                "SELECT COUNT(*) FROM media_items WHERE source_kind = 'local'"
            ).fetchone()[0]
            links = conn.execute("SELECT COUNT(*) FROM playlist_items").fetchone()[0]

        return {
            "playlists": playlists,
            "media_items": items,
            "local_items": local_items,
            "playlist_item_links": links,
            "deduplication_ratio": round(links / items, 2) if items else 0.0,
        }


def _require_position(conn: sqlite3.Connection, playlist_id: str) -> int:
    row = conn.execute(
        "SELECT position FROM playlists WHERE id = ?", (playlist_id,)
    ).fetchone()
    if row is None:
        raise PlaylistNotFoundError(
            "Playlist not found in database",
            details={"playlist_id": playlist_id}
        )
    return row[0]


def _row_to_playlist(row: sqlite3.Row) -> Playlist:
    return Playlist(
        id=row["id"],
        title=row["title"],
        position=row["position"],
        source=row["source"],
    )


def _row_to_media_item(row: sqlite3.Row) -> MediaItem:
    return MediaItem(
        id=row["id"],
        title=row["title"],
        path=row["path"],
        channel=row["channel"],
        source_kind=SourceKind(row["source_kind"]),
    )
