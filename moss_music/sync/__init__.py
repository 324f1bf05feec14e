"""
Sync module for moss-music.

Usage:
    from moss_music.sync import SyncEngine

    engine = SyncEngine.from_config(config, store, sink)
    result = await engine.sync_playlist(reference)
"""

from moss_music.sync.engine import (
    RemovalResult,
    SyncAllResult,
    SyncEngine,
    SyncResult,
    SyncState,
)

__all__ = [
    "SyncEngine",
    "SyncResult",
    "SyncAllResult",
    "RemovalResult",
    "SyncState",
]
