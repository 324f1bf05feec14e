"""
moss-music: Sync playlists into a deduplicated local media library.

A playlist is either remote (resolved from a media catalog by an external
resolver process, yt-dlp by default) or local (an M3U manifest on disk).
Every media item is downloaded or registered once and shared by every
playlist that references it.

Architecture:
    A sync call walks one state machine:

    RESOLVING (catalog/): Build a playlist descriptor
        - Parse a local M3U manifest, or
        - Run the external resolver and normalize its JSON output

    DIFFING (sync/): Compare with stored membership
        - Upsert the playlist row (new playlists go last)
        - Drop membership of items that left the playlist

    ACQUIRING (download/): Fill the gaps
        - Skip items already in the store
        - Download missing remote items in small concurrent batches
        - Register local items whose file exists

    COMMITTING (sync/): Store each item's position as it settles

Modules:
    core/       - Configuration, store, logging, models, progress, exceptions
    catalog/    - Manifest parser and resolver adapter
    download/   - Downloader and acquisition pipeline
    sync/       - Reconciliation engine
    utils/      - Path and bucket helpers, blocking-call executor
    cli.py      - Command-line interface

Usage:
    Command Line:
        moss sync "https://www.youtube.com/playlist?list=PL..."
        moss sync ./mixes/road-trip.m3u
        moss sync --all
        moss remove PL123

    Python API:
        from moss_music import SyncEngine, Store, load_config, setup_logging

        config = load_config()
        setup_logging(config.storage.data_directory)
        store = Store.open(config.storage.database_path, config.storage.media_directory)

        engine = SyncEngine.from_config(config, store)
        result = await engine.sync_playlist("PL123")

Dependencies:
    - yt-dlp: Playlist resolution and audio download (external executable)
    - rich-click: CLI colors
    - rich: Progress bars
    - tqdm: Progress-safe console logging
    - pyyaml: Configuration file parsing
"""

__version__ = "0.3.0"
__license__ = "MIT"

# Convenience imports for common usage
from moss_music.core import (
    Config,
    ConfigError,
    MediaItem,
    MossMusicError,
    ParseError,
    Playlist,
    PlaylistDescriptor,
    ResolutionError,
    Store,
    StoreError,
    get_logger,
    load_config,
    setup_logging,
)
from moss_music.sync import SyncEngine, SyncResult

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "Store",
    "setup_logging",
    "get_logger",
    # Exceptions
    "MossMusicError",
    "ConfigError",
    "StoreError",
    "ParseError",
    "ResolutionError",
    # Models
    "MediaItem",
    "Playlist",
    "PlaylistDescriptor",
    # Engine
    "SyncEngine",
    "SyncResult",
]
