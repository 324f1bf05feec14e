"""
Core module for moss-music.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - database: SQLite store with the global media registry
    - logger: Logging system with multiple outputs
    - models: Playlist and media item dataclasses
    - progress: Progress sink interface and rich progress bars

Usage:
    from moss_music.core import (
        Config, load_config,
        Store,
        setup_logging, get_logger,
        MossMusicError, ConfigError, StoreError
    )
"""

from moss_music.core.config import (
    AcquisitionConfig,
    Config,
    DownloaderConfig,
    ResolverConfig,
    StorageConfig,
    default_config,
    load_config,
)
from moss_music.core.database import Store
from moss_music.core.exceptions import (
    AcquisitionError,
    ConfigError,
    MossMusicError,
    ParseError,
    PlaylistNotFoundError,
    ResolutionError,
    StoreError,
)
from moss_music.core.logger import (
    get_logger,
    log_acquisition_failure,
    setup_logging,
    shutdown_logging,
)
from moss_music.core.models import (
    MediaItem,
    Playlist,
    PlaylistDescriptor,
    PlaylistItem,
    SourceKind,
)
from moss_music.core.progress import NullProgressSink, ProgressSink, SyncProgressBar

__all__ = [
    # Config
    "Config",
    "StorageConfig",
    "ResolverConfig",
    "DownloaderConfig",
    "AcquisitionConfig",
    "default_config",
    "load_config",
    # Store
    "Store",
    # Exceptions
    "MossMusicError",
    "ConfigError",
    "StoreError",
    "PlaylistNotFoundError",
    "ParseError",
    "ResolutionError",
    "AcquisitionError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_acquisition_failure",
    "shutdown_logging",
    # Models
    "MediaItem",
    "Playlist",
    "PlaylistDescriptor",
    "PlaylistItem",
    "SourceKind",
    # Progress
    "ProgressSink",
    "NullProgressSink",
    "SyncProgressBar",
]
