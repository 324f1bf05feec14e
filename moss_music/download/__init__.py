"""
Download module for moss-music.

This module provides:
    - Downloader: Runs the external downloader for one remote media item
    - AcquisitionPipeline: Batched, deduplicating acquisition with progress

Architecture:
    Media files are stored ONCE under the media root, bucketed by the first
    character of the item id. The same item in several playlists is one file
    and one store row, referenced by several membership rows.

Usage:
    from moss_music.download import AcquisitionPipeline, Downloader

    downloader = Downloader(config.downloader, config.storage.media_directory)
    pipeline = AcquisitionPipeline(store, downloader, config.acquisition, sink)
    stats = await pipeline.acquire(playlist_id, items, on_settled)
"""

from moss_music.download.downloader import Downloader, parse_destination_line
from moss_music.download.pipeline import (
    AcquisitionPipeline,
    AcquisitionStats,
    Outcome,
    SettledCallback,
)

__all__ = [
    "Downloader",
    "parse_destination_line",
    "AcquisitionPipeline",
    "AcquisitionStats",
    "Outcome",
    "SettledCallback",
]
