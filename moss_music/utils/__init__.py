"""
Utility functions for moss-music.

This module provides small helpers shared across the application:
    - Media bucket naming and directory layout
    - Reference classification (local manifest vs remote playlist)
    - Path containment checks used by the orphan sweep

Usage:
    from moss_music.utils import (
        bucket_for_item_id,
        ensure_directory,
        is_manifest_reference,
    )
"""

import string
from pathlib import Path

# One bucket per lowercase letter and digit, plus the catch-all
BUCKET_CHARACTERS = string.ascii_lowercase + string.digits + "_"
CATCH_ALL_BUCKET = "_"

MANIFEST_EXTENSIONS = (".m3u", ".m3u8")


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Path to the directory.

    Returns:
        The same path (for chaining).

    Raises:
        OSError: If directory cannot be created (permissions, etc.)
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def bucket_for_item_id(item_id: str) -> str:
    """
    Return the media bucket name for an item id.

    The bucket is the lowercased first character of the id when it is an
    ASCII letter, digit or underscore, and the catch-all bucket otherwise.

    Examples:
        bucket_for_item_id("dQw4w9WgXcQ")  # "d"
        bucket_for_item_id("9bZkp7q19f0")  # "9"
        bucket_for_item_id("-abc")         # "_"
        bucket_for_item_id("")             # "_"
    """
    if not item_id:
        return CATCH_ALL_BUCKET
    first = item_id[0].lower()
    return first if first in BUCKET_CHARACTERS else CATCH_ALL_BUCKET


def prepare_media_layout(media_root: Path, files_root: Path) -> None:
    """Create every bucket directory under media_root, plus files_root."""
    for bucket in BUCKET_CHARACTERS:
        ensure_directory(media_root / bucket)
    ensure_directory(files_root)


def is_manifest_reference(reference: str) -> bool:
    """
    Tell whether a sync reference names a local M3U manifest.

    A reference is a manifest when it has a manifest extension and either
    exists on disk or is written as an explicit absolute or relative path.

    Examples:
        is_manifest_reference("./road trip.m3u")        # True
        is_manifest_reference("/music/mix.M3U8")        # True
        is_manifest_reference("PLrAXtmErZgOeiKm4sgNOkn") # False
    """
    if not reference.lower().endswith(MANIFEST_EXTENSIONS):
        return False

    if reference.startswith(("/", "./", "../")):
        return True

    path = Path(reference).expanduser()
    return path.exists() or path.resolve().exists()


def is_under_directory(path: Path | str, directory: Path) -> bool:
    """
    Check whether path lies inside directory (after resolving both).

    Used to make sure the orphan sweep never deletes files outside the
    managed media root, such as locally-sourced files.
    """
    try:
        return Path(path).resolve().is_relative_to(directory.resolve())
    except (OSError, ValueError):
        return False
