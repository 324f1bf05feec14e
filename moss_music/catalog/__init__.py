"""
Catalog module for moss-music.

Turns a sync reference into a PlaylistDescriptor:
    - manifest: Local M3U manifests
    - resolver: Remote playlists through the external resolver process

Usage:
    from moss_music.catalog import CatalogResolver, parse_manifest
"""

from moss_music.catalog.manifest import parse_manifest
from moss_music.catalog.resolver import (
    CatalogResolver,
    normalize_channel,
    normalize_playlist_title,
    normalize_title,
)

__all__ = [
    "parse_manifest",
    "CatalogResolver",
    "normalize_title",
    "normalize_channel",
    "normalize_playlist_title",
]
