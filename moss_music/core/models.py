"""
Data models shared by the catalog, download, sync and store layers.

Design Decisions:
    - All dataclasses are frozen (immutable) to prevent accidental modification
    - A MediaItem's id is its source identity (catalog id or file name), never
      playlist scoped, so the same item in two playlists is one row
    - Models are independent of database storage format

Usage:
    from moss_music.core.models import MediaItem, PlaylistDescriptor, SourceKind

    stub = MediaItem(id="dQw4w9WgXcQ", title="Song", channel="Artist")
    descriptor = PlaylistDescriptor(id="PL123", title="Mix", items=(stub,))
"""

from dataclasses import dataclass, field
from enum import Enum


class SourceKind(str, Enum):
    """Where a media item comes from."""
    REMOTE = "remote"
    LOCAL = "local"


# Channel stored for items that come from the local file system
LOCAL_CHANNEL = "file"
UNKNOWN_CHANNEL = "unknown"


@dataclass(frozen=True)
class MediaItem:
    """
    A cacheable media item.

    Attributes:
        id: Globally unique source identity.
            Remote: catalog item id, e.g. "dQw4w9WgXcQ".
            Local: base name of the manifest reference, or the override path.
        title: Normalized display title.
        path: Absolute path of the cached/local file. Empty for a remote stub
              that has not been acquired yet.
        channel: Normalized uploader name; "file" for local items.
        source_kind: REMOTE items go through the downloader, LOCAL items
                     are used in place.
    """
    id: str
    title: str
    path: str = ""
    channel: str = UNKNOWN_CHANNEL
    source_kind: SourceKind = SourceKind.REMOTE

    @property
    def is_local(self) -> bool:
        return self.source_kind is SourceKind.LOCAL


@dataclass(frozen=True)
class PlaylistDescriptor:
    """
    Transient desired state of a playlist, produced fresh by every sync.

    Attributes:
        id: Stable playlist id (catalog playlist id or manifest file name).
        title: Display title.
        items: Items in playback order. May contain the same id twice.
    """
    id: str
    title: str
    items: tuple[MediaItem, ...] = field(default_factory=tuple)

    @property
    def item_ids(self) -> list[str]:
        return [item.id for item in self.items]


@dataclass(frozen=True)
class Playlist:
    """
    A persisted playlist row.

    Attributes:
        id: Stable playlist id.
        title: Display title.
        position: Dense zero-based rank among all playlists.
        source: Reference last used to sync it (URL, bare id or manifest path).
    """
    id: str
    title: str
    position: int
    source: str | None = None


@dataclass(frozen=True)
class PlaylistItem:
    """A persisted media item as seen through one playlist's membership."""
    id: str
    title: str
    path: str
    channel: str
    source_kind: SourceKind
    position: int
