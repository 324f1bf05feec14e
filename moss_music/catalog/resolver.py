"""
Remote playlist resolution through an external resolver process.

The resolver (yt-dlp by default) is run as an opaque subprocess:

    yt-dlp -J --flat-playlist --no-warnings <playlist url>

and its stdout is parsed into a PlaylistDescriptor. Two output shapes are
accepted:

    1. A single JSON document:
       {"id": ..., "title": ..., "description": ..., "entries": [{...}, ...]}

    2. JSON lines, one entry per line, each repeating the playlist fields:
       {"id": ..., "title": ..., "channel": ...,
        "playlist_id": ..., "playlist_title": ..., "playlist_description": ...}

Normalization:
    - Playlist titles lose a leading "Album - "
    - Entry titles go through TITLE_RULES, in order
    - Channels lose a trailing " - Topic"; missing channels become "unknown"

Local overrides:
    The playlist description may hold a JSON list of locally-sourced files
    to splice into the item list:

        [{"position": 3, "path": "intro.mp3", "title": "Intro"}]

    position is 1-based; path is relative to the local files root.
"""

import asyncio
import json
import re
from pathlib import Path
from typing import Any

from moss_music.core.config import ResolverConfig
from moss_music.core.exceptions import ResolutionError
from moss_music.core.logger import dump_debug_output, get_logger
from moss_music.core.models import (
    LOCAL_CHANNEL,
    UNKNOWN_CHANNEL,
    MediaItem,
    PlaylistDescriptor,
    SourceKind,
)

logger = get_logger(__name__)


URL_PREFIX = "https://"
ALBUM_TITLE_PREFIX = re.compile(r"^Album - ")
TOPIC_CHANNEL_SUFFIX = re.compile(r" - Topic$")

# Applied in order; each strips one kind of noise from catalog titles
TITLE_RULES: tuple[re.Pattern[str], ...] = (
    # "03. Song" -> "Song"
    re.compile(r"^\d+\.\s*"),
    # "Game OST (Deluxe) - Song" -> "Song"
    re.compile(r"^.*?(?:OST|Soundtrack|Remaster|Acoustic)\s*(?:\([^)]*\))?\s*-\s*", re.IGNORECASE),
    # "Song (Original Soundtrack)" -> "Song"
    re.compile(r"\s*\([^)]*(?:Soundtrack|OST|Chapter)[^)]*\)", re.IGNORECASE),
    # "Song - Artist" -> "Song"
    re.compile(r"\s*-\s*[^-]*$"),
)


def normalize_title(title: str) -> str:
    """
    Clean a catalog entry title.

    Examples:
        normalize_title("01. Intro - Artist")                 # "Intro"
        normalize_title("Game OST - Main Theme")              # "Main Theme"
        normalize_title("Theme (Original Soundtrack)")        # "Theme"
    """
    for rule in TITLE_RULES:
        title = rule.sub("", title)
    return title.strip()


def normalize_channel(channel: Any) -> str:
    """Strip the " - Topic" suffix; empty or missing becomes "unknown"."""
    if not isinstance(channel, str):
        return UNKNOWN_CHANNEL
    return TOPIC_CHANNEL_SUFFIX.sub("", channel) or UNKNOWN_CHANNEL


def normalize_playlist_title(title: str) -> str:
    return ALBUM_TITLE_PREFIX.sub("", title)


class CatalogResolver:
    """
    Adapter around the external resolver process.

    Example:
        resolver = CatalogResolver(config.resolver, config.storage.files_directory)
        descriptor = await resolver.resolve("PLrAXtmErZgOeiKm4sgNOknGvNjby9efdf")
    """

    def __init__(self, config: ResolverConfig, files_root: Path) -> None:
        """
        Args:
            config: Resolver command and playlist URL template.
            files_root: Root directory for locally-sourced override files.
        """
        self._config = config
        self._files_root = files_root

    def playlist_url(self, reference: str) -> str:
        """Return reference unchanged if it is a URL, else expand the template."""
        if reference.startswith(URL_PREFIX):
            return reference
        return self._config.playlist_url_template.format(id=reference)

    async def resolve(self, reference: str) -> PlaylistDescriptor:
        """
        Resolve a playlist URL or bare id into a PlaylistDescriptor.

        Raises:
            ResolutionError: If the resolver can't be started, fails, or
                             produces output that can't be turned into a
                             non-empty playlist.
        """
        url = self.playlist_url(reference)
        command = [*self._config.command, url]
        logger.debug(f"Running resolver: {' '.join(command)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ResolutionError(
                f"Failed to start resolver '{command[0]}': {e}",
                details={"reference": reference, "original_error": str(e)}
            ) from e

        stdout_bytes, stderr_bytes = await process.communicate()
        stderr = stderr_bytes.decode("utf-8", errors="replace").strip()
        if stderr:
            logger.debug(f"Resolver stderr: {stderr}")

        if process.returncode != 0:
            raise ResolutionError(
                f"Resolver exited with code {process.returncode}",
                details={"reference": reference, "returncode": process.returncode}
            )

        output = stdout_bytes.decode("utf-8", errors="replace")
        if not output.strip():
            raise ResolutionError(
                "Resolver produced no output",
                details={"reference": reference}
            )

        descriptor = self.parse_output(output, reference)
        logger.info(f"Resolved playlist '{descriptor.title}': {len(descriptor.items)} items")
        return descriptor

    def parse_output(self, output: str, reference: str = "") -> PlaylistDescriptor:
        """
        Parse resolver stdout into a PlaylistDescriptor.

        Raises:
            ResolutionError: On unparseable output or missing fields.
                             Unparseable output is saved to the logs dir.
        """
        try:
            document = _load_document(output)
        except ValueError as e:
            dump_path = dump_debug_output("resolver_output", output)
            if dump_path is not None:
                logger.error(f"Unparseable resolver output saved to {dump_path}")
            raise ResolutionError(
                f"Failed to parse resolver output: {e}",
                details={"reference": reference, "dump": str(dump_path) if dump_path else None}
            ) from e

        playlist_id = document.get("id")
        title = document.get("title")
        entries = document.get("entries")

        if not playlist_id or not title or not isinstance(entries, list):
            raise ResolutionError(
                "Invalid playlist data format",
                details={"reference": reference}
            )

        items = [item for item in map(_entry_to_item, entries) if item is not None]
        if not items:
            raise ResolutionError(
                "Playlist has no entries",
                details={"reference": reference, "playlist_id": playlist_id}
            )

        self._splice_overrides(items, document.get("description"), str(playlist_id))

        return PlaylistDescriptor(
            id=str(playlist_id),
            title=normalize_playlist_title(str(title)),
            items=tuple(items),
        )

    def _splice_overrides(
        self, items: list[MediaItem], description: Any, playlist_id: str
    ) -> None:
        """Insert locally-sourced overrides listed in the description."""
        if not description or not isinstance(description, str):
            return

        try:
            overrides = json.loads(description)
        except ValueError as e:
            logger.debug(f"Description of {playlist_id} is not an override list: {e}")
            return

        if not isinstance(overrides, list):
            return

        for override in overrides:
            position = _override_position(override)
            if position is None:
                logger.warning(f"Ignoring malformed override in {playlist_id}: {override!r}")
                continue

            # list.insert clamps past-the-end indices to an append
            items.insert(position - 1, MediaItem(
                id=override["path"],
                title=override["title"],
                path=str(self._files_root / override["path"]),
                channel=LOCAL_CHANNEL,
                source_kind=SourceKind.LOCAL,
            ))


def _load_document(output: str) -> dict[str, Any]:
    """
    Load either output shape into the single-document form.

    Raises:
        ValueError: If the output is neither one JSON object nor JSON lines.
    """
    try:
        document = json.loads(output)
    except ValueError:
        document = None

    # A one-entry JSON-lines output is also a single valid object
    if isinstance(document, dict) and ("entries" in document or "playlist_id" not in document):
        return document
    if document is not None and not isinstance(document, dict):
        raise ValueError("expected a JSON object")

    entries = []
    for number, line in enumerate(output.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            entry = json.loads(line)
        except ValueError as e:
            raise ValueError(f"line {number}: {e}") from e
        if not isinstance(entry, dict):
            raise ValueError(f"line {number}: expected a JSON object")
        entries.append(entry)

    first = entries[0] if entries else {}
    return {
        "id": first.get("playlist_id"),
        "title": first.get("playlist_title"),
        "description": first.get("playlist_description"),
        "entries": entries,
    }


def _entry_to_item(entry: Any) -> MediaItem | None:
    # Unavailable videos show up as null entries or entries without an id
    if not isinstance(entry, dict) or not entry.get("id"):
        logger.debug(f"Skipping unusable resolver entry: {entry!r}")
        return None

    item_id = str(entry["id"])
    return MediaItem(
        id=item_id,
        title=normalize_title(str(entry.get("title") or item_id)),
        channel=normalize_channel(entry.get("channel")),
        source_kind=SourceKind.REMOTE,
    )


def _override_position(override: Any) -> int | None:
    """1-based position of a usable override, or None if it must be ignored."""
    if not isinstance(override, dict):
        return None
    for field in ("path", "title"):
        if not isinstance(override.get(field), str) or not override[field]:
            return None

    position = override.get("position")
    if isinstance(position, str):
        try:
            position = int(position.strip())
        except ValueError:
            return None
    if not isinstance(position, int) or isinstance(position, bool) or position < 1:
        return None
    return position
