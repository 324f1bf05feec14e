"""
M3U manifest parsing.

Turns a local extended-M3U file into a PlaylistDescriptor whose items are
all locally sourced:

    #EXTM3U
    #EXTINF:215,Intro
    ../music/intro.mp3
    outro.flac

Every non-comment line is a file reference, resolved relative to the
manifest's own directory. An #EXTINF line before it supplies the title;
without one the file's base name is used. Parsing never touches the store.
"""

import re
from pathlib import Path

from moss_music.core.exceptions import ParseError
from moss_music.core.logger import get_logger
from moss_music.core.models import LOCAL_CHANNEL, MediaItem, PlaylistDescriptor, SourceKind

logger = get_logger(__name__)


EXTM3U_HEADER = "#EXTM3U"
EXTINF_PATTERN = re.compile(r"^#EXTINF:(-?\d+),(.+)")


def parse_manifest(path: Path | str) -> PlaylistDescriptor:
    """
    Parse an M3U manifest into a PlaylistDescriptor.

    Args:
        path: Path to the .m3u / .m3u8 file.

    Returns:
        PlaylistDescriptor with id = manifest file name and title = file
        name without extension. Items keep file order, duplicates included.

    Raises:
        ParseError: If the file is missing, unreadable, not UTF-8, or
                    contains no file references.

    Behavior:
        - Blank lines and the #EXTM3U header are skipped
        - #EXTINF:<seconds>,<title> sets the title for the next reference
        - Any other '#' line is ignored and keeps the pending title
        - The pending title is consumed by the next reference
    """
    manifest_path = Path(path).expanduser()

    try:
        content = manifest_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(
            f"Failed to read manifest: {e}",
            details={"path": str(manifest_path), "original_error": str(e)}
        ) from e

    base_directory = manifest_path.resolve().parent
    items: list[MediaItem] = []
    pending_title: str | None = None

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(EXTM3U_HEADER):
            continue

        if line.startswith("#"):
            match = EXTINF_PATTERN.match(line)
            if match:
                pending_title = match.group(2).strip()
            continue

        item_path = (base_directory / line).resolve()
        items.append(MediaItem(
            id=item_path.name,
            title=pending_title or item_path.name,
            path=str(item_path),
            channel=LOCAL_CHANNEL,
            source_kind=SourceKind.LOCAL,
        ))
        pending_title = None

    if not items:
        raise ParseError(
            "No valid entries found in manifest",
            details={"path": str(manifest_path)}
        )

    logger.debug(f"Parsed manifest {manifest_path.name}: {len(items)} entries")

    return PlaylistDescriptor(
        id=manifest_path.name,
        title=manifest_path.stem,
        items=tuple(items),
    )
