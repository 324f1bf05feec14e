"""
Media downloader for moss-music.

Fetches one remote media item by running the external downloader (yt-dlp by
default) into the item's bucket directory:

    yt-dlp -x --restrict-filenames --windows-filenames \\
        -P <media_root>/<bucket> https://youtube.com/watch?v=<id>

Storage Layout:
    media_root/
    ├── a/ ... z/        # Bucket = lowercased first character of the item id
    ├── 0/ ... 9/
    └── _/               # Catch-all for every other first character

The output file path is not predictable (the downloader picks the name and
extension), so stdout is scanned for the extract-audio report:

    [ExtractAudio] Destination: /data/songs/d/Song_Title-dQw4w9WgXcQ.opus
    [ExtractAudio] Not converting audio /data/songs/d/Song.m4a; file is already in target format m4a

An item without either line by the time the process exits is a failed
download. The exit code is not consulted.

Usage:
    downloader = Downloader(config.downloader, config.storage.media_directory)
    acquired = await downloader.download(item)
    if acquired is None:
        ...  # failed
"""

import asyncio
import dataclasses
import re
from pathlib import Path

from moss_music.core.config import DownloaderConfig
from moss_music.core.logger import get_logger
from moss_music.core.models import MediaItem
from moss_music.utils import bucket_for_item_id

logger = get_logger(__name__)


DESTINATION_PATTERN = re.compile(r"^\[ExtractAudio\] Destination: (?P<path>.+)$")
ALREADY_CONVERTED_PATTERN = re.compile(
    r"^\[ExtractAudio\] Not converting audio (?P<path>.+); "
    r"file is already in target format \S+$"
)


def parse_destination_line(line: str) -> str | None:
    """
    Extract the output file path from one line of downloader stdout.

    Returns:
        The path, or None if the line is not an extract-audio report.
    """
    line = line.rstrip("\r\n")
    for pattern in (DESTINATION_PATTERN, ALREADY_CONVERTED_PATTERN):
        match = pattern.match(line)
        if match:
            return match.group("path")
    return None


class Downloader:
    """
    Runs the external downloader for remote media items.

    Attributes:
        media_root: Managed media directory holding the bucket directories.

    Note:
        Failures never raise. download() returns None so the acquisition
        pipeline can log the item and move on.
    """

    def __init__(self, config: DownloaderConfig, media_root: Path) -> None:
        self._config = config
        self.media_root = media_root

    def bucket_directory(self, item_id: str) -> Path:
        return self.media_root / bucket_for_item_id(item_id)

    def build_command(self, item: MediaItem) -> list[str]:
        return [
            *self._config.command,
            "-P",
            str(self.bucket_directory(item.id)),
            self._config.item_url_template.format(id=item.id),
        ]

    async def download(self, item: MediaItem) -> MediaItem | None:
        """
        Download one remote item.

        Args:
            item: Remote media item stub (path is empty).

        Returns:
            A copy of item with path set to the downloaded file, or None if
            the downloader could not be started or reported no destination.
        """
        command = self.build_command(item)
        logger.debug(f"Downloading {item.id}: {' '.join(command)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning(f"Failed to start downloader '{command[0]}': {e}")
            return None

        stdout_bytes, stderr_bytes = await process.communicate()

        stderr = stderr_bytes.decode("utf-8", errors="replace").strip()
        if stderr:
            logger.debug(f"Downloader stderr for {item.id}: {stderr}")

        destination = None
        for line in stdout_bytes.decode("utf-8", errors="replace").splitlines():
            path = parse_destination_line(line)
            if path is not None:
                destination = path

        if destination is None:
            logger.debug(
                f"No destination reported for {item.id} (exit code {process.returncode})"
            )
            return None

        resolved = Path(destination).expanduser().resolve()
        logger.debug(f"Downloaded {item.id} -> {resolved}")
        return dataclasses.replace(item, path=str(resolved))
