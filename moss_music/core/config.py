"""
Configuration management for moss-music.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Data directory (database, cached media, local override files, logs)
    - External resolver command and playlist URL template
    - External downloader command and item URL template
    - Acquisition batch size and inter-batch delay

Configuration File Location:
    An explicit path (--config) must exist. Otherwise config.yaml in the
    current working directory is used when present, and built-in defaults
    apply when it is not. Every section and field is optional.

Example config.yaml:
    storage:
      data_directory: "~/.local/share/moss-music"

    resolver:
      command: ["yt-dlp", "-J", "--flat-playlist", "--no-warnings"]
      playlist_url_template: "https://www.youtube.com/playlist?list={id}"

    downloader:
      command: ["yt-dlp", "-x", "--restrict-filenames", "--windows-filenames"]
      item_url_template: "https://youtube.com/watch?v={id}"

    acquisition:
      batch_size: 5
      batch_delay: 0.1
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from moss_music.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_DATA_DIRECTORY = "~/.local/share/moss-music"
DEFAULT_RESOLVER_COMMAND = ("yt-dlp", "-J", "--flat-playlist", "--no-warnings")
DEFAULT_PLAYLIST_URL_TEMPLATE = "https://www.youtube.com/playlist?list={id}"
DEFAULT_DOWNLOADER_COMMAND = ("yt-dlp", "-x", "--restrict-filenames", "--windows-filenames")
DEFAULT_ITEM_URL_TEMPLATE = "https://youtube.com/watch?v={id}"
DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY = 0.1


@dataclass(frozen=True)
class StorageConfig:
    """
    On-disk layout configuration.

    Attributes:
        data_directory: Root of all durable state. ~ is expanded.
                        The directory is created on first sync, not here.

    Derived layout:
        data_directory/
        ├── database.db
        ├── songs/          # Managed media root, bucketed a-z, 0-9, _
        ├── files/          # Local override files (never deleted by the sweep)
        └── logs/
    """
    data_directory: Path

    @property
    def database_path(self) -> Path:
        return self.data_directory / "database.db"

    @property
    def media_directory(self) -> Path:
        return self.data_directory / "songs"

    @property
    def files_directory(self) -> Path:
        return self.data_directory / "files"


@dataclass(frozen=True)
class ResolverConfig:
    """
    External catalog resolver configuration.

    Attributes:
        command: Command prefix; the playlist URL is appended as last argument.
        playlist_url_template: Template used to turn a bare playlist id into a
                               URL. Must contain the "{id}" placeholder.
    """
    command: tuple[str, ...]
    playlist_url_template: str


@dataclass(frozen=True)
class DownloaderConfig:
    """
    External downloader configuration.

    Attributes:
        command: Command prefix; "-P <bucket dir>" and the item URL are appended.
        item_url_template: Template turning an item id into a URL ("{id}").
    """
    command: tuple[str, ...]
    item_url_template: str


@dataclass(frozen=True)
class AcquisitionConfig:
    """
    Acquisition pipeline backpressure settings.

    Attributes:
        batch_size: Number of items acquired concurrently per batch. Default: 5.
        batch_delay: Seconds to wait between two batches. Default: 0.1.
    """
    batch_size: int
    batch_delay: float


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    This is the main configuration object that aggregates all configuration
    sections. It is created by load_config() and should be treated as
    immutable (frozen dataclass).

    Example:
        config = load_config()
        print(f"Database: {config.storage.database_path}")
        print(f"Batch size: {config.acquisition.batch_size}")
    """
    storage: StorageConfig
    resolver: ResolverConfig
    downloader: DownloaderConfig
    acquisition: AcquisitionConfig


def default_config(data_directory: Path | None = None) -> Config:
    """Build a Config with every default applied."""
    return _build_config({} if data_directory is None else {
        "storage": {"data_directory": str(data_directory)}
    })


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory
                     and falls back to defaults when it isn't there.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is not found, the YAML is
                     invalid, or a field has an invalid value.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME
        if not config_path.exists():
            return default_config()
    elif not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    # An empty file is a valid "use defaults" file
    if raw_config is None:
        raw_config = {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return _build_config(raw_config)


def _build_config(raw_config: dict[str, Any]) -> Config:
    for section in ("storage", "resolver", "downloader", "acquisition"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )

    return Config(
        storage=_parse_storage_config(raw_config.get("storage") or {}),
        resolver=_parse_resolver_config(raw_config.get("resolver") or {}),
        downloader=_parse_downloader_config(raw_config.get("downloader") or {}),
        acquisition=_parse_acquisition_config(raw_config.get("acquisition") or {}),
    )


def _parse_storage_config(section: dict[str, Any]) -> StorageConfig:
    directory = section.get("data_directory", DEFAULT_DATA_DIRECTORY)

    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError(
            "'storage.data_directory' must be a non-empty string",
            details={"field": "storage.data_directory"}
        )

    return StorageConfig(
        data_directory=Path(directory.strip()).expanduser().resolve()
    )


def _parse_resolver_config(section: dict[str, Any]) -> ResolverConfig:
    return ResolverConfig(
        command=_parse_command(section, "resolver.command", DEFAULT_RESOLVER_COMMAND),
        playlist_url_template=_parse_template(
            section, "resolver.playlist_url_template", DEFAULT_PLAYLIST_URL_TEMPLATE
        ),
    )


def _parse_downloader_config(section: dict[str, Any]) -> DownloaderConfig:
    return DownloaderConfig(
        command=_parse_command(section, "downloader.command", DEFAULT_DOWNLOADER_COMMAND),
        item_url_template=_parse_template(
            section, "downloader.item_url_template", DEFAULT_ITEM_URL_TEMPLATE
        ),
    )


def _parse_acquisition_config(section: dict[str, Any]) -> AcquisitionConfig:
    """
    Parse and validate the acquisition section.

    Raises:
        ConfigError: If batch_size is not a positive integer or batch_delay
                     is not a non-negative number.
    """
    batch_size = section.get("batch_size", DEFAULT_BATCH_SIZE)
    # bool is an int subclass; "batch_size: yes" is a typo, not a size
    if not isinstance(batch_size, int) or isinstance(batch_size, bool) or batch_size < 1:
        raise ConfigError(
            "'acquisition.batch_size' must be a positive integer",
            details={"field": "acquisition.batch_size", "value": batch_size}
        )

    batch_delay = section.get("batch_delay", DEFAULT_BATCH_DELAY)
    if (
        not isinstance(batch_delay, (int, float))
        or isinstance(batch_delay, bool)
        or batch_delay < 0
    ):
        raise ConfigError(
            "'acquisition.batch_delay' must be a non-negative number",
            details={"field": "acquisition.batch_delay", "value": batch_delay}
        )

    return AcquisitionConfig(batch_size=batch_size, batch_delay=float(batch_delay))


def _parse_command(
    section: dict[str, Any],
    field: str,
    default: tuple[str, ...]
) -> tuple[str, ...]:
    raw = section.get(field.rsplit(".", 1)[1])
    if raw is None:
        return default

    if isinstance(raw, str):
        raw = raw.split()

    if (
        not isinstance(raw, list)
        or not raw
        or not all(isinstance(part, str) and part for part in raw)
    ):
        raise ConfigError(
            f"'{field}' must be a non-empty list of strings",
            details={"field": field, "value": raw}
        )

    return tuple(raw)


def _parse_template(section: dict[str, Any], field: str, default: str) -> str:
    raw = section.get(field.rsplit(".", 1)[1], default)

    if not isinstance(raw, str) or "{id}" not in raw:
        raise ConfigError(
            f"'{field}' must be a string containing '{{id}}'",
            details={"field": field, "value": raw}
        )

    return raw
