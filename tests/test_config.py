"""Test configuration loading"""

from pathlib import Path

import pytest

from moss_music.core.config import (
    DEFAULT_BATCH_DELAY,
    DEFAULT_BATCH_SIZE,
    DEFAULT_RESOLVER_COMMAND,
    default_config,
    load_config,
)
from moss_music.core.exceptions import ConfigError


def write_config(directory: Path, content: str) -> Path:
    path = directory / "config.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:
    """Test load_config()"""

    def test_missing_explicit_file_raises(self, temp_dir):
        """An explicit path that doesn't exist is an error"""
        with pytest.raises(ConfigError) as exc_info:
            load_config(temp_dir / "nope.yaml")
        assert exc_info.value.details["file_path"].endswith("nope.yaml")

    def test_defaults_without_file(self, temp_dir, monkeypatch):
        """No config.yaml in the working directory means defaults"""
        monkeypatch.chdir(temp_dir)
        config = load_config()
        assert config.resolver.command == DEFAULT_RESOLVER_COMMAND
        assert config.acquisition.batch_size == DEFAULT_BATCH_SIZE
        assert config.acquisition.batch_delay == DEFAULT_BATCH_DELAY

    def test_empty_file_means_defaults(self, temp_dir):
        """An empty YAML file is valid"""
        config = load_config(write_config(temp_dir, ""))
        assert config.acquisition.batch_size == 5

    def test_full_file(self, temp_dir):
        """Every section is read"""
        path = write_config(temp_dir, f"""
storage:
  data_directory: "{temp_dir / 'data'}"
resolver:
  command: "my-resolver --json"
  playlist_url_template: "https://example.com/list/{{id}}"
downloader:
  command: ["my-dl", "-x"]
  item_url_template: "https://example.com/watch/{{id}}"
acquisition:
  batch_size: 2
  batch_delay: 0
""")
        config = load_config(path)

        assert config.storage.data_directory == temp_dir / "data"
        assert config.storage.database_path == temp_dir / "data" / "database.db"
        assert config.storage.media_directory == temp_dir / "data" / "songs"
        assert config.storage.files_directory == temp_dir / "data" / "files"
        assert config.resolver.command == ("my-resolver", "--json")
        assert config.resolver.playlist_url_template == "https://example.com/list/{id}"
        assert config.downloader.command == ("my-dl", "-x")
        assert config.acquisition.batch_size == 2
        assert config.acquisition.batch_delay == 0.0

    def test_invalid_yaml(self, temp_dir):
        """Broken YAML is reported as ConfigError"""
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(write_config(temp_dir, "storage: [unclosed"))

    def test_top_level_must_be_mapping(self, temp_dir):
        """A YAML list is not a configuration"""
        with pytest.raises(ConfigError, match="dictionary"):
            load_config(write_config(temp_dir, "- a\n- b\n"))

    @pytest.mark.parametrize("value", ["0", "-1", "yes", "'five'"])
    def test_invalid_batch_size(self, temp_dir, value):
        """batch_size must be a positive integer"""
        path = write_config(temp_dir, f"acquisition:\n  batch_size: {value}\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert exc_info.value.details["field"] == "acquisition.batch_size"

    def test_negative_batch_delay(self, temp_dir):
        """batch_delay can't be negative"""
        path = write_config(temp_dir, "acquisition:\n  batch_delay: -0.5\n")
        with pytest.raises(ConfigError, match="batch_delay"):
            load_config(path)

    def test_template_requires_placeholder(self, temp_dir):
        """URL templates must contain {id}"""
        path = write_config(temp_dir, "downloader:\n  item_url_template: https://example.com\n")
        with pytest.raises(ConfigError, match="item_url_template"):
            load_config(path)

    def test_empty_command_rejected(self, temp_dir):
        """An empty command list can't be run"""
        path = write_config(temp_dir, "resolver:\n  command: []\n")
        with pytest.raises(ConfigError, match="resolver.command"):
            load_config(path)


class TestDefaultConfig:
    """Test default_config()"""

    def test_custom_data_directory(self, temp_dir):
        """The data directory can be overridden"""
        config = default_config(temp_dir)
        assert config.storage.data_directory == temp_dir
        assert config.downloader.item_url_template == "https://youtube.com/watch?v={id}"
