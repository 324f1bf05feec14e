"""Test configuration and fixtures"""

import dataclasses
import sys
import tempfile
from pathlib import Path

import pytest

import moss_music.core.database as database_module
import moss_music.download.pipeline as pipeline_module
import moss_music.sync.engine as engine_module
from moss_music.core.config import AcquisitionConfig, Config, default_config
from moss_music.core.database import Store
from moss_music.core.exceptions import ResolutionError
from moss_music.core.logger import shutdown_logging
from moss_music.core.models import MediaItem, PlaylistDescriptor
from moss_music.utils import bucket_for_item_id


@pytest.fixture(autouse=True)
def run_blocking_inline(monkeypatch):
    """Run blocking store and file calls inline instead of on the IO executor"""

    async def _inline(func, /, *args, **kwargs):
        return func(*args, **kwargs)

    monkeypatch.setattr(database_module, "run_blocking", _inline)
    monkeypatch.setattr(pipeline_module, "run_blocking", _inline)
    monkeypatch.setattr(engine_module, "run_blocking", _inline)


@pytest.fixture(autouse=True)
def reset_logging():
    """Detach any handlers a test installed"""
    yield
    shutdown_logging()


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir).resolve()


@pytest.fixture
def config(temp_dir) -> Config:
    """Default configuration rooted in the temp dir, without batch delay"""
    base = default_config(temp_dir / "data")
    return dataclasses.replace(
        base, acquisition=AcquisitionConfig(batch_size=5, batch_delay=0.0)
    )


@pytest.fixture
def store(config):
    """Store backed by a database file in the temp dir"""
    store = Store.open(config.storage.database_path, config.storage.media_directory)
    yield store
    store.close()


@pytest.fixture
def python_tool():
    """Command prefix running an inline Python script as a stand-in tool"""
    def _tool(script: str) -> tuple[str, ...]:
        return (sys.executable, "-c", script)
    return _tool


class RecordingSink:
    """Progress sink remembering every event"""

    def __init__(self):
        self.events: list[tuple[str, float]] = []

    def on_progress(self, playlist_id: str, fraction: float) -> None:
        self.events.append((playlist_id, fraction))

    def fractions(self, playlist_id: str) -> list[float]:
        return [fraction for pid, fraction in self.events if pid == playlist_id]


class FakeResolver:
    """Resolver returning prepared descriptors by reference"""

    def __init__(self, descriptors: dict[str, PlaylistDescriptor] | None = None):
        self.descriptors = dict(descriptors or {})
        self.calls: list[str] = []

    async def resolve(self, reference: str) -> PlaylistDescriptor:
        self.calls.append(reference)
        if reference not in self.descriptors:
            raise ResolutionError("Resolver exited with code 1", details={"reference": reference})
        return self.descriptors[reference]


class FakeDownloader:
    """Downloader writing a small file into the item's bucket"""

    def __init__(self, media_root: Path, fail_ids: set[str] | None = None):
        self.media_root = media_root
        self.fail_ids = set(fail_ids or ())
        self.calls: list[str] = []

    async def download(self, item: MediaItem) -> MediaItem | None:
        self.calls.append(item.id)
        if item.id in self.fail_ids:
            return None
        directory = self.media_root / bucket_for_item_id(item.id)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{item.id}.opus"
        path.write_bytes(b"audio")
        return dataclasses.replace(item, path=str(path))


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def downloader(config):
    return FakeDownloader(config.storage.media_directory)


@pytest.fixture
def resolver():
    return FakeResolver()


def remote_playlist(playlist_id: str, title: str, item_ids: list[str]) -> PlaylistDescriptor:
    """Build a remote playlist descriptor from item ids"""
    return PlaylistDescriptor(
        id=playlist_id,
        title=title,
        items=tuple(MediaItem(id=item_id, title=f"Song {item_id}") for item_id in item_ids),
    )
