"""
Progress reporting for moss-music.

The engine and acquisition pipeline report progress through a small observer
interface, ProgressSink, receiving (playlist_id, fraction) pairs where
fraction is in [0.0, 1.0]. Emissions for one sync start at 0.0, never
decrease, and end at exactly 1.0.

Implementations:
    - NullProgressSink: Discards every event (library use, tests)
    - SyncProgressBar: Rich progress bars, one row per playlist, used by the CLI

Usage:
    from moss_music.core.progress import SyncProgressBar

    with SyncProgressBar() as progress:
        engine = SyncEngine(store, resolver, downloader, config, sink=progress)
        await engine.sync_playlist("PL123")
"""

from typing import Optional, Protocol, runtime_checkable

from rich import get_console
from rich.console import JustifyMethod, OverflowMethod
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    Task,
    TaskID,
)
from rich.style import StyleType
from rich.text import Text
from rich.theme import Theme


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})

# Rich tasks count in whole steps; fractions are scaled onto this range
PROGRESS_STEPS = 1000


@runtime_checkable
class ProgressSink(Protocol):
    """Observer for per-playlist sync progress."""

    def on_progress(self, playlist_id: str, fraction: float) -> None:
        ...


class NullProgressSink:
    """Progress sink that ignores every event."""

    def on_progress(self, playlist_id: str, fraction: float) -> None:
        pass


class SizedTextColumn(ProgressColumn):
    """
    Text column truncated (with ellipsis) to a fixed width.

    Keeps long playlist ids from pushing the bar off screen.
    """

    def __init__(
        self,
        text_format: str,
        style: StyleType = "none",
        justify: JustifyMethod = "left",
        overflow: Optional[OverflowMethod] = "ellipsis",
        width: int = 20,
    ) -> None:
        self.text_format = text_format
        self.style = style
        self.justify: JustifyMethod = justify
        self.overflow: Optional[OverflowMethod] = overflow
        self.width = width
        super().__init__()

    def render(self, task: Task) -> Text:
        text = Text.from_markup(
            self.text_format.format(task=task), style=self.style, justify=self.justify
        )
        text.truncate(max_width=self.width, overflow=self.overflow, pad=True)
        return text


class SyncProgressBar:
    """
    Rich progress display implementing ProgressSink.

    Each playlist gets its own row the first time an event arrives for it:

        PL123                ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━  64%

    A row switches to the finished style once its fraction reaches 1.0.
    Concurrent syncs of several playlists share one display.
    """

    def __init__(self, title_width: int = 30) -> None:
        self.console = get_console()
        self.console.push_theme(PROGRESS_THEME)

        self.progress = Progress(
            SizedTextColumn("[white]{task.description}", width=title_width),
            BarColumn(bar_width=40, finished_style="green"),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=self.console,
            transient=False,
            refresh_per_second=10,
        )

        self._tasks: dict[str, TaskID] = {}
        self._started = False

    def __enter__(self) -> "SyncProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        if not self._started:
            self.progress.start()
            self._started = True

    def stop(self) -> None:
        if self._started:
            self.progress.stop()
            self._started = False

    def on_progress(self, playlist_id: str, fraction: float) -> None:
        task_id = self._tasks.get(playlist_id)
        if task_id is None:
            task_id = self.progress.add_task(
                description=playlist_id,
                total=PROGRESS_STEPS,
            )
            self._tasks[playlist_id] = task_id

        clamped = min(max(fraction, 0.0), 1.0)
        self.progress.update(task_id, completed=round(clamped * PROGRESS_STEPS))


__all__ = [
    "PROGRESS_THEME",
    "ProgressSink",
    "NullProgressSink",
    "SizedTextColumn",
    "SyncProgressBar",
]
