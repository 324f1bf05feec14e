"""
Logging configuration for moss-music.

Every run writes the same records to several places:
    - Console: colored, printed through tqdm so progress bars stay intact
    - log_full_<ts>.log: all records, DEBUG and above
    - log_errors_<ts>.log: ERROR and CRITICAL only
    - acquisition_failures_<ts>.log: one entry per item that couldn't be acquired
    - resolver_output_<ts>.log: raw resolver output that failed to parse

All files live in <data_directory>/logs and carry the run's start timestamp.

Usage:
    from moss_music.core.logger import setup_logging, get_logger

    setup_logging(data_dir)
    logger = get_logger(__name__)
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Set by setup_logging(); None until logging is configured
_logs_dir: Path | None = None
_run_timestamp: str | None = None


class Colors:
    """ANSI escape codes used by the console formatter."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """Prefix each console message with its level name, colored by severity."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        return f"{color}{record.levelname}{Colors.RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking progress bars.

    Uses tqdm.write(), which prints above any active progress bar instead
    of tearing through it.
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class AcquisitionFailedItemHandler(logging.Handler):
    """
    Handler that captures acquisition failures for the failure report file.

    Writes one entry per failed item in a simple, human-readable format:

        [PLxyz] Song Title (dQw4w9WgXcQ)
        Reason: downloader produced no destination file

    Records without an acquisition_failed_item_id extra field are ignored;
    log_acquisition_failure() sets the fields this handler reads.
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "acquisition_failed_item_id"):
            return

        if self.report_file is None:
            return

        try:
            item_id = getattr(record, "acquisition_failed_item_id", "?")
            title = getattr(record, "acquisition_failed_item_title", "Unknown")
            playlist_id = getattr(record, "acquisition_failed_playlist_id", "?")
            reason = getattr(record, "acquisition_failed_reason", "")

            self.report_file.write(f"[{playlist_id}] {title} ({item_id})\n")
            self.report_file.write(f"Reason: {reason}\n\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def _file_handler(path: Path, level: int = logging.DEBUG) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    return handler


def setup_logging(data_dir: Path, verbose: bool = False) -> Path:
    """
    Install the console and file handlers on the root logger.

    Call once per run, after the configuration is loaded. Handlers left
    over from an earlier call are dropped.

    Args:
        data_dir: Data directory; log files go to its 'logs' subdirectory.
        verbose: Show DEBUG records on the console too (files always get them).

    Returns:
        The logs directory.
    """
    global _logs_dir, _run_timestamp

    logs_dir = data_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    root_logger.addHandler(_file_handler(logs_dir / f"log_full_{timestamp}.log"))

    error_handler = _file_handler(logs_dir / f"log_errors_{timestamp}.log")
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failures_handler = AcquisitionFailedItemHandler(
        logs_dir / f"acquisition_failures_{timestamp}.log"
    )
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    _logs_dir = logs_dir
    _run_timestamp = timestamp
    return logs_dir


def get_logger(name: str) -> logging.Logger:
    """Module logger; records propagate to the handlers setup_logging() installs."""
    return logging.getLogger(name)


def log_acquisition_failure(
    logger: logging.Logger,
    item_id: str,
    title: str,
    playlist_id: str,
    reason: str
) -> None:
    """
    Log a media item whose acquisition failed.

    Logs an ERROR with extra fields that AcquisitionFailedItemHandler
    writes to the failure report.
    """
    logger.error(
        f"Acquisition failed: {title} ({item_id}) - {reason}",
        extra={
            "acquisition_failed_item_id": item_id,
            "acquisition_failed_item_title": title,
            "acquisition_failed_playlist_id": playlist_id,
            "acquisition_failed_reason": reason,
        }
    )


def dump_debug_output(name: str, content: str) -> Path | None:
    """
    Save raw tool output next to this run's logs.

    Used when external tool output cannot be parsed, so the offending text
    can be inspected later.

    Args:
        name: Short file stem, e.g. "resolver_output".
        content: Text to write.

    Returns:
        Path of the written file, or None when logging isn't configured
        or the write failed.
    """
    if _logs_dir is None:
        return None

    path = _logs_dir / f"{name}_{_run_timestamp}.log"
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning(f"Could not write {path}: {e}")
        return None
    return path


def shutdown_logging() -> None:
    """
    Flush and close all handlers and detach them from the root logger.

    Typically called in a finally block at application exit.
    """
    global _logs_dir, _run_timestamp

    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except (OSError, ValueError):
            pass
        root_logger.removeHandler(handler)

    _logs_dir = None
    _run_timestamp = None
