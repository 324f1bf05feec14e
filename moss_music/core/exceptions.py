"""
Exception classes for moss-music.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, so the CLI can print the message and the log can keep the context.

Exception Hierarchy:
    MossMusicError (base)
        ConfigError - Configuration file issues
        StoreError - SQLite store issues
            PlaylistNotFoundError - Unknown playlist id
        ParseError - Local manifest could not be parsed
        ResolutionError - External resolver failed or returned bad output
        AcquisitionError - A single media item could not be acquired
"""


class MossMusicError(Exception):
    """
    Base exception for all moss-music errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all moss-music errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., ids, paths).

    Example:
        try:
            await engine.sync_playlist(reference)
        except MossMusicError as e:
            logger.error(f"Sync failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'playlist_id': Playlist involved in the error
                     - 'reference': The sync reference given by the user
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(MossMusicError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - An explicit --config path that does not exist
        - config.yaml has invalid YAML syntax
        - Invalid field values (e.g., batch_size of 0, empty command list)
    """
    pass


class StoreError(MossMusicError):
    """
    Raised when there's an issue with the SQLite store.

    Fatal to the operation that hit it. Writes applied earlier in the
    same sync call are NOT rolled back.

    Common causes:
        - Constraint violation (e.g., membership row for an unknown item)
        - Database file locked, corrupted, or on a full disk
        - Schema version mismatch
    """
    pass


class PlaylistNotFoundError(StoreError):
    """
    Raised when an operation names a playlist id the store doesn't know.

    Example:
        raise PlaylistNotFoundError(
            "Playlist not found in database",
            details={'playlist_id': 'PL123'}
        )
    """
    pass


class ParseError(MossMusicError):
    """
    Raised when a local M3U manifest yields no playlist.

    Fatal to that sync call. Nothing is written to the store.

    Common causes:
        - Manifest file missing or unreadable
        - Manifest contains no reference lines
    """
    pass


class ResolutionError(MossMusicError):
    """
    Raised when the external catalog resolver fails.

    Fatal to that sync call. Nothing is written to the store.

    Common causes:
        - Resolver executable not installed
        - Resolver exited with a non-zero code (private or missing playlist)
        - Empty or unparseable output
        - Output without 'id', 'title' or entries

    Note:
        A malformed override list embedded in the playlist description is
        NOT a ResolutionError. It is logged and ignored.
    """
    pass


class AcquisitionError(MossMusicError):
    """
    Raised when a single media item cannot be acquired.

    This is a NON-CRITICAL error. The acquisition pipeline catches it,
    logs the item to the failure report and moves on to the next item.

    Common causes:
        - Downloader produced no destination line (video unavailable, etc.)
        - Downloader executable could not be started
        - Local file referenced by a manifest or override is missing

    Example:
        raise AcquisitionError(
            "Local file not found",
            details={'item_id': 'song.mp3', 'path': '/music/song.mp3'}
        )
    """
    pass
