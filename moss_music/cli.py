"""
Command-line interface for moss-music.

This module implements the CLI using Click, providing commands to sync,
inspect and manage playlists. rich-click is used for the output colors.

Commands:
    moss sync <ref> [<ref> ...]     Sync playlists (URL, bare id, or .m3u path)
    moss sync --all                 Re-sync every known playlist from its source
    moss remove <playlist-id>       Remove a playlist and sweep orphaned media
    moss list                       List playlists in order
    moss items <playlist-id>        List a playlist's items in order
    moss swap <id-a> <id-b>         Swap the positions of two playlists
    moss prune                      Delete media no playlist references
    moss stats                      Show global statistics

Options:
    --config <path>                 Path to config.yaml
    --verbose                       Show debug messages on the console

Usage:
    moss sync "https://www.youtube.com/playlist?list=PL..."
    moss sync PLrAXtmErZgOeiKm4sgNOknGvNjby9efdf ./mixes/road-trip.m3u
    moss sync --all
    moss swap PL123 road-trip.m3u

Exit Codes:
    0    Success
    1    Configuration error or unexpected error
    2    Store (database) error
    3    Playlist could not be parsed or resolved
    4    Any other moss-music error
    130  Interrupted by user
"""

import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional

import rich_click as click

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100

from moss_music import __version__
from moss_music.core import (
    Config,
    ConfigError,
    MossMusicError,
    ParseError,
    PlaylistNotFoundError,
    ResolutionError,
    Store,
    StoreError,
    SyncProgressBar,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from moss_music.core.progress import ProgressSink
from moss_music.sync import SyncEngine, SyncResult
from moss_music.utils import ensure_directory

logger = get_logger(__name__)


# An action may return a non-zero exit code for partial failures
EngineAction = Callable[[SyncEngine], Awaitable[Optional[int]]]


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml if present)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug messages on the console"
)
@click.version_option(__version__, prog_name="moss-music")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """
    moss-music: Keep local copies of your playlists in sync.

    Playlists come from a media catalog (resolved with yt-dlp) or from local
    M3U manifests. Every media item is downloaded once and shared by all
    playlists that contain it.

    \b
    BASIC USAGE:
        moss sync "https://www.youtube.com/playlist?list=PL..."
        moss sync ./mixes/road-trip.m3u
        moss sync --all
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("references", nargs=-1, metavar="<reference>...")
@click.option(
    "--all", "sync_all",
    is_flag=True,
    help="Re-sync every known playlist from its recorded source"
)
@click.pass_context
def sync(ctx: click.Context, references: tuple[str, ...], sync_all: bool) -> None:
    """Sync playlists from a URL, a bare playlist id, or an M3U manifest."""
    if sync_all and references:
        raise click.UsageError("Cannot use --all together with references")
    if not sync_all and not references:
        raise click.UsageError("Give at least one reference, or use --all")

    async def action(engine: SyncEngine) -> int | None:
        if sync_all:
            summary = await engine.sync_all()
            for result in summary.results:
                _print_sync_result(result)
            for playlist_id, error in summary.errors.items():
                click.echo(f"Failed: {playlist_id}: {error.message}", err=True)
            return 3 if summary.errors else None

        failed = 0
        for reference in references:
            try:
                _print_sync_result(await engine.sync_playlist(reference))
            except (ParseError, ResolutionError) as e:
                click.echo(f"Failed: {reference}: {e.message}", err=True)
                failed += 1
        return 3 if failed else None

    _run(ctx.obj, action, with_progress=True)


@cli.command()
@click.argument("playlist_id", metavar="<playlist-id>")
@click.pass_context
def remove(ctx: click.Context, playlist_id: str) -> None:
    """Remove a playlist and delete media no other playlist uses."""
    async def action(engine: SyncEngine) -> None:
        removal = await engine.remove_playlist(playlist_id)
        click.echo(
            f"Removed '{removal.playlist.title}' "
            f"({len(removal.swept)} unreferenced item(s) deleted)"
        )

    _run(ctx.obj, action)


@cli.command(name="list")
@click.pass_context
def list_playlists(ctx: click.Context) -> None:
    """List playlists in their display order."""
    async def action(engine: SyncEngine) -> None:
        playlists = await engine.list_playlists()
        if not playlists:
            click.echo("No playlists yet. Add one with: moss sync <reference>")
            return
        for playlist in playlists:
            click.echo(f"{playlist.position:>3}  {playlist.id}  {playlist.title}")

    _run(ctx.obj, action)


@cli.command()
@click.argument("playlist_id", metavar="<playlist-id>")
@click.pass_context
def items(ctx: click.Context, playlist_id: str) -> None:
    """List a playlist's items in playback order."""
    async def action(engine: SyncEngine) -> None:
        for item in await engine.list_items(playlist_id):
            click.echo(f"{item.position:>4}  {item.title} [{item.channel}]  {item.path}")

    _run(ctx.obj, action)


@cli.command()
@click.argument("playlist_id_a", metavar="<id-a>")
@click.argument("playlist_id_b", metavar="<id-b>")
@click.pass_context
def swap(ctx: click.Context, playlist_id_a: str, playlist_id_b: str) -> None:
    """Swap the positions of two playlists."""
    async def action(engine: SyncEngine) -> None:
        await engine.reorder_playlists(playlist_id_a, playlist_id_b)
        click.echo(f"Swapped {playlist_id_a} and {playlist_id_b}")

    _run(ctx.obj, action)


@cli.command()
@click.pass_context
def prune(ctx: click.Context) -> None:
    """Delete media items that no playlist references."""
    async def action(engine: SyncEngine) -> None:
        swept = await engine.prune()
        click.echo(f"Deleted {len(swept)} unreferenced item(s)")

    _run(ctx.obj, action)


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show global statistics across all playlists."""
    async def action(engine: SyncEngine) -> None:
        _print_global_stats(await engine.stats())

    _run(ctx.obj, action)


def _run(options: dict, action: EngineAction, with_progress: bool = False) -> None:
    """
    Run one engine action with config, logging and store set up around it.

    This is the orchestration shared by every command:
    1. Loads configuration
    2. Sets up logging
    3. Opens the store
    4. Runs the action on a fresh event loop
    5. Maps errors to exit codes

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    store: Store | None = None
    progress: SyncProgressBar | None = None
    exit_code: Optional[int] = None

    try:
        config = _load_configuration(options["config_path"])

        setup_logging(config.storage.data_directory, verbose=options["verbose"])
        logger.debug("moss-music starting")

        ensure_directory(config.storage.data_directory)
        store = _initialize_store(config)

        sink: ProgressSink | None = None
        if with_progress:
            progress = SyncProgressBar()
            progress.start()
            sink = progress

        engine = SyncEngine.from_config(config, store, sink=sink)
        exit_code = asyncio.run(action(engine))

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except PlaylistNotFoundError as e:
        click.echo(f"Unknown playlist: {e.details.get('playlist_id')}", err=True)
        sys.exit(2)

    except StoreError as e:
        click.echo(f"Database error: {e.message}", err=True)
        logger.error(f"Database error: {e.message}", exc_info=True)
        sys.exit(2)

    except (ParseError, ResolutionError) as e:
        click.echo(f"Could not read playlist: {e.message}", err=True)
        logger.debug(f"Details: {e.details}")
        sys.exit(3)

    except MossMusicError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        if progress is not None:
            progress.stop()
        if store is not None:
            store.close()
        shutdown_logging()

    if exit_code:
        sys.exit(exit_code)


def _load_configuration(config_path: Optional[Path]) -> Config:
    return load_config(config_path)


def _initialize_store(config: Config) -> Store:
    """
    Open the SQLite store under the data directory.

    Raises:
        StoreError: If the database cannot be opened or initialized.
    """
    return Store.open(config.storage.database_path, config.storage.media_directory)


def _print_sync_result(result: SyncResult) -> None:
    logger.info(
        f"'{result.title}' ({result.playlist_id}): {result.desired} items, "
        f"{result.acquired} new, {result.skipped} already stored, "
        f"{result.failed} failed, {result.removed} removed"
    )


def _print_global_stats(stats: dict[str, float]) -> None:
    """
    Print global statistics across all playlists.

    Args:
        stats: Store.get_global_stats() output.
    """
    click.echo("=" * 60)
    click.echo("GLOBAL STATISTICS")
    click.echo("=" * 60)
    click.echo(f"Playlists:         {stats['playlists']}")
    click.echo(f"Unique items:      {stats['media_items']}")
    click.echo(f"Local items:       {stats['local_items']}")
    click.echo(f"Playlist links:    {stats['playlist_item_links']}")
    if stats["deduplication_ratio"] > 1:
        click.echo(f"Dedup ratio:       {stats['deduplication_ratio']}x (storage saved!)")
    click.echo("=" * 60)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `moss` from the command line.
    It invokes the Click CLI group.
    """
    cli()


if __name__ == "__main__":
    main()
