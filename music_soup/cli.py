"""
Command-line interface for music-soup.

This module implements the CLI using Click, providing the command that
syncs the configured Spotify and Apple Music playlists into Notion.
rich-click is used for the output colors.

Commands:
    music-soup                          Full sync: every playlist, then cleanup
    music-soup --spotify                Sync only the Spotify playlists
    music-soup --apple                  Sync only the Apple Music playlists
    music-soup --cleanup                Only mark removed tracks
    music-soup --check                  Check sources and the Notion schema

Options:
    --dry-run                           Compute every change, write nothing
    --mode update|preserve              Overwrite or keep existing records
    --config <path>                     Use another config.yaml

Usage:
    # Preview a full sync
    music-soup --dry-run

    # Add new tracks only, never touching existing records
    music-soup --mode preserve

    # Preview cleanup actions
    music-soup --cleanup --dry-run

Configuration:
    Settings are read from config.yaml in the current directory (optional)
    and from environment variables / a .env file, which take precedence.
    See config.example.yaml.

Exit Codes:
    0    Run completed (per-track errors are reported in the summary)
    1    Configuration error or unexpected failure
    3    Source or authentication failure, or --check found a problem
    4    Other music-soup error
    130  Interrupted by user
"""

import asyncio
import dataclasses
import sys
from pathlib import Path
from typing import Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "cli": [
        {
            "name": "Run Selection",
            "options": ["--spotify", "--apple", "--cleanup", "--check"],
        },
        {
            "name": "Sync Options",
            "options": ["--dry-run", "--mode", "--config"],
        },
        {
            "name": "Info",
            "options": ["--version", "--help"],
        },
    ],
}

from music_soup import __version__
from music_soup.core import (
    Config,
    ConfigError,
    MusicSoupError,
    SourceError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from music_soup.sources import Source
from music_soup.sync import RunSummary, SyncOrchestrator, UpsertMode

logger = get_logger(__name__)


@click.command()
@click.option(
    "--spotify",
    is_flag=True,
    help="Sync only the Spotify playlists"
)
@click.option(
    "--apple",
    is_flag=True,
    help="Sync only the Apple Music playlists"
)
@click.option(
    "--cleanup",
    is_flag=True,
    help="Only mark tracks that left every playlist as removed"
)
@click.option(
    "--check",
    is_flag=True,
    help="Check source connectivity and the Notion database schema"
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Preview changes without writing to Notion"
)
@click.option(
    "--mode",
    type=click.Choice([m.value for m in UpsertMode]),
    default=None,
    help="update: overwrite existing records. preserve: only add new ones"
)
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit."
)
@click.pass_context
def cli(
    ctx: click.Context,
    spotify: bool,
    apple: bool,
    cleanup: bool,
    check: bool,
    dry_run: bool,
    mode: Optional[str],
    config_path: Optional[Path],
    version: bool
) -> None:
    """
    music-soup: Sync Spotify and Apple Music playlists into Notion.

    Every track of the configured playlists becomes one page in the Notion
    database. Tracks that left every playlist are marked as removed, never
    deleted, so notes added in Notion are kept.

    \b
    BASIC USAGE:
        music-soup                        # Full sync + cleanup
        music-soup --dry-run              # Preview, write nothing
        music-soup --spotify              # Spotify playlists only
        music-soup --apple                # Apple Music playlists only
        music-soup --cleanup              # Cleanup only

    \b
    MAINTENANCE:
        music-soup --check                # Test credentials and database schema
    """
    if version:
        click.echo(f"music-soup {__version__}")
        ctx.exit(0)

    if cleanup and (spotify or apple):
        raise click.UsageError("--cleanup cannot be combined with --spotify or --apple")
    if check and (spotify or apple or cleanup or dry_run or mode):
        raise click.UsageError("--check cannot be combined with other options")

    sources: set[Source] | None = None
    if spotify or apple:
        sources = set()
        if spotify:
            sources.add(Source.SPOTIFY)
        if apple:
            sources.add(Source.APPLE_MUSIC)

    options = {
        "config_path": config_path,
        "sources": sources,
        "cleanup_only": cleanup,
        "check": check,
        "dry_run": dry_run,
        "mode": UpsertMode(mode) if mode else None,
    }
    _run(options)


def _run(options: dict) -> None:
    """
    Execute the selected run based on CLI options.

    This is the main orchestration function that:
    1. Loads configuration and applies CLI overrides
    2. Sets up logging
    3. Runs the check, cleanup, or sync
    4. Reports results

    Args:
        options: Dictionary with CLI options.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    try:
        config = _load_configuration(options)

        setup_logging(config.logging.directory, config.logging.level)
        logger.info(f"music-soup {__version__} starting")

        if options["check"]:
            healthy = asyncio.run(_run_check(config))
            if not healthy:
                click.echo("Check failed, see the log for details.", err=True)
                sys.exit(3)
            return

        summary = asyncio.run(_run_sync(config, options))
        _print_summary(summary)

        if config.sync.dry_run:
            logger.info("This was a DRY RUN - no changes were made to Notion.")
        logger.info("music-soup completed")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except SourceError as e:
        click.echo(f"{e.source or 'Source'} error: {e.message}", err=True)
        if e.is_auth_error:
            click.echo("Check the credentials in your .env file", err=True)
        logger.error(f"Source error: {e.message}", exc_info=True)
        sys.exit(3)

    except MusicSoupError as e:
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
        shutdown_logging()


def _load_configuration(options: dict) -> Config:
    """
    Load configuration and apply the --dry-run and --mode overrides.

    Raises:
        ConfigError: If configuration is invalid or missing.
    """
    config = load_config(options["config_path"])

    sync = config.sync
    if options["dry_run"]:
        sync = dataclasses.replace(sync, dry_run=True)
    if options["mode"] is not None:
        sync = dataclasses.replace(sync, mode=options["mode"])
    return dataclasses.replace(config, sync=sync)


async def _run_sync(config: Config, options: dict) -> RunSummary:
    """Run cleanup only, a source-restricted sync, or a full sync."""
    orchestrator = SyncOrchestrator.from_config(config)
    try:
        if options["cleanup_only"]:
            logger.info("Running cleanup only")
            return await orchestrator.run_cleanup()

        if options["sources"] is not None:
            names = ", ".join(sorted(s.value for s in options["sources"]))
            logger.info(f"Syncing {names} only")
            return await orchestrator.sync_all_playlists(options["sources"])

        logger.info("Running full synchronization")
        return await orchestrator.full_sync(cleanup=config.cleanup.enabled)
    finally:
        await orchestrator.close()


async def _run_check(config: Config) -> bool:
    orchestrator = SyncOrchestrator.from_config(config)
    try:
        report = await orchestrator.check()
    finally:
        await orchestrator.close()
    return report.ok


def _print_summary(summary: RunSummary) -> None:
    """Log the per-source and cleanup counters of a finished run."""
    logger.info("=" * 60)
    logger.info("SYNC SUMMARY")
    logger.info("=" * 60)
    for source, stats in summary.by_source.items():
        logger.info(
            f"{source.value + ':':<14} created {stats.created}, updated {stats.updated}, "
            f"skipped {stats.skipped}, errors {stats.errors}"
        )
    if summary.cleanup is not None:
        logger.info(
            f"{'Cleanup:':<14} marked {summary.cleanup.marked}, errors {summary.cleanup.errors}"
        )
    logger.info(f"{'Total errors:':<14} {summary.total_errors}")
    logger.info(f"{'Duration:':<14} {summary.total_duration:.1f}s")
    logger.info("=" * 60)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `music-soup` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
