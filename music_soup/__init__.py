"""
music-soup: Sync Spotify and Apple Music playlists into a Notion database.

This package keeps a Notion database in step with a set of streaming
playlists. Each distinct track becomes one Notion page; pages of tracks
that left every playlist are marked "Removed", never deleted, so the
notes and tags added by hand in Notion survive.

Architecture:
    A run reads every configured playlist, one after another, then
    reconciles the database once:

    SYNC (sync/driver.py), per playlist:
        - Health check the source
        - Fetch playlist name and raw tracks
        - Normalize each raw track into a Track (sources/normalizer.py)
        - Find its existing page by ISRC, then by title + artist
          (sync/resolver.py)
        - Create, update or skip the page (sync/policy.py)

    CLEANUP (sync/cleanup.py), once per run:
        - Re-fetch every playlist's live tracks
        - Mark pages whose ISRC and title:artist key are nowhere live
          as Removed, except hand-entered pages ("Manual", "Other")

Modules:
    core/       - Configuration, logging, exceptions, token cache, HTTP retry
    sources/    - Spotify and Apple Music clients, Track model, normalizers
    notion/     - Notion schema, Record model and database client
    sync/       - Resolver, upsert policy, playlist driver, cleanup, orchestrator
    utils/      - Playlist URL parsing, duration and date helpers
    cli.py      - Command-line interface

Usage:
    Command Line:
        music-soup
        music-soup --dry-run
        music-soup --spotify
        music-soup --cleanup

    Python API:
        import asyncio
        from music_soup.core import load_config, setup_logging
        from music_soup.sync import SyncOrchestrator

        config = load_config()
        setup_logging(config.logging.directory)

        async def run():
            orchestrator = SyncOrchestrator.from_config(config)
            try:
                return await orchestrator.full_sync()
            finally:
                await orchestrator.close()

        summary = asyncio.run(run())
        print(summary.to_dict())

Dependencies:
    - spotipy: Spotify Web API client
    - aiohttp: Apple Music and Notion REST clients
    - asyncio-throttle: Notion request rate limit
    - PyJWT: Apple Music developer token (ES256)
    - click / rich-click: CLI
    - tqdm / colorama: Progress bars and colored console logging
    - pyyaml / python-dotenv: Configuration
"""

__version__ = "0.1.0"
__author__ = "music-soup"
__license__ = "MIT"

# Convenience imports for common usage
from music_soup.core import (
    Config,
    ConfigError,
    MusicSoupError,
    NormalizationError,
    SinkError,
    SourceError,
    SourceUnavailableError,
    get_logger,
    load_config,
    setup_logging,
)
from music_soup.notion import NotionSink, Record
from music_soup.sources import PlaylistType, Source, Track
from music_soup.sync import RunSummary, SyncOrchestrator, UpsertMode

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    # Exceptions
    "MusicSoupError",
    "ConfigError",
    "SourceError",
    "SourceUnavailableError",
    "NormalizationError",
    "SinkError",
    # Models
    "Source",
    "PlaylistType",
    "Track",
    "Record",
    "UpsertMode",
    "RunSummary",
    # Engine
    "NotionSink",
    "SyncOrchestrator",
]
