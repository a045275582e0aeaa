"""
Sync orchestrator: runs every configured playlist, then cleanup.

Run order:
    1. Each configured playlist, one after another, through the
       PlaylistSyncDriver of its source
    2. The CleanupReconciler, once (full sync only)
    3. The RunSummary is logged and returned

A playlist that fails as a whole (source unavailable, tracks not
fetchable) is logged, counted as one error for its source, and the run
continues. A full sync always returns a summary.

Usage:
    orchestrator = SyncOrchestrator.from_config(config)
    try:
        summary = await orchestrator.full_sync()
    finally:
        await orchestrator.close()
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Collection, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from music_soup.core.exceptions import MusicSoupError, SinkError
from music_soup.core.logger import get_logger, log_sync_summary
from music_soup.core.tokens import TokenCache
from music_soup.notion.client import NotionSink, RecordSink
from music_soup.notion.schema import validate_schema
from music_soup.sources.apple_music import AppleMusicClient
from music_soup.sources.base import SourceClient
from music_soup.sources.models import PlaylistRef, Source
from music_soup.sources.spotify import SpotifyClient
from music_soup.sync.cleanup import CleanupReconciler
from music_soup.sync.driver import DEFAULT_PACING_DELAY, PlaylistSyncDriver
from music_soup.sync.models import CleanupStats, RunSummary, UpsertMode
from music_soup.sync.policy import UpsertPolicy
from music_soup.sync.resolver import IdentityResolver, get_match_strategy

if TYPE_CHECKING:
    from music_soup.core.config import Config


logger = get_logger(__name__)


@dataclass
class HealthReport:
    """
    Result of a connectivity check.

    Attributes:
        sources: Health per configured source.
        schema_errors: Missing required Notion properties or wrong types.
        schema_warnings: Missing optional Notion properties.
        notion_error: Message if the database could not be read at all.
    """
    sources: dict[Source, bool] = field(default_factory=dict)
    schema_errors: list[str] = field(default_factory=list)
    schema_warnings: list[str] = field(default_factory=list)
    notion_error: str | None = None

    @property
    def ok(self) -> bool:
        return (
            all(self.sources.values())
            and not self.schema_errors
            and self.notion_error is None
        )


class SyncOrchestrator:
    """
    Wires the sync engine together for one run.

    Attributes:
        sink: Record store.
        clients: Source client per configured catalog.
        playlists: Every configured playlist, in configuration order.
        dry_run: Whether sink writes are suppressed.
    """

    def __init__(
        self,
        sink: RecordSink,
        clients: Mapping[Source, SourceClient],
        playlists: Iterable[PlaylistRef],
        mode: UpsertMode = UpsertMode.UPDATE,
        dry_run: bool = False,
        pacing_delay: float = DEFAULT_PACING_DELAY,
        match_strategy: str = "substring",
        externally_managed_sources: Collection[str] = ("Manual", "Other"),
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ) -> None:
        self.sink = sink
        self.clients = dict(clients)
        self.playlists = tuple(playlists)
        self.dry_run = dry_run
        self.externally_managed_sources = tuple(externally_managed_sources)

        resolver = IdentityResolver(sink, get_match_strategy(match_strategy))
        policy = UpsertPolicy(sink, mode=mode, dry_run=dry_run)
        self.drivers = {
            source: PlaylistSyncDriver(client, resolver, policy, pacing_delay, sleep=sleep)
            for source, client in self.clients.items()
        }

    @classmethod
    def from_config(
        cls,
        config: "Config",
        token_cache: TokenCache | None = None
    ) -> "SyncOrchestrator":
        """
        Build the Notion sink and the source clients from configuration.

        Sources without credentials get no client; load_config() already
        dropped or rejected their playlists.
        """
        token_cache = token_cache or TokenCache()

        clients: dict[Source, SourceClient] = {}
        if config.spotify is not None:
            clients[Source.SPOTIFY] = SpotifyClient(config.spotify, token_cache)
        if config.apple_music is not None:
            clients[Source.APPLE_MUSIC] = AppleMusicClient(config.apple_music, token_cache)

        return cls(
            sink=NotionSink(config.notion),
            clients=clients,
            playlists=config.playlists,
            mode=config.sync.mode,
            dry_run=config.sync.dry_run,
            pacing_delay=config.sync.pacing_delay,
            match_strategy=config.sync.match_strategy,
            externally_managed_sources=config.cleanup.externally_managed_sources,
        )

    async def close(self) -> None:
        """Close every client and the sink that hold network sessions."""
        for resource in (*self.clients.values(), self.sink):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()

    # =========================================================================
    # Runs
    # =========================================================================

    async def full_sync(
        self,
        sources: Collection[Source] | None = None,
        cleanup: bool = True
    ) -> RunSummary:
        """
        Sync every configured playlist, then run cleanup.

        Args:
            sources: Restrict the playlist sync to these sources. None syncs all.
            cleanup: Run the cleanup pass after the playlists.

        Returns:
            The run summary, also logged via log_sync_summary().
        """
        started = time.monotonic()
        summary = await self._sync_playlists(sources)
        if cleanup:
            summary.cleanup = await self.cleanup()
        summary.total_duration = time.monotonic() - started
        log_sync_summary(logger, summary)
        return summary

    async def sync_all_playlists(self, sources: Collection[Source] | None = None) -> RunSummary:
        """Sync playlists without cleanup."""
        return await self.full_sync(sources=sources, cleanup=False)

    async def cleanup(self) -> CleanupStats:
        """Run the cleanup reconciler over every configured playlist."""
        reconciler = CleanupReconciler(
            self.sink,
            self.clients,
            self.playlists,
            externally_managed_sources=self.externally_managed_sources,
            dry_run=self.dry_run
        )
        stats = await reconciler.reconcile()
        logger.info(f"Cleanup: {stats.marked} marked as removed, {stats.errors} errors")
        return stats

    async def run_cleanup(self) -> RunSummary:
        """Run cleanup alone and return it as a summary."""
        started = time.monotonic()
        summary = RunSummary(dry_run=self.dry_run, cleanup=await self.cleanup())
        summary.total_duration = time.monotonic() - started
        log_sync_summary(logger, summary)
        return summary

    async def check(self) -> HealthReport:
        """Check every source and validate the Notion database schema."""
        report = HealthReport()
        for source, client in self.clients.items():
            healthy = await client.check_health()
            report.sources[source] = healthy
            logger.info(f"{source.value}: {'OK' if healthy else 'UNAVAILABLE'}")

        try:
            properties = await self.sink.get_schema()
        except SinkError as e:
            report.notion_error = str(e)
            logger.error(f"Notion database not reachable: {e}")
            return report

        report.schema_errors, report.schema_warnings = validate_schema(properties)
        for message in report.schema_errors:
            logger.error(f"Notion schema: {message}")
        for message in report.schema_warnings:
            logger.warning(f"Notion schema: {message}")
        if not report.schema_errors:
            logger.info("Notion database: OK")
        return report

    # =========================================================================
    # Internals
    # =========================================================================

    async def _sync_playlists(self, sources: Collection[Source] | None) -> RunSummary:
        summary = RunSummary(dry_run=self.dry_run)

        for playlist in self.playlists:
            if sources is not None and playlist.source not in sources:
                continue

            stats = summary.stats_for(playlist.source)
            driver = self.drivers.get(playlist.source)
            if driver is None:
                logger.error(
                    f"No {playlist.source.value} client configured, "
                    f"skipping playlist {playlist.playlist_id}"
                )
                stats.errors += 1
                continue

            try:
                stats.merge(await driver.sync(playlist))
            except MusicSoupError as e:
                logger.error(
                    f"{playlist.source.value} playlist {playlist.playlist_id} failed: {e}"
                )
                stats.errors += 1
            except Exception as e:
                logger.error(
                    f"Unexpected error syncing {playlist.source.value} playlist "
                    f"{playlist.playlist_id}: {type(e).__name__}: {e}"
                )
                stats.errors += 1

        return summary
