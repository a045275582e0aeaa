"""
Playlist sync driver: one configured playlist from catalog to Notion.

Workflow for one playlist:
    1. Health check the source client (failure: SourceUnavailableError)
    2. Fetch playlist metadata; on failure the playlist id is used as name
    3. Fetch every raw track (failure: SourceError)
    4. For each track, in playlist order:
       a. Normalize into a Track
       b. Resolve the existing Record, if any
       c. Apply the upsert policy
       d. Wait the pacing delay
    5. Return the counters

Steps 1 and 3 are fatal for this playlist only; the caller logs them and
moves on to the next playlist. A failure inside step 4 is logged with the
track title and source id (also to sync_failures.log), counted as an
error, and the loop continues with the next track.

Tracks are processed strictly one after another.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from tqdm import tqdm

from music_soup.core.exceptions import MusicSoupError, SourceUnavailableError
from music_soup.core.logger import get_logger, log_sync_failure
from music_soup.sources.base import SourceClient
from music_soup.sources.models import PlaylistRef, Track
from music_soup.sources.normalizer import fetch_playlist_meta, get_normalizer
from music_soup.sync.models import SourceStats
from music_soup.sync.policy import UpsertPolicy
from music_soup.sync.resolver import IdentityResolver


logger = get_logger(__name__)

DEFAULT_PACING_DELAY = 0.1


class PlaylistSyncDriver:
    """
    Syncs playlists of one source into the sink.

    Attributes:
        client: Source client the playlists are read from.
        resolver: Finds existing Records.
        policy: Writes (or skips) Records.
        pacing_delay: Seconds awaited after each track upsert.
    """

    def __init__(
        self,
        client: SourceClient,
        resolver: IdentityResolver,
        policy: UpsertPolicy,
        pacing_delay: float = DEFAULT_PACING_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ) -> None:
        self.client = client
        self.resolver = resolver
        self.policy = policy
        self.pacing_delay = pacing_delay
        self._sleep = sleep
        self._normalizer = get_normalizer(client.source)

    async def sync(self, playlist: PlaylistRef) -> SourceStats:
        """
        Sync one playlist.

        Args:
            playlist: Playlist to sync; its source must match the client's.

        Returns:
            Counters for this playlist.

        Raises:
            SourceUnavailableError: If the source fails its health check.
            SourceError: If the playlist's tracks cannot be fetched.
        """
        source = self.client.source.value

        if not await self.client.check_health():
            raise SourceUnavailableError(
                f"{source} is unavailable, skipping playlist {playlist.playlist_id}",
                details={"playlist_id": playlist.playlist_id},
                source=source
            )

        meta = await fetch_playlist_meta(self.client, playlist.playlist_id)
        raw_tracks = await self.client.get_playlist_tracks(playlist.playlist_id)
        logger.info(
            f"Syncing {source} playlist '{meta.name}' ({playlist.playlist_type.value}): "
            f"{len(raw_tracks)} tracks"
        )

        stats = SourceStats()
        for raw in tqdm(raw_tracks, desc=meta.name, unit="track", leave=False, disable=None):
            track = await self._sync_track(raw, playlist, meta.name, stats)
            if track is not None and self.pacing_delay > 0:
                await self._sleep(self.pacing_delay)

        logger.info(f"{source} playlist '{meta.name}': {stats.summary}")
        return stats

    async def _sync_track(
        self,
        raw: dict[str, Any],
        playlist: PlaylistRef,
        playlist_name: str,
        stats: SourceStats
    ) -> Track | None:
        """
        Normalize, resolve and upsert one raw track, updating stats.

        Returns the Track once it was normalized (whether or not the write
        succeeded), or None if normalization failed.
        """
        track: Track | None = None
        try:
            track = self._normalizer.normalize(
                raw, playlist.playlist_id, playlist.playlist_type, playlist_name
            )
            existing = await self.resolver.resolve(track)
            result = await self.policy.apply(track, existing)
        except Exception as e:
            stats.errors += 1
            title, source_id = _describe(raw, track)
            reason = str(e) if isinstance(e, MusicSoupError) else f"Unexpected error: {type(e).__name__}: {e}"
            log_sync_failure(logger, title, self.client.source.value, source_id, reason)
            return track

        stats.record(result)
        return track


def _describe(raw: dict[str, Any], track: Track | None) -> tuple[str, str]:
    """Best-effort (title, source id) of a track for failure reports."""
    if track is not None:
        return track.title, track.source_id
    if not isinstance(raw, dict):
        return "<untitled>", "<no id>"
    attrs = raw.get("attributes") or {}
    title = raw.get("name") or attrs.get("name") or "<untitled>"
    return title, str(raw.get("id") or "<no id>")
