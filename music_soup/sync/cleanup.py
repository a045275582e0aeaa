"""
Cleanup reconciler: soft-delete Records whose track left every playlist.

Workflow:
    1. Query every Record with removed=False
    2. Re-fetch the live tracks of every configured playlist and collect
       their identity keys (ISRC, if present, and lowercased "title:artist")
       into one set
    3. For each Record:
       a. Skip it if its Source is externally managed ("Manual", "Other")
       b. Keep it if its ISRC or composite key is live
       c. Otherwise set removed=True

A playlist whose re-fetch fails contributes nothing to the live set. This
can mark Records of that playlist as removed; the next successful sync
revives them, since every upsert writes removed=False.

Records are never deleted.
"""

from collections.abc import Iterable, Mapping

from music_soup.core.logger import get_logger
from music_soup.notion.client import RecordSink
from music_soup.notion.models import Record, SinkFilter
from music_soup.sources.base import SourceClient
from music_soup.sources.models import PlaylistRef, Source
from music_soup.sources.normalizer import get_normalizer
from music_soup.sync.models import CleanupStats


logger = get_logger(__name__)


class CleanupReconciler:
    """
    Marks stale Records as removed.

    Attributes:
        sink: Record store.
        clients: Source client per catalog. Playlists of a catalog without
                 a client contribute nothing to the live set.
        playlists: Every configured playlist.
        externally_managed_sources: Record "Source" values never marked.
        dry_run: Count marks without writing them.
    """

    def __init__(
        self,
        sink: RecordSink,
        clients: Mapping[Source, SourceClient],
        playlists: Iterable[PlaylistRef],
        externally_managed_sources: Iterable[str] = ("Manual", "Other"),
        dry_run: bool = False
    ) -> None:
        self.sink = sink
        self.clients = dict(clients)
        self.playlists = tuple(playlists)
        self.externally_managed_sources = frozenset(externally_managed_sources)
        self.dry_run = dry_run

    async def reconcile(self) -> CleanupStats:
        """
        Run one cleanup pass.

        Returns:
            CleanupStats with the number of Records marked (or that would be
            marked in a dry run) and the number of failures.
        """
        stats = CleanupStats()

        try:
            records = await self.sink.query(SinkFilter("removed", "equals", False))
        except Exception as e:
            logger.error(f"Cleanup aborted, could not query active records: {e}")
            stats.errors += 1
            return stats

        live_keys = await self.collect_live_keys()
        logger.info(
            f"Cleanup: checking {len(records)} active records against "
            f"{len(live_keys)} live identity keys"
        )

        for record in records:
            if not self.is_stale(record, live_keys):
                continue

            if self.dry_run:
                logger.info(f"DRY RUN: Would mark '{record.title}' ({record.id}) as removed")
                stats.marked += 1
                continue

            try:
                await self.sink.set_removed(record.id)
            except Exception as e:
                logger.error(f"Failed to mark '{record.title}' ({record.id}) as removed: {e}")
                stats.errors += 1
                continue

            logger.info(f"Marked '{record.title}' ({record.id}) as removed")
            stats.marked += 1

        return stats

    def is_stale(self, record: Record, live_keys: set[str]) -> bool:
        """True if the Record is not externally managed and none of its keys are live."""
        if record.source in self.externally_managed_sources:
            return False
        if record.isrc and record.isrc in live_keys:
            return False
        if record.composite_key is not None and record.composite_key in live_keys:
            return False
        return True

    async def collect_live_keys(self) -> set[str]:
        """
        Identity keys of every track currently in a configured playlist.

        Failing playlists are logged and skipped.
        """
        live_keys: set[str] = set()

        for playlist in self.playlists:
            client = self.clients.get(playlist.source)
            if client is None:
                logger.warning(
                    f"No {playlist.source.value} client, playlist {playlist.playlist_id} "
                    f"contributes no live tracks"
                )
                continue

            try:
                raw_tracks = await client.get_playlist_tracks(playlist.playlist_id)
            except Exception as e:
                logger.warning(
                    f"Could not re-fetch {playlist.source.value} playlist "
                    f"{playlist.playlist_id} for cleanup, treating it as empty: {e}"
                )
                continue

            normalizer = get_normalizer(playlist.source)
            for raw in raw_tracks:
                try:
                    track = normalizer.normalize(
                        raw, playlist.playlist_id, playlist.playlist_type, report_gaps=False
                    )
                except Exception as e:
                    logger.debug(f"Ignoring unreadable track in {playlist.playlist_id}: {e}")
                    continue
                live_keys.update(track.identity_keys)

        return live_keys
