"""
Upsert policy: decide and perform the write for one resolved track.

Decision table:

    mode       existing Record    action                          result
    ---------  -----------------  ------------------------------  -------
    update     none               create, removed=False           CREATED
    update     found              write automated fields,         UPDATED
                                  removed=False
    preserve   none               create, removed=False           CREATED
    preserve   found              nothing                         SKIPPED

Only the automated fields the Track actually carries are written; manual
annotation properties are never part of a write. Writing removed=False on
update revives a Record that cleanup had marked as removed.

In a dry run the same decision is made and returned, the intended write is
logged with a "DRY RUN:" prefix and the sink is not touched.

Sink write errors (SinkError) propagate to the caller, which counts them
as per-track errors.
"""

from music_soup.core.logger import get_logger
from music_soup.notion.client import RecordSink
from music_soup.notion.models import Record
from music_soup.sources.models import Track
from music_soup.sync.models import UpsertMode, UpsertResult


logger = get_logger(__name__)


class UpsertPolicy:
    """
    Applies the configured upsert mode to resolved tracks.

    Attributes:
        sink: Record store written to.
        mode: UPDATE or PRESERVE.
        dry_run: If True, decisions are logged but never written.
    """

    def __init__(
        self,
        sink: RecordSink,
        mode: UpsertMode = UpsertMode.UPDATE,
        dry_run: bool = False
    ) -> None:
        self.sink = sink
        self.mode = mode
        self.dry_run = dry_run

    async def apply(self, track: Track, existing: Record | None) -> UpsertResult:
        """
        Create, update or skip the Record for a track.

        Args:
            track: Normalized track.
            existing: Record returned by the identity resolver, or None.

        Returns:
            The decision taken (or that would be taken in a dry run).

        Raises:
            SinkError: If the sink rejects the write.
        """
        fields = track.automated_fields()
        fields["removed"] = False

        if existing is None:
            if self.dry_run:
                logger.info(f"DRY RUN: Would create '{track.title}' ({track.source.value})")
            else:
                record = await self.sink.create(fields)
                logger.debug(f"Created record {record.id} for '{track.title}'")
            return UpsertResult.CREATED

        if self.mode is UpsertMode.PRESERVE:
            logger.debug(f"Preserving existing record {existing.id} for '{track.title}'")
            return UpsertResult.SKIPPED

        if self.dry_run:
            logger.info(f"DRY RUN: Would update '{track.title}' (record {existing.id})")
        else:
            await self.sink.update(existing.id, fields)
            logger.debug(f"Updated record {existing.id} for '{track.title}'")
        return UpsertResult.UPDATED
