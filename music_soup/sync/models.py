"""
Result and statistics types for the sync engine.

The counters in this module are the only state shared between playlists
during a run. They are appended to by the single asyncio task that drives
the run, so no locking is involved.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from music_soup.sources.models import Source


class UpsertMode(str, Enum):
    """
    Policy for tracks that already have a Record.

    UPDATE overwrites the automated fields; PRESERVE leaves the Record
    untouched so manual edits survive.
    """

    UPDATE = "update"
    PRESERVE = "preserve"


class UpsertResult(str, Enum):
    """Outcome of applying the upsert policy to one track."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass
class SourceStats:
    """
    Per-source (or per-playlist) sync counters.

    Attributes:
        created: Records created (or that would be created in a dry run).
        updated: Records whose automated fields were overwritten.
        skipped: Existing Records left untouched in preserve mode.
        errors: Tracks that failed, plus one per playlist that failed as a whole.
    """
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def record(self, result: UpsertResult) -> None:
        """Count one upsert outcome."""
        if result is UpsertResult.CREATED:
            self.created += 1
        elif result is UpsertResult.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1

    def merge(self, other: "SourceStats") -> None:
        """Add another set of counters into this one."""
        self.created += other.created
        self.updated += other.updated
        self.skipped += other.skipped
        self.errors += other.errors

    @property
    def processed(self) -> int:
        """Tracks that reached a decision without error."""
        return self.created + self.updated + self.skipped

    def to_dict(self) -> dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
        }

    @property
    def summary(self) -> str:
        """
        Generate a human-readable summary of the counters.

        Returns:
            String summary, e.g. "3 created, 2 updated, 1 error"
            Returns "No changes" if nothing happened.
        """
        parts = []
        if self.created:
            parts.append(f"{self.created} created")
        if self.updated:
            parts.append(f"{self.updated} updated")
        if self.skipped:
            parts.append(f"{self.skipped} skipped")
        if self.errors:
            parts.append(f"{self.errors} error{'s' if self.errors != 1 else ''}")
        return ", ".join(parts) if parts else "No changes"


@dataclass
class CleanupStats:
    """Counters produced by the cleanup reconciler."""
    marked: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"marked": self.marked, "errors": self.errors}


@dataclass
class RunSummary:
    """
    Structured summary of one run, reported to the caller.

    Attributes:
        by_source: Counters per source. Only sources that were synced appear.
        total_duration: Wall-clock seconds of the whole run.
        cleanup: Cleanup counters, or None when cleanup did not run.
        dry_run: Whether sink writes were suppressed.
    """
    by_source: dict[Source, SourceStats] = field(default_factory=dict)
    total_duration: float = 0.0
    cleanup: CleanupStats | None = None
    dry_run: bool = False

    def stats_for(self, source: Source) -> SourceStats:
        """Return the counters of a source, creating them on first use."""
        if source not in self.by_source:
            self.by_source[source] = SourceStats()
        return self.by_source[source]

    @property
    def total(self) -> SourceStats:
        """Counters summed over all sources."""
        total = SourceStats()
        for stats in self.by_source.values():
            total.merge(stats)
        return total

    @property
    def total_errors(self) -> int:
        cleanup_errors = self.cleanup.errors if self.cleanup else 0
        return self.total.errors + cleanup_errors

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to the plain-dict shape handed to callers.

        Example:
            {
                "bySource": {"Spotify": {"created": 1, "updated": 2, "skipped": 0, "errors": 0}},
                "totalDuration": 12.4,
                "cleanup": {"marked": 1, "errors": 0},
                "dryRun": False,
            }
        """
        return {
            "bySource": {
                source.value: stats.to_dict()
                for source, stats in self.by_source.items()
            },
            "totalDuration": round(self.total_duration, 3),
            "cleanup": self.cleanup.to_dict() if self.cleanup else None,
            "dryRun": self.dry_run,
        }
