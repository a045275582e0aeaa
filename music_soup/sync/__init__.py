"""
Sync engine for music-soup.

This module provides:
    - models: Upsert modes/results and run statistics
    - resolver: Finds the Record that already represents a Track
    - policy: Creates, updates or skips Records
    - driver: Syncs one playlist end to end
    - cleanup: Marks Records of tracks that left every playlist as removed
    - orchestrator: Runs all playlists, then cleanup

Usage:
    from music_soup.sync import SyncOrchestrator

    orchestrator = SyncOrchestrator.from_config(config)
    summary = await orchestrator.full_sync()
"""

from music_soup.sync.cleanup import CleanupReconciler
from music_soup.sync.driver import PlaylistSyncDriver
from music_soup.sync.models import (
    CleanupStats,
    RunSummary,
    SourceStats,
    UpsertMode,
    UpsertResult,
)
from music_soup.sync.orchestrator import HealthReport, SyncOrchestrator
from music_soup.sync.policy import UpsertPolicy
from music_soup.sync.resolver import (
    ExactIsrcMatchStrategy,
    IdentityResolver,
    MatchStrategy,
    SubstringMatchStrategy,
    get_match_strategy,
)

__all__ = [
    # Models
    "UpsertMode",
    "UpsertResult",
    "SourceStats",
    "CleanupStats",
    "RunSummary",
    # Engine
    "MatchStrategy",
    "SubstringMatchStrategy",
    "ExactIsrcMatchStrategy",
    "get_match_strategy",
    "IdentityResolver",
    "UpsertPolicy",
    "PlaylistSyncDriver",
    "CleanupReconciler",
    "SyncOrchestrator",
    "HealthReport",
]
