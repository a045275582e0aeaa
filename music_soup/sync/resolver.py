"""
Identity resolution: find the Record that already represents a Track.

Matching runs in two steps:

    1. ISRC: if the track has one, query Records whose ISRC contains it.
       The first result (newest-created) wins.
    2. Title + artist: query Records whose title contains the track title,
       then keep the first whose artist (lowercased) contains the track's
       artist (lowercased). Needs both a title and an artist.

No match gives None. The sink is queried afresh for every track; nothing is
cached between resolutions, so a Record created earlier in the same run is
found by later tracks.

A failing sink query never aborts a sync: it is logged and treated as
"no match".

The comparison rules live in a MatchStrategy so the substring behavior
(the default) can be replaced without touching the resolver.
"""

from music_soup.core.exceptions import SinkError
from music_soup.core.logger import get_logger
from music_soup.notion.client import RecordSink
from music_soup.notion.models import Record, SinkFilter
from music_soup.sources.models import Track


logger = get_logger(__name__)


class MatchStrategy:
    """
    Comparison rules used by IdentityResolver.

    The default implementation uses substring matching for both the ISRC
    and the title/artist fallback.
    """

    name = "substring"

    def isrc_filter(self, isrc: str) -> SinkFilter:
        return SinkFilter("isrc", "contains", isrc)

    def accept_isrc(self, track: Track, candidate: Record) -> bool:
        return True

    def title_filter(self, title: str) -> SinkFilter:
        return SinkFilter("title", "contains", title)

    def accept_title_artist(self, track: Track, candidate: Record) -> bool:
        """Candidate artist, lowercased, contains the track artist, lowercased."""
        if not track.artist or not candidate.artist:
            return False
        return track.artist.lower() in candidate.artist.lower()


class SubstringMatchStrategy(MatchStrategy):
    pass


class ExactIsrcMatchStrategy(MatchStrategy):
    """Like the default, but an ISRC must be equal, not merely contained."""

    name = "exact"

    def isrc_filter(self, isrc: str) -> SinkFilter:
        return SinkFilter("isrc", "equals", isrc)

    def accept_isrc(self, track: Track, candidate: Record) -> bool:
        return candidate.isrc == track.isrc


_STRATEGIES: dict[str, type[MatchStrategy]] = {
    SubstringMatchStrategy.name: SubstringMatchStrategy,
    ExactIsrcMatchStrategy.name: ExactIsrcMatchStrategy,
}


def get_match_strategy(name: str) -> MatchStrategy:
    """
    Return a match strategy by its configuration name.

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        return _STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown match strategy {name!r}. Valid: {', '.join(_STRATEGIES)}"
        ) from None


class IdentityResolver:
    """
    Finds the existing Record for a Track.

    Example:
        resolver = IdentityResolver(sink)
        record = await resolver.resolve(track)
        if record is None:
            ...  # new track
    """

    def __init__(self, sink: RecordSink, strategy: MatchStrategy | None = None) -> None:
        self.sink = sink
        self.strategy = strategy or SubstringMatchStrategy()

    async def resolve(self, track: Track) -> Record | None:
        """
        Return the Record representing this track, or None.

        Never raises: sink failures are logged and treated as no match.
        """
        if track.isrc:
            record = await self._match_isrc(track)
            if record is not None:
                return record

        if track.title and track.artist:
            return await self._match_title_artist(track)
        return None

    async def _match_isrc(self, track: Track) -> Record | None:
        candidates = await self._query(self.strategy.isrc_filter(track.isrc), track)
        for candidate in candidates:
            if self.strategy.accept_isrc(track, candidate):
                logger.debug(f"Matched '{track.title}' by ISRC to {candidate.id}")
                return candidate
        return None

    async def _match_title_artist(self, track: Track) -> Record | None:
        candidates = await self._query(self.strategy.title_filter(track.title), track)
        for candidate in candidates:
            if self.strategy.accept_title_artist(track, candidate):
                logger.debug(f"Matched '{track.title}' by title/artist to {candidate.id}")
                return candidate
        return None

    async def _query(self, sink_filter: SinkFilter, track: Track) -> list[Record]:
        try:
            return await self.sink.query(sink_filter)
        except SinkError as e:
            logger.warning(
                f"Lookup of '{track.title}' ({track.source_id}) by {sink_filter.field} failed, "
                f"treating as no match: {e}"
            )
            return []
        except Exception as e:
            logger.error(
                f"Unexpected error looking up '{track.title}' ({track.source_id}) "
                f"by {sink_filter.field}, treating as no match: {e}"
            )
            return []
