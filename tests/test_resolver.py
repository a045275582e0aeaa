"""Test identity resolution"""

import pytest

from music_soup.core.exceptions import SinkError
from music_soup.sources.models import PlaylistType, Source, Track
from music_soup.sync.resolver import (
    ExactIsrcMatchStrategy,
    IdentityResolver,
    SubstringMatchStrategy,
    get_match_strategy,
)


def make_track(title="Song", artist="Artist", isrc=None):
    return Track(
        source=Source.SPOTIFY,
        source_id="t1",
        title=title,
        playlist_name="Favorites",
        playlist_type=PlaylistType.SOURCE,
        artist=artist,
        isrc=isrc,
    )


class TestIsrcMatch:
    """Test the primary ISRC key"""

    @pytest.mark.asyncio
    async def test_isrc_wins_over_title_and_artist(self, sink):
        """Test a Record with the same ISRC is found regardless of title/artist"""
        existing = sink.add(title="Completely Different", artist="Someone Else", isrc="GBUM71029604")

        record = await IdentityResolver(sink).resolve(make_track(isrc="GBUM71029604"))

        assert record is not None
        assert record.id == existing.id

    @pytest.mark.asyncio
    async def test_isrc_substring_semantics(self, sink):
        """Test the default strategy matches stored values that contain the ISRC"""
        existing = sink.add(title="Song", artist="Artist", isrc="GBUM71029604 / USRC17607839")

        record = await IdentityResolver(sink).resolve(make_track(title="Other", isrc="USRC17607839"))

        assert record.id == existing.id

    @pytest.mark.asyncio
    async def test_newest_record_first(self, sink):
        """Test that the newest-created Record wins when several match"""
        sink.add(title="Song", artist="Artist", isrc="GBUM71029604")
        newest = sink.add(title="Song", artist="Artist", isrc="GBUM71029604")

        record = await IdentityResolver(sink).resolve(make_track(isrc="GBUM71029604"))

        assert record.id == newest.id

    @pytest.mark.asyncio
    async def test_isrc_miss_falls_back_to_title(self, sink):
        existing = sink.add(title="Song", artist="Artist")

        record = await IdentityResolver(sink).resolve(make_track(isrc="GBUM71029604"))

        assert record.id == existing.id
        assert [q.field for q in sink.queries] == ["isrc", "title"]


class TestTitleArtistMatch:
    """Test the title + artist fallback"""

    @pytest.mark.asyncio
    async def test_title_and_artist_substrings(self, sink):
        """Test candidate artist containing the track artist, case-insensitively"""
        existing = sink.add(title="Song (Remastered)", artist="The ARTIST & Friends")

        record = await IdentityResolver(sink).resolve(make_track(title="Song", artist="artist"))

        assert record.id == existing.id

    @pytest.mark.asyncio
    async def test_artist_mismatch(self, sink):
        """Test that a title match with another artist is not a match"""
        sink.add(title="Song", artist="Someone Else")

        assert await IdentityResolver(sink).resolve(make_track()) is None

    @pytest.mark.asyncio
    async def test_title_is_case_sensitive(self, sink):
        sink.add(title="SONG", artist="Artist")

        assert await IdentityResolver(sink).resolve(make_track()) is None

    @pytest.mark.asyncio
    async def test_no_artist_no_fallback(self, sink):
        """Test that a track without artist and ISRC is never matched"""
        sink.add(title="Song", artist="Artist")

        assert await IdentityResolver(sink).resolve(make_track(artist=None)) is None
        assert sink.queries == []

    @pytest.mark.asyncio
    async def test_fresh_query_every_time(self, sink):
        """Test that Records created between resolutions are seen"""
        resolver = IdentityResolver(sink)
        assert await resolver.resolve(make_track()) is None

        sink.add(title="Song", artist="Artist")

        assert await resolver.resolve(make_track()) is not None
        assert len(sink.queries) == 2


class TestSinkFailures:
    """Test that sink errors never escape"""

    @pytest.mark.asyncio
    async def test_query_error_is_no_match(self, sink):
        sink.add(title="Song", artist="Artist", isrc="GBUM71029604")
        sink.query_error = SinkError("Notion unavailable", status_code=502)

        assert await IdentityResolver(sink).resolve(make_track(isrc="GBUM71029604")) is None

    @pytest.mark.asyncio
    async def test_unexpected_error_is_no_match(self, sink):
        """Test that a non-sink exception from a lookup is also treated as no match"""
        sink.add(title="Song", artist="Artist", isrc="GBUM71029604")
        sink.query_error = ValueError("Expecting value: line 1 column 1 (char 0)")

        assert await IdentityResolver(sink).resolve(make_track(isrc="GBUM71029604")) is None
        assert len(sink.queries) == 2


class TestStrategies:
    """Test match strategy selection"""

    def test_get_match_strategy(self):
        assert isinstance(get_match_strategy("substring"), SubstringMatchStrategy)
        assert isinstance(get_match_strategy("exact"), ExactIsrcMatchStrategy)
        with pytest.raises(ValueError):
            get_match_strategy("fuzzy")

    @pytest.mark.asyncio
    async def test_exact_isrc(self, sink):
        """Test that the exact strategy ignores ISRCs that only contain the key"""
        sink.add(title="Other", artist="Other", isrc="GBUM71029604 / USRC17607839")
        exact = sink.add(title="Other", artist="Other", isrc="USRC17607839")
        resolver = IdentityResolver(sink, ExactIsrcMatchStrategy())

        record = await resolver.resolve(make_track(isrc="USRC17607839"))

        assert record.id == exact.id
        assert sink.queries[0].operator == "equals"
