"""Test configuration, fixtures and in-memory fakes of the sync collaborators"""

from datetime import datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest

from music_soup.core.exceptions import SinkError, SourceError
from music_soup.notion.models import Record, SinkFilter
from music_soup.notion.schema import FIELDS, to_properties
from music_soup.sources.models import PlaylistMeta, PlaylistRef, PlaylistType, Source


def filter_matches(sink_filter: SinkFilter, record: Record) -> bool:
    """Evaluate a SinkFilter against a Record the way the Notion query would"""
    actual = getattr(record, sink_filter.field, None)
    actual = getattr(actual, "value", actual)
    expected = getattr(sink_filter.value, "value", sink_filter.value)
    if sink_filter.operator == "contains":
        return actual is not None and str(expected) in str(actual)
    return actual == expected


class FakeSink:
    """
    In-memory RecordSink.

    Pages are stored as Notion property payloads built with the real schema
    conversion, so every write goes through to_properties() and every read
    through Record.from_notion_page(), like with the Notion client.
    """

    def __init__(self) -> None:
        self.pages: list[dict[str, Any]] = []
        self.created: list[dict[str, Any]] = []
        self.updated: list[tuple[str, dict[str, Any]]] = []
        self.removed: list[str] = []
        self.queries: list[SinkFilter | None] = []
        self.query_error: Exception | None = None
        self.fail_titles: set[str] = set()
        self.fail_removed_ids: set[str] = set()
        self._clock = datetime(2024, 1, 1)

    @property
    def mutations(self) -> int:
        return len(self.created) + len(self.updated) + len(self.removed)

    @property
    def records(self) -> list[Record]:
        """Every stored Record, oldest first."""
        return [Record.from_notion_page(page) for page in self.pages]

    def add(self, **fields: Any) -> Record:
        """Seed a Record without counting it as a mutation."""
        return Record.from_notion_page(self._insert(fields))

    def get(self, record_id: str) -> Record:
        for page in self.pages:
            if page["id"] == record_id:
                return Record.from_notion_page(page)
        raise KeyError(record_id)

    async def query(self, sink_filter: SinkFilter | None = None, limit: int | None = None) -> list[Record]:
        self.queries.append(sink_filter)
        if self.query_error is not None:
            raise self.query_error
        records = [r for r in reversed(self.records) if sink_filter is None or filter_matches(sink_filter, r)]
        return records[:limit] if limit is not None else records

    async def create(self, fields: dict[str, Any]) -> Record:
        if fields.get("title") in self.fail_titles:
            raise SinkError("create rejected", status_code=400)
        self.created.append(dict(fields))
        return Record.from_notion_page(self._insert(fields))

    async def update(self, record_id: str, fields: dict[str, Any]) -> Record:
        if fields.get("title") in self.fail_titles:
            raise SinkError("update rejected", status_code=400)
        self.updated.append((record_id, dict(fields)))
        return self._patch(record_id, fields)

    async def set_removed(self, record_id: str) -> Record:
        if record_id in self.fail_removed_ids:
            raise SinkError("update rejected", status_code=409)
        self.removed.append(record_id)
        return self._patch(record_id, {"removed": True})

    async def get_schema(self) -> dict[str, Any]:
        return {
            spec.name: {"id": name, "name": spec.name, "type": spec.type}
            for name, spec in FIELDS.items()
        }

    def _insert(self, fields: dict[str, Any]) -> dict[str, Any]:
        self._clock += timedelta(minutes=1)
        page = {
            "id": f"page-{len(self.pages) + 1}",
            "created_time": self._clock.isoformat() + "Z",
            "properties": to_properties(fields),
        }
        self.pages.append(page)
        return page

    def _patch(self, record_id: str, fields: dict[str, Any]) -> Record:
        for page in self.pages:
            if page["id"] == record_id:
                page["properties"].update(to_properties(fields))
                return Record.from_notion_page(page)
        raise SinkError(f"Page {record_id} not found", status_code=404)


class FakeSourceClient:
    """In-memory SourceClient serving fixed playlists of raw records."""

    def __init__(
        self,
        source: Source,
        playlists: dict[str, list[dict[str, Any]]] | None = None,
        names: dict[str, str] | None = None,
        healthy: bool = True
    ) -> None:
        self.source = source
        self.playlists = playlists or {}
        self.names = names or {}
        self.healthy = healthy
        self.failing_playlists: set[str] = set()
        self.failing_meta: set[str] = set()

    async def check_health(self) -> bool:
        return self.healthy

    async def get_playlist_meta(self, playlist_id: str) -> PlaylistMeta:
        if playlist_id in self.failing_meta:
            raise SourceError("metadata unavailable", source=self.source.value)
        return PlaylistMeta(
            name=self.names.get(playlist_id, playlist_id),
            track_count=len(self.playlists.get(playlist_id, []))
        )

    async def get_playlist_tracks(self, playlist_id: str) -> list[dict[str, Any]]:
        if playlist_id in self.failing_playlists:
            raise SourceError(f"Playlist {playlist_id} not found", source=self.source.value)
        return list(self.playlists.get(playlist_id, []))


def spotify_track(
    track_id: str,
    name: str | None,
    artist: str | None = "Test Artist",
    isrc: str | None = None,
    duration_ms: int | None = 210000,
    album: str | None = "Test Album",
    release_date: str | None = "2023-01-01"
) -> dict[str, Any]:
    """Raw Spotify track object as found in a playlist item."""
    return {
        "id": track_id,
        "type": "track",
        "name": name,
        "artists": [{"id": f"artist-{artist}", "name": artist}] if artist else [],
        "album": {"name": album, "release_date": release_date},
        "duration_ms": duration_ms,
        "track_number": 3,
        "external_ids": {"isrc": isrc} if isrc else {},
        "external_urls": {"spotify": f"https://open.spotify.com/track/{track_id}"},
    }


def apple_song(
    song_id: str,
    name: str | None,
    artist: str | None = "Test Artist",
    isrc: str | None = None,
    duration_ms: int | None = 210000,
    composer: str | None = None
) -> dict[str, Any]:
    """Raw Apple Music song resource."""
    attributes = {
        "name": name,
        "artistName": artist,
        "albumName": "Test Album",
        "releaseDate": "2023-01-01",
        "trackNumber": 3,
        "durationInMillis": duration_ms,
        "isrc": isrc,
        "url": f"https://music.apple.com/us/song/{song_id}",
    }
    if composer:
        attributes["composerName"] = composer
    return {"id": song_id, "type": "songs", "attributes": attributes}


@pytest.fixture
def sink():
    """Empty in-memory sink"""
    return FakeSink()


@pytest.fixture
def sleep():
    """Awaitable sleep replacement that records the requested delays"""
    return AsyncMock()


@pytest.fixture
def spotify_playlist():
    return PlaylistRef(Source.SPOTIFY, "sp-playlist", PlaylistType.SOURCE)


@pytest.fixture
def apple_playlist():
    return PlaylistRef(Source.APPLE_MUSIC, "pl.apple-playlist", PlaylistType.SCORE)


@pytest.fixture
def env():
    """Minimal environment for load_config()"""
    return {
        "NOTION_KEY": "secret_notion",
        "NOTION_DB_ID": "db123",
    }
