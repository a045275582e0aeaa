"""Test the Spotify client with a mocked spotipy instance"""

from unittest.mock import MagicMock

import pytest
import spotipy

from music_soup.core.config import SpotifyConfig
from music_soup.core.exceptions import SourceError
from music_soup.core.tokens import TokenCache
from music_soup.sources.spotify import TOKEN_CACHE_KEY, SpotifyClient, TokenCacheHandler


@pytest.fixture
def config():
    return SpotifyConfig(client_id="client", client_secret="secret", refresh_token="refresh")


@pytest.fixture
def spotify():
    return MagicMock(spec=spotipy.Spotify)


def item(track_id, item_type="track"):
    return {"track": {"id": track_id, "type": item_type, "name": f"Track {track_id}"}}


class TestSpotifyClient:
    """Test SpotifyClient"""

    @pytest.mark.asyncio
    async def test_tracks_paginate_and_filter(self, config, spotify):
        """Test that all pages are read and episodes / null tracks are skipped"""
        first_page = {"items": [item("t1"), {"track": None}, item("e1", "episode")], "next": "https://api/next"}
        second_page = {"items": [item("t2")], "next": None}
        spotify.playlist_items.return_value = first_page
        spotify.next.return_value = second_page

        client = SpotifyClient(config, TokenCache(), spotify=spotify)
        tracks = await client.get_playlist_tracks("pl1")

        assert [t["id"] for t in tracks] == ["t1", "t2"]
        spotify.playlist_items.assert_called_once_with("pl1", limit=100, additional_types=("track",))
        spotify.next.assert_called_once_with(first_page)

    @pytest.mark.asyncio
    async def test_playlist_meta(self, config, spotify):
        spotify.playlist.return_value = {"name": "Favorites", "tracks": {"total": 42}}

        meta = await SpotifyClient(config, TokenCache(), spotify=spotify).get_playlist_meta("pl1")

        assert (meta.name, meta.track_count) == ("Favorites", 42)

    @pytest.mark.asyncio
    async def test_not_found(self, config, spotify):
        spotify.playlist_items.side_effect = spotipy.SpotifyException(404, -1, "Not found")

        with pytest.raises(SourceError) as exc_info:
            await SpotifyClient(config, TokenCache(), spotify=spotify).get_playlist_tracks("pl1")

        assert exc_info.value.details["http_status"] == 404
        assert not exc_info.value.is_auth_error

    @pytest.mark.asyncio
    async def test_unauthorized_retried_once(self, config, spotify):
        """Test that a 401 drops the cached token and retries"""
        cache = TokenCache()
        cache.set(TOKEN_CACHE_KEY, {"access_token": "stale"}, expires_at=float("inf"))
        spotify.playlist.side_effect = [
            spotipy.SpotifyException(401, -1, "The access token expired"),
            {"name": "Favorites", "tracks": {"total": 1}},
        ]

        meta = await SpotifyClient(config, cache, spotify=spotify).get_playlist_meta("pl1")

        assert meta.name == "Favorites"
        assert TOKEN_CACHE_KEY not in cache

    @pytest.mark.asyncio
    async def test_health(self, config, spotify):
        client = SpotifyClient(config, TokenCache(), spotify=spotify)
        assert await client.check_health() is True

        spotify.current_user.side_effect = spotipy.SpotifyException(403, -1, "Forbidden")
        assert await client.check_health() is False


class TestTokenCacheHandler:
    """Test the spotipy cache handler backed by TokenCache"""

    def test_seed_before_first_refresh(self):
        handler = TokenCacheHandler(TokenCache(), "refresh")
        token_info = handler.get_cached_token()
        assert token_info["refresh_token"] == "refresh"
        assert token_info["expires_at"] == 0

    def test_saved_token_returned(self):
        cache = TokenCache()
        handler = TokenCacheHandler(cache, "refresh")
        handler.save_token_to_cache({"access_token": "abc", "refresh_token": "refresh", "expires_at": 9999999999})

        assert handler.get_cached_token()["access_token"] == "abc"
        assert cache.get(TOKEN_CACHE_KEY)["access_token"] == "abc"
