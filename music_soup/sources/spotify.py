"""
Spotify API client for music-soup.

This module wraps the spotipy library behind the async SourceClient
contract used by the sync engine.

Authentication:
    Refresh-token flow only. The refresh token is obtained once, outside
    this tool, and stored in SPOTIFY_REFRESH_TOKEN. spotipy's SpotifyOAuth
    exchanges it for access tokens; its token storage is a cache handler
    backed by the TokenCache injected into the client, so no token ever
    lives in module state or on disk.

Retries:
    spotipy retries 429 and 5xx responses itself (honouring Retry-After).
    A 401 drops the cached access token and retries once with a freshly
    refreshed one.

Threading:
    spotipy is synchronous. Every call runs in a worker thread through
    asyncio.to_thread(), one call at a time.

Usage:
    client = SpotifyClient(config.spotify, TokenCache())
    if await client.check_health():
        tracks = await client.get_playlist_tracks("37i9dQZF1DXcBWIGoYBM5M")
"""

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import requests
import spotipy
from spotipy.cache_handler import CacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from music_soup.core.exceptions import SourceError
from music_soup.core.logger import get_logger
from music_soup.core.tokens import TokenCache
from music_soup.sources.models import PlaylistMeta, Source

if TYPE_CHECKING:
    from music_soup.core.config import SpotifyConfig


logger = get_logger(__name__)

TOKEN_CACHE_KEY = "spotify"
SCOPE = "playlist-read-private playlist-read-collaborative"
# Never visited: the refresh-token flow has no browser step
REDIRECT_URI = "http://127.0.0.1:8888/callback"
PAGE_SIZE = 100
REQUEST_TIMEOUT = 30
MAX_RETRIES = 3


class TokenCacheHandler(CacheHandler):
    """
    spotipy cache handler that stores token_info in a TokenCache.

    Until the first refresh the cache holds a seed entry with an empty,
    already-expired access token and the configured refresh token, which
    makes spotipy refresh instead of starting an interactive OAuth flow.
    """

    def __init__(self, token_cache: TokenCache, refresh_token: str) -> None:
        self.token_cache = token_cache
        self.refresh_token = refresh_token

    def seed(self) -> dict[str, Any]:
        return {
            "access_token": "",
            "token_type": "Bearer",
            "refresh_token": self.refresh_token,
            "scope": SCOPE,
            "expires_in": 0,
            "expires_at": 0,
        }

    def get_cached_token(self) -> dict[str, Any]:
        token_info = self.token_cache.peek(TOKEN_CACHE_KEY)
        if token_info is None:
            return self.seed()
        return token_info

    def save_token_to_cache(self, token_info: dict[str, Any]) -> None:
        self.token_cache.set(
            TOKEN_CACHE_KEY,
            dict(token_info),
            expires_at=float(token_info.get("expires_at") or 0)
        )


class SpotifyClient:
    """
    Async Spotify catalog client.

    Attributes:
        source: Always Source.SPOTIFY.
    """

    source = Source.SPOTIFY

    def __init__(
        self,
        config: "SpotifyConfig",
        token_cache: TokenCache,
        spotify: spotipy.Spotify | None = None
    ) -> None:
        """
        Args:
            config: Spotify credentials.
            token_cache: Cache that holds the access token between calls.
            spotify: Pre-built spotipy instance (tests). Built from the
                     credentials when None.
        """
        self.token_cache = token_cache
        if spotify is None:
            auth_manager = SpotifyOAuth(
                client_id=config.client_id,
                client_secret=config.client_secret,
                redirect_uri=REDIRECT_URI,
                scope=SCOPE,
                cache_handler=TokenCacheHandler(token_cache, config.refresh_token),
                open_browser=False
            )
            spotify = spotipy.Spotify(
                auth_manager=auth_manager,
                requests_timeout=REQUEST_TIMEOUT,
                retries=MAX_RETRIES,
                status_retries=MAX_RETRIES
            )
        self._spotify = spotify

    # =========================================================================
    # SourceClient contract
    # =========================================================================

    async def check_health(self) -> bool:
        """
        Return True if an authenticated request succeeds.

        Never raises; failures are logged and reported as unhealthy.
        """
        try:
            await self._call(self._spotify.current_user)
        except SourceError as e:
            logger.error(f"Spotify health check failed: {e}")
            return False
        return True

    async def get_playlist_meta(self, playlist_id: str) -> PlaylistMeta:
        """
        Get the playlist's name and track count.

        Raises:
            SourceError: If the playlist is not found, private, or the
                         request fails.
        """
        result = await self._call(
            self._spotify.playlist, playlist_id, fields="name,tracks.total"
        )
        if result is None:
            raise SourceError(
                f"Playlist not found: {playlist_id}",
                details={"playlist_id": playlist_id},
                source=self.source.value
            )
        total = (result.get("tracks") or {}).get("total")
        return PlaylistMeta(name=result.get("name") or playlist_id, track_count=total)

    async def get_playlist_tracks(self, playlist_id: str) -> list[dict[str, Any]]:
        """
        Get ALL track objects of a playlist, handling pagination.

        Returns:
            The "track" object of every playlist item whose type is
            "track". Removed/unavailable entries (track is null) and
            podcast episodes are skipped.

        Raises:
            SourceError: If any page cannot be fetched.
        """
        page = await self._call(
            self._spotify.playlist_items,
            playlist_id,
            limit=PAGE_SIZE,
            additional_types=("track",)
        )

        tracks: list[dict[str, Any]] = []
        while page:
            for item in page.get("items") or []:
                track = item.get("track")
                if track and track.get("type", "track") == "track":
                    tracks.append(track)

            if not page.get("next"):
                break
            page = await self._call(self._spotify.next, page)

        logger.debug(f"Fetched {len(tracks)} tracks from Spotify playlist {playlist_id}")
        return tracks

    # =========================================================================
    # Internals
    # =========================================================================

    async def _call(self, method: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(self._call_sync, method, *args, **kwargs)

    def _call_sync(self, method: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run one spotipy call. A 401 invalidates the cached token and retries once.
        """
        try:
            return self._invoke(method, *args, **kwargs)
        except SourceError as e:
            if e.details.get("http_status") != 401:
                raise
            logger.warning("Spotify rejected the access token, refreshing")
            self.token_cache.invalidate(TOKEN_CACHE_KEY)
            return self._invoke(method, *args, **kwargs)

    def _invoke(self, method: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run one spotipy call, translating its errors into SourceError."""
        try:
            return method(*args, **kwargs)
        except spotipy.SpotifyException as e:
            raise self._wrap_spotify_exception(e) from e
        except SpotifyOauthError as e:
            raise SourceError(
                f"Spotify token refresh failed: {e}",
                details={"original_error": str(e)},
                source=self.source.value,
                is_auth_error=True
            ) from e
        except requests.RequestException as e:
            raise SourceError(
                f"Spotify request failed: {e}",
                details={"original_error": str(e)},
                source=self.source.value
            ) from e

    def _wrap_spotify_exception(self, e: spotipy.SpotifyException) -> SourceError:
        status = e.http_status
        details = {"http_status": status, "url": getattr(e, "url", None), "original_error": str(e)}

        if status == 429:
            return SourceError(
                "Rate limited by Spotify",
                details=details,
                source=self.source.value,
                is_rate_limit=True
            )
        if status in (401, 403):
            return SourceError(
                f"Spotify authorization failed: {e.msg}",
                details=details,
                source=self.source.value,
                is_auth_error=True
            )
        if status == 404:
            return SourceError(
                f"Spotify resource not found: {e.msg}",
                details=details,
                source=self.source.value
            )
        return SourceError(
            f"Spotify API error: {e.msg}",
            details=details,
            source=self.source.value
        )
