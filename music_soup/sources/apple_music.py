"""
Apple Music API client for music-soup.

Talks to the Apple Music REST API with aiohttp and satisfies the async
SourceClient contract used by the sync engine.

Authentication:
    Every request carries two tokens:
        - Developer token: an ES256 JWT signed with the MusicKit private key
          (issuer = team id, "kid" header = key id), valid for six months.
          It is generated with PyJWT, kept in the injected TokenCache and
          regenerated one day before it expires or whenever the API
          answers 401/403.
        - Music-User-Token: taken from configuration, never refreshed here.

Playlists:
    Catalog playlists ("pl.") are read from the configured storefront,
    library playlists ("p.") from the user's library.

Usage:
    async with AppleMusicClient(config.apple_music, TokenCache()) as client:
        tracks = await client.get_playlist_tracks("pl.u-76oNlkVsvDMW1L")
"""

import time
from typing import TYPE_CHECKING, Any

import aiohttp
import jwt

from music_soup.core.exceptions import SourceError
from music_soup.core.http import DEFAULT_TIMEOUT, HttpRequestError, request_json
from music_soup.core.logger import get_logger
from music_soup.core.tokens import TokenCache
from music_soup.sources.models import PlaylistMeta, Source

if TYPE_CHECKING:
    from music_soup.core.config import AppleMusicConfig


logger = get_logger(__name__)

API_ROOT = "https://api.music.apple.com"
BASE_URL = f"{API_ROOT}/v1"
TOKEN_CACHE_KEY = "apple_music"
TOKEN_LIFETIME = 6 * 30 * 24 * 60 * 60  # Six months, the maximum Apple accepts
TOKEN_REFRESH_LEEWAY = 24 * 60 * 60
PAGE_SIZE = 100
SONG_TYPES = ("songs", "library-songs")


class AppleMusicClient:
    """
    Async Apple Music catalog client.

    The aiohttp session is opened on first use and closed by close() or
    by leaving the `async with` block.

    Attributes:
        source: Always Source.APPLE_MUSIC.
    """

    source = Source.APPLE_MUSIC

    def __init__(
        self,
        config: "AppleMusicConfig",
        token_cache: TokenCache,
        session: aiohttp.ClientSession | None = None
    ) -> None:
        self.config = config
        self.token_cache = token_cache
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "AppleMusicClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    # =========================================================================
    # Developer token
    # =========================================================================

    def developer_token(self) -> str:
        """
        Return a developer token valid for at least one more day.

        Raises:
            SourceError: If the private key cannot sign a token.
        """
        token = self.token_cache.get(TOKEN_CACHE_KEY, leeway=TOKEN_REFRESH_LEEWAY)
        if token is not None:
            return token
        return self._generate_developer_token()

    def _generate_developer_token(self) -> str:
        now = int(time.time())
        expires_at = now + TOKEN_LIFETIME
        payload = {"iss": self.config.team_id, "iat": now, "exp": expires_at}

        try:
            token = jwt.encode(
                payload,
                self.config.private_key,
                algorithm="ES256",
                headers={"kid": self.config.key_id}
            )
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise SourceError(
                f"Failed to generate Apple Music developer token: {e}",
                details={"team_id": self.config.team_id, "key_id": self.config.key_id},
                source=self.source.value,
                is_auth_error=True
            ) from e

        self.token_cache.set(TOKEN_CACHE_KEY, token, expires_at=expires_at)
        logger.info(
            f"Apple Music developer token generated "
            f"(key {self.config.key_id}, expires {time.strftime('%Y-%m-%d', time.gmtime(expires_at))})"
        )
        return token

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.developer_token()}",
            "Music-User-Token": self.config.user_token,
            "Content-Type": "application/json",
        }

    def _invalidate_token(self) -> None:
        self.token_cache.invalidate(TOKEN_CACHE_KEY)

    # =========================================================================
    # SourceClient contract
    # =========================================================================

    async def check_health(self) -> bool:
        """
        Return True if the catalog answers an authenticated request.

        Never raises; failures are logged and reported as unhealthy.
        """
        try:
            await self._get(f"{BASE_URL}/catalog/{self.config.storefront}/genres")
        except SourceError as e:
            logger.error(f"Apple Music health check failed: {e}")
            return False
        return True

    async def get_playlist_meta(self, playlist_id: str) -> PlaylistMeta:
        """
        Get the playlist's name and track count.

        Raises:
            SourceError: If the playlist is not found or the request fails.
        """
        data = await self._get(self._playlist_url(playlist_id), playlist_id=playlist_id)
        items = data.get("data") or []
        if not items:
            raise SourceError(
                f"Playlist {playlist_id} not found",
                details={"playlist_id": playlist_id},
                source=self.source.value
            )
        attrs = items[0].get("attributes") or {}
        return PlaylistMeta(
            name=attrs.get("name") or playlist_id,
            track_count=attrs.get("trackCount")
        )

    async def get_playlist_tracks(self, playlist_id: str) -> list[dict[str, Any]]:
        """
        Get ALL song resources of a playlist, following "next" links.

        Music videos and other non-song entries are skipped.

        Raises:
            SourceError: If any page cannot be fetched.
        """
        tracks: list[dict[str, Any]] = []
        url: str | None = f"{self._playlist_url(playlist_id)}/tracks?limit={PAGE_SIZE}"

        while url:
            data = await self._get(url, playlist_id=playlist_id)
            for resource in data.get("data") or []:
                if resource.get("type") in SONG_TYPES:
                    tracks.append(resource)

            next_path = data.get("next")
            url = f"{API_ROOT}{next_path}" if next_path else None

        logger.debug(f"Fetched {len(tracks)} tracks from Apple Music playlist {playlist_id}")
        return tracks

    # =========================================================================
    # Internals
    # =========================================================================

    def _playlist_url(self, playlist_id: str) -> str:
        if playlist_id.startswith("p."):
            return f"{BASE_URL}/me/library/playlists/{playlist_id}"
        return f"{BASE_URL}/catalog/{self.config.storefront}/playlists/{playlist_id}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=DEFAULT_TIMEOUT)
        return self._session

    async def _get(self, url: str, playlist_id: str | None = None) -> dict[str, Any]:
        """GET a URL, translating request failures into SourceError."""
        try:
            return await request_json(
                self._get_session(),
                "GET",
                url,
                headers=self._headers,
                rate_limit_statuses=(429, 503),
                auth_statuses=(401, 403),
                on_auth_failure=self._invalidate_token
            )
        except HttpRequestError as e:
            details = dict(e.details)
            if playlist_id is not None:
                details["playlist_id"] = playlist_id
            if e.status_code == 404:
                message = f"Apple Music resource not found: {url}"
            else:
                message = f"Apple Music API error: {e.message}"
            raise SourceError(
                message,
                details=details,
                source=self.source.value,
                is_auth_error=e.is_auth_error,
                is_rate_limit=e.is_rate_limit
            ) from e
