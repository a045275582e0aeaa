"""
Token cache shared by the API wrappers.

Each wrapper receives a TokenCache in its constructor and keeps its access
tokens there instead of in module globals, so a test (or a second run in
the same process) can start from a clean cache or pre-seed one.

Usage:
    cache = TokenCache()
    cache.set("apple_music", token, expires_at=time.time() + 3600)

    token = cache.get("apple_music", leeway=86400)  # None if expiring within a day
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CachedToken:
    """
    A cached token and its expiry.

    Attributes:
        value: The token itself. Usually a string; the Spotify wrapper
               stores spotipy's whole token_info dictionary.
        expires_at: Expiry as a Unix timestamp in seconds.
    """
    value: Any
    expires_at: float


class TokenCache:
    """
    In-memory token store keyed by wrapper name.

    Not thread-safe; a run uses it from a single asyncio task.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """
        Args:
            clock: Returns the current Unix time. Replaced in tests.
        """
        self._clock = clock
        self._tokens: dict[str, CachedToken] = {}

    def get(self, key: str, leeway: float = 0.0) -> Any | None:
        """
        Return a token that stays valid for at least `leeway` seconds.

        Returns None when nothing is cached or the token is about to expire.
        """
        cached = self._tokens.get(key)
        if cached is None:
            return None
        if self._clock() >= cached.expires_at - leeway:
            return None
        return cached.value

    def peek(self, key: str) -> Any | None:
        """Return the cached value regardless of expiry."""
        cached = self._tokens.get(key)
        return cached.value if cached is not None else None

    def set(self, key: str, value: Any, expires_at: float) -> None:
        self._tokens[key] = CachedToken(value=value, expires_at=expires_at)

    def invalidate(self, key: str) -> None:
        """Forget a token, e.g. after the API rejected it."""
        self._tokens.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._tokens
