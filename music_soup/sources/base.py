"""
Contract every streaming catalog client satisfies.

The sync engine only talks to sources through this protocol, so tests can
substitute an in-memory fake and a new catalog only needs a client and a
normalizer.
"""

from typing import Any, Protocol

from music_soup.sources.models import PlaylistMeta, Source


class SourceClient(Protocol):
    """
    Async client of one streaming catalog.

    Attributes:
        source: The catalog this client reads from.
    """

    source: Source

    async def check_health(self) -> bool:
        """Return True if the catalog answers an authenticated request."""
        ...

    async def get_playlist_meta(self, playlist_id: str) -> PlaylistMeta:
        """
        Return the playlist's display name and track count.

        Raises:
            SourceError: If the playlist cannot be fetched.
        """
        ...

    async def get_playlist_tracks(self, playlist_id: str) -> list[dict[str, Any]]:
        """
        Return every raw track record of the playlist, paginating internally.

        Non-track entries (podcast episodes, music videos) are left out.

        Raises:
            SourceError: If any page cannot be fetched.
        """
        ...
