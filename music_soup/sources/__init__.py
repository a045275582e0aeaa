"""
Streaming catalog sources for music-soup.

This module provides:
    - models: Track and the small playlist value types
    - base: The SourceClient protocol the sync engine depends on
    - normalizer: Raw catalog record -> Track, one normalizer per catalog
    - spotify: spotipy-based Spotify client
    - apple_music: aiohttp-based Apple Music client

Usage:
    from music_soup.sources import SpotifyClient, get_normalizer, Source
"""

from music_soup.sources.apple_music import AppleMusicClient
from music_soup.sources.base import SourceClient
from music_soup.sources.models import (
    PlaylistMeta,
    PlaylistRef,
    PlaylistType,
    Source,
    Track,
    make_composite_key,
)
from music_soup.sources.normalizer import (
    AppleMusicNormalizer,
    SpotifyNormalizer,
    TrackNormalizer,
    fetch_playlist_meta,
    get_normalizer,
    resolve_playlist_name,
)
from music_soup.sources.spotify import SpotifyClient

__all__ = [
    # Models
    "Source",
    "PlaylistType",
    "PlaylistRef",
    "PlaylistMeta",
    "Track",
    "make_composite_key",
    # Clients
    "SourceClient",
    "SpotifyClient",
    "AppleMusicClient",
    # Normalizers
    "TrackNormalizer",
    "SpotifyNormalizer",
    "AppleMusicNormalizer",
    "get_normalizer",
    "fetch_playlist_meta",
    "resolve_playlist_name",
]
