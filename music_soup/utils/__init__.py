"""
Utility functions for music-soup.

This module contains helper functions used across multiple modules:
    - Playlist URL parsing for both catalogs
    - Duration formatting and parsing (M:SS)
    - Release year extraction

Playlist entries in config.yaml may be given as bare ids or as the URL
copied from the app's "Share" menu; these helpers turn either form into
the opaque id the API wrappers expect.
"""

import re

from music_soup.sources.models import Source


SPOTIFY_PLAYLIST_URL_RE = re.compile(r"spotify\.com/playlist/([a-zA-Z0-9]+)")

# Catalog playlists carry a name segment, some shared links do not:
#   https://music.apple.com/us/playlist/chill-mix/pl.u-76oNlkVsvDMW1L
#   https://music.apple.com/us/playlist/pl.u-76oNlkVsvDMW1L
# Library playlists keep a "p." id:
#   https://music.apple.com/library/playlist/p.ldvAAvGuJkVDWL
APPLE_MUSIC_CATALOG_URL_RE = re.compile(
    r"music\.apple\.com/[^/]+/playlist/[^/]+/pl\.([a-zA-Z0-9_-]+)"
)
APPLE_MUSIC_SHORT_URL_RE = re.compile(
    r"music\.apple\.com/[^/]+/playlist/pl\.([a-zA-Z0-9_-]+)"
)
APPLE_MUSIC_LIBRARY_URL_RE = re.compile(
    r"music\.apple\.com/library/playlist/(p\.[a-zA-Z0-9_-]+)"
)


def extract_spotify_playlist_id(url_or_id: str) -> str:
    """
    Extract a playlist ID from a Spotify playlist URL or return the ID as-is.

    Handles:
        - https://open.spotify.com/playlist/ID
        - https://open.spotify.com/playlist/ID?si=xxx
        - spotify:playlist:ID
        - Just the ID

    Raises:
        ValueError: If a URL is given that is not a playlist URL.

    Examples:
        extract_spotify_playlist_id("https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=1")
        # Returns: "37i9dQZF1DXcBWIGoYBM5M"
    """
    value = url_or_id.strip()

    if value.startswith("spotify:"):
        parts = value.split(":")
        if len(parts) != 3 or parts[1] != "playlist":
            raise ValueError(f"Not a Spotify playlist URI: {url_or_id}")
        return parts[2]

    if "spotify.com" in value:
        match = SPOTIFY_PLAYLIST_URL_RE.search(value)
        if match is None:
            raise ValueError(f"Not a Spotify playlist URL: {url_or_id}")
        return match.group(1)

    return value


def extract_apple_music_playlist_id(url_or_id: str) -> str:
    """
    Extract a playlist ID from an Apple Music playlist URL or return the ID as-is.

    Catalog ids keep their "pl." prefix, library ids their "p." prefix,
    because the API expects the full id.

    Raises:
        ValueError: If a music.apple.com URL is given that is not a playlist URL.

    Examples:
        extract_apple_music_playlist_id(
            "https://music.apple.com/us/playlist/chill-mix/pl.u-76oNlkVsvDMW1L"
        )
        # Returns: "pl.u-76oNlkVsvDMW1L"
    """
    value = url_or_id.strip()

    if "music.apple.com" not in value:
        return value

    value = value.split("?")[0]

    match = APPLE_MUSIC_CATALOG_URL_RE.search(value) or APPLE_MUSIC_SHORT_URL_RE.search(value)
    if match is not None:
        return f"pl.{match.group(1)}"

    match = APPLE_MUSIC_LIBRARY_URL_RE.search(value)
    if match is not None:
        return match.group(1)

    raise ValueError(f"Not an Apple Music playlist URL: {url_or_id}")


def extract_playlist_id(source: Source, url_or_id: str) -> str:
    """Dispatch to the extractor for the given source."""
    if source is Source.SPOTIFY:
        return extract_spotify_playlist_id(url_or_id)
    return extract_apple_music_playlist_id(url_or_id)


def format_duration(seconds: int) -> str:
    """
    Format duration in seconds as M:SS.

    Minutes are not wrapped into hours, matching how the Notion database
    stores durations.

    Examples:
        format_duration(225)   # "3:45"
        format_duration(45)    # "0:45"
        format_duration(3750)  # "62:30"
    """
    minutes = seconds // 60
    secs = seconds % 60
    return f"{minutes}:{secs:02d}"


def parse_duration(duration_str: str) -> int | None:
    """
    Parse a duration string back to seconds.

    Accepts "M:SS", "H:MM:SS" and a bare number of seconds.
    Returns None for anything else.

    Examples:
        parse_duration("3:45")     # 225
        parse_duration("1:02:30")  # 3750
        parse_duration("")         # None
    """
    try:
        parts = [int(p) for p in duration_str.strip().split(":")]
    except ValueError:
        return None

    if len(parts) == 1:
        return parts[0]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    return None


def extract_release_year(release_date: str | None) -> int | None:
    """
    Return the year of an ISO release date ("1975-11-21", "1975-11" or "1975").

    Returns None when the value has no leading four-digit year.
    """
    if not release_date:
        return None
    match = re.match(r"(\d{4})", release_date.strip())
    return int(match.group(1)) if match else None
