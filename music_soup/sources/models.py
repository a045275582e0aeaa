"""
Data models for streaming catalog entities.

This module defines the canonical shapes that both catalog sources are
normalized into, plus the small value types that describe a configured
playlist.

Design Decisions:
    - Track is frozen (immutable); it lives only for one track of one run
    - Optional fields are None when the source lacks them, never a placeholder
    - Durations are whole seconds regardless of the source's native unit
    - Enum values are the exact strings stored in the Notion select properties

Usage:
    from music_soup.sources.models import Track, Source, PlaylistType

    track = Track(
        source=Source.SPOTIFY,
        source_id="4cOdK2wGLETKBW3PvgPWqT",
        title="Bohemian Rhapsody",
        playlist_name="Source",
        playlist_type=PlaylistType.SOURCE,
    )
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any


class Source(str, Enum):
    """Streaming catalog a track was read from."""

    SPOTIFY = "Spotify"
    APPLE_MUSIC = "Apple Music"

    @classmethod
    def parse(cls, value: str) -> "Source":
        """
        Parse a config-style source name.

        Accepts the display value ("Apple Music") as well as compact
        spellings ("apple_music", "applemusic", "apple", "spotify").

        Raises:
            ValueError: If the name matches no source.
        """
        key = value.strip().lower().replace(" ", "").replace("_", "").replace("-", "")
        aliases = {
            "spotify": cls.SPOTIFY,
            "applemusic": cls.APPLE_MUSIC,
            "apple": cls.APPLE_MUSIC,
        }
        if key not in aliases:
            raise ValueError(f"Unknown source: {value!r}")
        return aliases[key]


class PlaylistType(str, Enum):
    """Role of a playlist, stored in the Notion 'Type' select."""

    SOURCE = "Source"
    SCORE = "Score"

    @classmethod
    def parse(cls, value: str) -> "PlaylistType":
        for member in cls:
            if member.value.lower() == value.strip().lower():
                return member
        raise ValueError(f"Unknown playlist type: {value!r}")


@dataclass(frozen=True)
class PlaylistRef:
    """
    One configured playlist.

    Attributes:
        source: Catalog the playlist lives in.
        playlist_id: Opaque playlist identifier within that catalog.
                     Spotify example: "37i9dQZF1DXcBWIGoYBM5M"
                     Apple Music example: "pl.u-76oNlkVsvDMW1L"
        playlist_type: Source or Score.
    """
    source: Source
    playlist_id: str
    playlist_type: PlaylistType = PlaylistType.SOURCE


@dataclass(frozen=True)
class PlaylistMeta:
    """
    Playlist metadata returned by a source client.

    Attributes:
        name: Display name of the playlist.
        track_count: Total number of entries the catalog reports, or None
                     when the catalog does not report it.
    """
    name: str
    track_count: int | None = None


@dataclass(frozen=True)
class Track:
    """
    Canonical, transient representation of one playlist entry.

    Produced by a normalizer for every track of every sync run, consumed
    immediately by the identity resolver and the upsert policy, then
    discarded.

    Attributes:
        source: Catalog the entry was read from.
        source_id: Source-scoped track id.
        title: Track title (always present).
        artist: Artist credit as displayed by the source.
                Spotify joins multiple artists with ", ".
        performed_by: Performing artist(s); equals artist for both sources.
        album: Album name.
        track_number: Position of the track within its album.
        release_date: ISO date string ("1975-11-21" or just "1975").
        duration: Length in whole seconds.
        isrc: International Standard Recording Code, the preferred dedup key.
        url: Public catalog URL of the track.
        composer: Composer credit (Apple Music only).
        playlist_name: Display name of the playlist, or its id when the
                       name could not be fetched.
        playlist_type: Source or Score.
    """

    source: Source
    source_id: str
    title: str
    playlist_name: str
    playlist_type: PlaylistType
    artist: str | None = None
    performed_by: str | None = None
    album: str | None = None
    track_number: int | None = None
    release_date: str | None = None
    duration: int | None = None
    isrc: str | None = None
    url: str | None = None
    composer: str | None = None

    @property
    def composite_key(self) -> str:
        """
        Lowercased "title:artist" key used by cleanup.

        Example:
            track.composite_key  # "bohemian rhapsody:queen"
        """
        return make_composite_key(self.title, self.artist)

    @property
    def identity_keys(self) -> set[str]:
        """All keys this track contributes to the live-identity set."""
        keys = {self.composite_key}
        if self.isrc:
            keys.add(self.isrc)
        return keys

    def automated_fields(self) -> dict[str, Any]:
        """
        Return the automated fields this track carries, keyed by field name.

        Fields the source did not provide are omitted, so writing the result
        never clears a value stored earlier.
        """
        values: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            values[f.name] = value
        return values


def make_composite_key(title: str, artist: str | None) -> str:
    """Build the lowercased "title:artist" composite identity key."""
    return f"{title.lower()}:{(artist or '').lower()}"
