"""
Data models for the Notion sink.

Record is the persistent counterpart of Track: one Notion page per
distinct track identity. Records are never deleted; a track that left
every configured playlist only gets removed=True.

SinkFilter is the sink-neutral way of asking for Records; the Notion
client translates it into Notion filter JSON.
"""

from dataclasses import dataclass, field
from typing import Any

from music_soup.notion import schema
from music_soup.sources.models import PlaylistType, Source, Track, make_composite_key


@dataclass(frozen=True)
class SinkFilter:
    """
    One condition on a Record field.

    Attributes:
        field: Canonical field name ("isrc", "title", "removed", ...).
        operator: "contains" (substring, case-sensitive as stored) or "equals".
        value: Value to compare with.

    Example:
        SinkFilter("isrc", "contains", "GBUM71029604")
        SinkFilter("removed", "equals", False)
    """
    field: str
    operator: str
    value: Any


@dataclass(frozen=True)
class Record:
    """
    A Notion page representing one track identity.

    Attributes mirror Track's automated fields. Select values (source,
    playlist type) are kept as the raw strings stored in Notion, because
    hand-made Records may carry values this project does not know, such as
    "Manual".

    Attributes:
        id: Notion page id.
        title: Track title.
        removed: Soft-delete flag.
        created_time: ISO timestamp set by Notion, immutable.
        manual: Raw manual-annotation properties, never written.
    """
    id: str
    title: str | None = None
    artist: str | None = None
    performed_by: str | None = None
    album: str | None = None
    track_number: int | None = None
    release_date: str | None = None
    duration: int | None = None
    isrc: str | None = None
    url: str | None = None
    composer: str | None = None
    source: str | None = None
    source_id: str | None = None
    playlist_name: str | None = None
    playlist_type: str | None = None
    removed: bool = False
    created_time: str | None = None
    manual: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_notion_page(cls, page: dict[str, Any]) -> "Record":
        """
        Create a Record from a Notion page object.

        Falls back to the page's own created_time when the database has no
        "Created time" property.
        """
        properties = page.get("properties") or {}
        fields = schema.from_properties(properties)
        fields["removed"] = bool(fields.get("removed"))
        if not fields.get("created_time"):
            fields["created_time"] = page.get("created_time")
        return cls(
            id=page["id"],
            manual=schema.manual_properties(properties),
            **fields
        )

    @property
    def composite_key(self) -> str | None:
        """Lowercased "title:artist" key built like Track's, or None without a title."""
        if not self.title:
            return None
        return make_composite_key(self.title, self.artist)

    def to_track(self) -> Track:
        """
        Re-normalize this Record into a Track.

        Raises:
            ValueError: If the Record has no title, or its source or
                        playlist type is not one this project writes.
        """
        if not self.title:
            raise ValueError(f"Record {self.id} has no title")
        return Track(
            source=Source(self.source),
            source_id=self.source_id or "",
            title=self.title,
            playlist_name=self.playlist_name or "",
            playlist_type=PlaylistType(self.playlist_type or PlaylistType.SOURCE.value),
            artist=self.artist,
            performed_by=self.performed_by,
            album=self.album,
            track_number=self.track_number,
            release_date=self.release_date,
            duration=self.duration,
            isrc=self.isrc,
            url=self.url,
            composer=self.composer,
        )
