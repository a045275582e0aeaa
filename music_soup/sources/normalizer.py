"""
Track normalizers: raw catalog records to canonical Track objects.

Each catalog has its own normalizer. A normalizer never makes network
calls; the playlist name is resolved once per playlist by
resolve_playlist_name() and handed in.

Rules shared by both normalizers:
    - title and source_id are required; a record without them raises
      NormalizationError and is counted as a per-track error
    - every other field is best effort; missing ones are reported once per
      track through log_metadata_gap() and left as None
    - durations arrive in milliseconds and are rounded to whole seconds

Usage:
    normalizer = get_normalizer(Source.SPOTIFY)
    name = await resolve_playlist_name(client, playlist_id)
    track = normalizer.normalize(raw, playlist_id, PlaylistType.SOURCE, name)
"""

from typing import Any

from music_soup.core.exceptions import NormalizationError
from music_soup.core.logger import get_logger, log_metadata_gap
from music_soup.sources.base import SourceClient
from music_soup.sources.models import PlaylistMeta, PlaylistType, Source, Track


logger = get_logger(__name__)

# Optional fields whose absence is reported as a metadata gap
GAP_FIELDS = ("artist", "album", "release_date", "isrc", "duration")


class TrackNormalizer:
    """
    Base class for the per-catalog normalizers.

    Subclasses set `source` and implement `_extract()`, which returns the
    raw-to-canonical field mapping for one record.
    """

    source: Source

    def normalize(
        self,
        raw: dict[str, Any],
        playlist_id: str,
        playlist_type: PlaylistType,
        playlist_name: str | None = None,
        report_gaps: bool = True
    ) -> Track:
        """
        Convert one raw record into a Track.

        Args:
            raw: Raw track record as returned by the source client.
            playlist_id: Id of the playlist the record came from.
            playlist_type: Role of that playlist.
            playlist_name: Resolved display name; the id is used when None.
            report_gaps: Log missing optional fields. Cleanup turns this off
                         because the sync already reported them.

        Returns:
            Track with every field the record provides.

        Raises:
            NormalizationError: If the record has no id or no title.
        """
        fields = self._extract(raw)

        source_id = fields.pop("source_id", None)
        title = fields.pop("title", None)
        if not source_id:
            raise NormalizationError(
                f"{self.source.value} track has no id",
                details={"playlist_id": playlist_id}
            )
        if not title:
            raise NormalizationError(
                f"{self.source.value} track has no name",
                details={"source_id": source_id, "playlist_id": playlist_id}
            )

        missing = [name for name in GAP_FIELDS if fields.get(name) is None]
        if missing and report_gaps:
            log_metadata_gap(logger, title, self.source.value, source_id, missing)

        return Track(
            source=self.source,
            source_id=str(source_id),
            title=title,
            playlist_name=playlist_name or playlist_id,
            playlist_type=playlist_type,
            **fields
        )

    def _extract(self, raw: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError


class SpotifyNormalizer(TrackNormalizer):
    """Normalizes Spotify track objects (the "track" of a playlist item)."""

    source = Source.SPOTIFY

    def _extract(self, raw: dict[str, Any]) -> dict[str, Any]:
        artists = [a["name"] for a in raw.get("artists") or [] if a and a.get("name")]
        artist = ", ".join(artists) if artists else None

        album = raw.get("album") or {}

        return {
            "source_id": raw.get("id"),
            "title": raw.get("name"),
            "artist": artist,
            "performed_by": artist,
            "album": album.get("name") or None,
            "release_date": album.get("release_date") or None,
            "track_number": raw.get("track_number"),
            "duration": ms_to_seconds(raw.get("duration_ms")),
            "isrc": (raw.get("external_ids") or {}).get("isrc") or None,
            "url": (raw.get("external_urls") or {}).get("spotify") or None,
        }


class AppleMusicNormalizer(TrackNormalizer):
    """Normalizes Apple Music song resources ({"id", "type", "attributes"})."""

    source = Source.APPLE_MUSIC

    def _extract(self, raw: dict[str, Any]) -> dict[str, Any]:
        attrs = raw.get("attributes") or {}
        artist = attrs.get("artistName") or None

        return {
            "source_id": raw.get("id"),
            "title": attrs.get("name"),
            "artist": artist,
            "performed_by": artist,
            "album": attrs.get("albumName") or None,
            "release_date": attrs.get("releaseDate") or None,
            "track_number": attrs.get("trackNumber"),
            "duration": ms_to_seconds(attrs.get("durationInMillis")),
            "isrc": attrs.get("isrc") or None,
            "url": attrs.get("url") or None,
            "composer": attrs.get("composerName") or None,
        }


_NORMALIZERS: dict[Source, TrackNormalizer] = {
    Source.SPOTIFY: SpotifyNormalizer(),
    Source.APPLE_MUSIC: AppleMusicNormalizer(),
}


def get_normalizer(source: Source) -> TrackNormalizer:
    """Return the normalizer for a catalog."""
    return _NORMALIZERS[source]


def ms_to_seconds(duration_ms: Any) -> int | None:
    """Round a millisecond duration to whole seconds; None if absent."""
    if duration_ms is None or isinstance(duration_ms, bool):
        return None
    try:
        return int(round(float(duration_ms) / 1000))
    except (TypeError, ValueError):
        return None


async def fetch_playlist_meta(client: SourceClient, playlist_id: str) -> PlaylistMeta:
    """
    Fetch playlist metadata, falling back to the id as the name.

    A failure here never aborts a sync: it is logged and a PlaylistMeta
    named after the opaque playlist id is returned.
    """
    try:
        meta = await client.get_playlist_meta(playlist_id)
    except Exception as e:
        logger.warning(f"Could not get playlist name for {playlist_id}, using ID: {e}")
        return PlaylistMeta(name=playlist_id)

    if not meta.name:
        return PlaylistMeta(name=playlist_id, track_count=meta.track_count)
    return meta


async def resolve_playlist_name(client: SourceClient, playlist_id: str) -> str:
    """Return the playlist's display name, or its id if it cannot be fetched."""
    meta = await fetch_playlist_meta(client, playlist_id)
    return meta.name
