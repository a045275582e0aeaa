"""Test Notion property conversion and the Record model"""

import pytest

from music_soup.notion.models import Record
from music_soup.notion.schema import (
    FIELDS,
    build_filter,
    format_select,
    from_properties,
    to_properties,
    validate_schema,
)
from music_soup.sources.models import PlaylistType, Source, Track


@pytest.fixture
def track():
    return Track(
        source=Source.APPLE_MUSIC,
        source_id="1440833098",
        title="Bohemian Rhapsody",
        playlist_name="Chill, Mix",
        playlist_type=PlaylistType.SCORE,
        artist="Queen",
        performed_by="Queen",
        album="A Night at the Opera",
        track_number=11,
        release_date="1975-10-31",
        duration=355,
        isrc="GBUM71029604",
        url="https://music.apple.com/us/song/1440833098",
        composer="Freddie Mercury",
    )


class TestToProperties:
    """Test canonical fields -> Notion payload"""

    def test_property_shapes(self, track):
        """Test every property type is formatted the way Notion expects"""
        properties = to_properties({**track.automated_fields(), "removed": False})

        assert properties["Track Title"] == {
            "title": [{"type": "text", "text": {"content": "Bohemian Rhapsody"}}]
        }
        assert properties["Duration"]["rich_text"][0]["text"]["content"] == "5:55"
        assert properties["Release Date"] == {"number": 1975}
        assert properties["Track Number"] == {"number": 11}
        assert properties["Source"] == {"select": {"name": "Apple Music"}}
        assert properties["Type"] == {"select": {"name": "Score"}}
        assert properties["Playlist"] == {"select": {"name": "Chill Mix"}}
        assert properties["URL"] == {"url": "https://music.apple.com/us/song/1440833098"}
        assert properties["Removed"] == {"checkbox": False}

    def test_only_given_fields_are_written(self):
        """Test that absent fields never produce a property"""
        properties = to_properties({"title": "Intro", "removed": True, "created_time": "x", "unknown": 1})
        assert set(properties) == {"Track Title", "Removed"}

    def test_manual_properties_never_written(self, track):
        """Test that the manual annotation properties are not automated"""
        properties = to_properties({**track.automated_fields(), "removed": False})
        for name in ("Record Date", "Themes", "Notes", "Instruments", "Mood/Keywords"):
            assert name not in properties

    def test_long_text_truncated(self):
        properties = to_properties({"album": "x" * 2500})
        assert len(properties["Album"]["rich_text"][0]["text"]["content"]) == 2000

    def test_format_select(self):
        assert format_select("Rock, Pop") == {"name": "Rock Pop"}
        assert format_select("") is None
        assert format_select(None) is None


class TestFromProperties:
    """Test Notion payload -> canonical fields"""

    def test_round_trip(self, track):
        """Test that a written page reads back into the same Track"""
        page = {
            "id": "page-1",
            "created_time": "2024-01-01T00:00:00.000Z",
            "properties": to_properties({**track.automated_fields(), "removed": False}),
        }
        record = Record.from_notion_page(page)
        restored = record.to_track()

        assert restored.title == track.title
        assert restored.isrc == track.isrc
        assert restored.duration == track.duration
        assert restored.source is Source.APPLE_MUSIC
        assert restored.playlist_type is PlaylistType.SCORE
        assert restored.release_date == "1975"
        assert record.created_time == "2024-01-01T00:00:00.000Z"
        assert record.removed is False

    def test_plain_text_from_notion_response(self):
        """Test reading rich text as returned by the API (plain_text, several parts)"""
        fields = from_properties({
            "Track Title": {
                "id": "title",
                "type": "title",
                "title": [{"plain_text": "Hello "}, {"plain_text": "World"}],
            },
            "Duration": {"type": "rich_text", "rich_text": [{"plain_text": "3:30"}]},
            "Removed": {"type": "checkbox", "checkbox": True},
            "Source": {"type": "select", "select": {"name": "Manual"}},
            "Track Number": {"type": "number", "number": 4.0},
        })

        assert fields["title"] == "Hello World"
        assert fields["duration"] == 210
        assert fields["removed"] is True
        assert fields["source"] == "Manual"
        assert fields["track_number"] == 4
        assert fields["isrc"] is None

    def test_manual_properties_kept(self):
        """Test that manual properties are carried on the Record untouched"""
        notes = {"type": "rich_text", "rich_text": [{"plain_text": "great bridge"}]}
        record = Record.from_notion_page({
            "id": "page-1",
            "properties": {"Track Title": {"title": [{"plain_text": "Song"}]}, "Notes": notes},
        })
        assert record.manual == {"Notes": notes}


class TestRecord:
    """Test Record helpers"""

    def test_composite_key(self):
        assert Record(id="1", title="Song", artist="Artist").composite_key == "song:artist"
        assert Record(id="1", title="Song").composite_key == "song:"
        assert Record(id="1", artist="Artist").composite_key is None

    def test_to_track_requires_title(self):
        with pytest.raises(ValueError):
            Record(id="1").to_track()


class TestFilters:
    """Test filter translation"""

    def test_build_filter(self):
        assert build_filter("isrc", "contains", "GBUM71029604") == {
            "property": "ISRC/UPC", "rich_text": {"contains": "GBUM71029604"}
        }
        assert build_filter("removed", "equals", False) == {
            "property": "Removed", "checkbox": {"equals": False}
        }
        assert build_filter("title", "contains", "Intro") == {
            "property": "Track Title", "title": {"contains": "Intro"}
        }

    def test_build_filter_rejects_invalid(self):
        with pytest.raises(ValueError):
            build_filter("nope", "equals", 1)
        with pytest.raises(ValueError):
            build_filter("isrc", "starts_with", "GB")
        with pytest.raises(ValueError):
            build_filter("removed", "contains", True)


class TestValidateSchema:
    """Test database schema validation"""

    def test_complete_schema(self):
        properties = {spec.name: {"type": spec.type} for spec in FIELDS.values()}
        assert validate_schema(properties) == ([], [])

    def test_missing_and_mistyped(self):
        properties = {spec.name: {"type": spec.type} for spec in FIELDS.values()}
        del properties["ISRC/UPC"]
        del properties["Composer"]
        properties["Removed"] = {"type": "select"}

        errors, warnings = validate_schema(properties)

        assert any("ISRC/UPC" in e for e in errors)
        assert any("Removed" in e for e in errors)
        assert warnings == ["Property 'Composer' (rich_text) is missing"]
