"""
Notion database schema for music-soup.

Maps canonical field names (the attribute names of Track and Record) to
the exact property names and types of the Notion database, and converts
values in both directions.

All Notion property references go through this module; nothing else in
the project spells a property name.

Automated properties are written by the sync. Manual properties are only
ever read, so edits made by hand in Notion survive every sync.

Usage:
    properties = to_properties({"title": "Intro", "duration": 95})
    # {"Track Title": {"title": [...]}, "Duration": {"rich_text": [...]}}

    fields = from_properties(page["properties"])
    # {"title": "Intro", "duration": 95, ...}
"""

from dataclasses import dataclass
from typing import Any

from music_soup.utils import extract_release_year, format_duration, parse_duration


# Notion limits a single rich text object to 2000 characters
MAX_TEXT_LENGTH = 2000
# Select option names are limited to 100 characters and may not contain commas
MAX_SELECT_LENGTH = 100


@dataclass(frozen=True)
class PropertySpec:
    """
    One database property.

    Attributes:
        name: Exact property name in Notion.
        type: Notion property type ("title", "rich_text", ...).
        automated: True if the sync writes it.
    """
    name: str
    type: str
    automated: bool = True


# Canonical field name -> property
FIELDS: dict[str, PropertySpec] = {
    "title": PropertySpec("Track Title", "title"),
    "track_number": PropertySpec("Track Number", "number"),
    "album": PropertySpec("Album", "rich_text"),
    "artist": PropertySpec("Artist", "rich_text"),
    "performed_by": PropertySpec("Performed By", "rich_text"),
    "release_date": PropertySpec("Release Date", "number"),
    "duration": PropertySpec("Duration", "rich_text"),
    "isrc": PropertySpec("ISRC/UPC", "rich_text"),
    "url": PropertySpec("URL", "url"),
    "playlist_name": PropertySpec("Playlist", "select"),
    "playlist_type": PropertySpec("Type", "select"),
    "source": PropertySpec("Source", "select"),
    "source_id": PropertySpec("Source ID", "rich_text"),
    "composer": PropertySpec("Composer", "rich_text"),
    "removed": PropertySpec("Removed", "checkbox"),
    "created_time": PropertySpec("Created time", "created_time", automated=False),
}

MANUAL_PROPERTIES: dict[str, str] = {
    "Record Date": "date",
    "Themes": "multi_select",
    "Notes": "rich_text",
    "Instruments": "multi_select",
    "Mood/Keywords": "multi_select",
}

# Properties the sync cannot work without
REQUIRED_FIELDS = ("title", "isrc", "artist", "playlist_name", "playlist_type", "source", "removed")


# =============================================================================
# Value formatting (Python -> Notion)
# =============================================================================

def format_rich_text(text: Any) -> list[dict[str, Any]]:
    """Wrap text in a Notion rich_text array; empty values give an empty array."""
    if text is None or text == "":
        return []
    return [{"type": "text", "text": {"content": str(text)[:MAX_TEXT_LENGTH]}}]


def format_title(title: Any) -> list[dict[str, Any]]:
    return format_rich_text(title)


def format_select(value: Any) -> dict[str, str] | None:
    """Notion select value; commas are dropped because Notion rejects them."""
    if value is None or value == "":
        return None
    name = str(value).replace(",", "").strip()[:MAX_SELECT_LENGTH]
    return {"name": name} if name else None


def format_property(spec: PropertySpec, value: Any) -> dict[str, Any]:
    """Build the property payload for one field value."""
    if spec.type == "title":
        return {"title": format_title(value)}
    if spec.type == "rich_text":
        return {"rich_text": format_rich_text(value)}
    if spec.type == "number":
        return {"number": value}
    if spec.type == "select":
        return {"select": format_select(value)}
    if spec.type == "url":
        return {"url": value or None}
    if spec.type == "checkbox":
        return {"checkbox": bool(value)}
    raise ValueError(f"Property type {spec.type!r} of {spec.name!r} is not writable")


def to_properties(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Convert canonical field values into a Notion properties payload.

    Only the fields present in `fields` are included, so an update never
    clears a property the caller did not mention. Unknown field names
    and non-automated fields are ignored.

    Conversions:
        duration (seconds)   -> "M:SS" rich text
        release_date (ISO)   -> year number
        enums                -> their value
    """
    properties: dict[str, Any] = {}
    for name, value in fields.items():
        spec = FIELDS.get(name)
        if spec is None or not spec.automated:
            continue

        value = getattr(value, "value", value)
        if name == "duration" and value is not None:
            value = format_duration(int(value))
        elif name == "release_date":
            value = extract_release_year(value)

        properties[spec.name] = format_property(spec, value)
    return properties


# =============================================================================
# Value parsing (Notion -> Python)
# =============================================================================

def read_plain_text(prop: dict[str, Any] | None) -> str | None:
    """Concatenate the plain text of a title or rich_text property."""
    if not prop:
        return None
    parts = prop.get(prop.get("type", ""), None)
    if parts is None:
        parts = prop.get("title") or prop.get("rich_text") or []
    text = "".join(
        part.get("plain_text") or (part.get("text") or {}).get("content", "")
        for part in parts
    )
    return text or None


def read_property(spec: PropertySpec, prop: dict[str, Any] | None) -> Any:
    """Read one property value back into its Python form."""
    if not prop:
        return None
    if spec.type in ("title", "rich_text"):
        return read_plain_text(prop)
    if spec.type == "number":
        return prop.get("number")
    if spec.type == "select":
        select = prop.get("select")
        return select.get("name") if select else None
    if spec.type == "url":
        return prop.get("url")
    if spec.type == "checkbox":
        return bool(prop.get("checkbox", False))
    if spec.type == "created_time":
        return prop.get("created_time")
    return None


def from_properties(properties: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a Notion properties object back into canonical field values.

    Every field of FIELDS appears in the result (None when the property is
    missing or empty). Duration is parsed back to seconds and the release
    year is returned as a string.
    """
    fields: dict[str, Any] = {}
    for name, spec in FIELDS.items():
        value = read_property(spec, properties.get(spec.name))
        if name == "duration" and value is not None:
            value = parse_duration(value)
        elif name == "release_date" and value is not None:
            value = str(int(value))
        elif name == "track_number" and value is not None:
            value = int(value)
        fields[name] = value
    return fields


def manual_properties(properties: dict[str, Any]) -> dict[str, Any]:
    """Return the raw manual-annotation properties present on a page."""
    return {name: properties[name] for name in MANUAL_PROPERTIES if name in properties}


# =============================================================================
# Filters and validation
# =============================================================================

def build_filter(field: str, operator: str, value: Any) -> dict[str, Any]:
    """
    Translate a field-level condition into a Notion filter object.

    Example:
        build_filter("isrc", "contains", "GBUM71029604")
        # {"property": "ISRC/UPC", "rich_text": {"contains": "GBUM71029604"}}

    Raises:
        ValueError: For unknown fields or operators.
    """
    spec = FIELDS.get(field)
    if spec is None:
        raise ValueError(f"Unknown field: {field!r}")
    if operator not in ("contains", "equals"):
        raise ValueError(f"Unsupported filter operator: {operator!r}")
    if operator == "contains" and spec.type not in ("title", "rich_text", "url"):
        raise ValueError(f"'contains' is not supported for {spec.type} property {spec.name!r}")

    value = getattr(value, "value", value)
    return {"property": spec.name, spec.type: {operator: value}}


def validate_schema(database_properties: dict[str, Any]) -> tuple[list[str], list[str]]:
    """
    Check a database's properties against the expected schema.

    Args:
        database_properties: The "properties" object of a retrieved database.

    Returns:
        (errors, warnings). Errors are missing required properties and
        type mismatches; warnings are missing optional properties.
    """
    errors: list[str] = []
    warnings: list[str] = []
    for name, spec in FIELDS.items():
        actual = database_properties.get(spec.name)
        if actual is None:
            message = f"Property '{spec.name}' ({spec.type}) is missing"
            if name in REQUIRED_FIELDS:
                errors.append(message)
            else:
                warnings.append(message)
        elif actual.get("type") != spec.type:
            errors.append(
                f"Property '{spec.name}' has type {actual.get('type')}, expected {spec.type}"
            )
    return errors, warnings
