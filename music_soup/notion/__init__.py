"""
Notion sink for music-soup.

This module provides:
    - schema: Property names, types and value conversion
    - models: Record and SinkFilter
    - client: The RecordSink protocol and its Notion implementation

Usage:
    from music_soup.notion import NotionSink, SinkFilter
"""

from music_soup.notion.client import NotionSink, RecordSink
from music_soup.notion.models import Record, SinkFilter
from music_soup.notion.schema import (
    FIELDS,
    MANUAL_PROPERTIES,
    PropertySpec,
    from_properties,
    to_properties,
    validate_schema,
)

__all__ = [
    # Client
    "RecordSink",
    "NotionSink",
    # Models
    "Record",
    "SinkFilter",
    # Schema
    "PropertySpec",
    "FIELDS",
    "MANUAL_PROPERTIES",
    "to_properties",
    "from_properties",
    "validate_schema",
]
