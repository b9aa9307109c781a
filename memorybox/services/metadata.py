"""
Memory Box Uploader - Metadata Document

Builds the single JSON document the site reads for song captions and stat
tiles.  The document is rebuilt in full on every submission from the form
values plus the fixed tile catalog below; it is never merged with what is
already stored.

Missing values (a shorter list than the catalog, or a null entry) always
become the empty string, for songs and stats alike.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from memorybox.errors import ValidationError
from memorybox.services.slots import DestinationCatalog

EMPTY_VALUE = ""


class StatTileType(str, Enum):
    COUNTER = "counter"
    DATE = "date"
    LOCATION = "location"
    TEXT = "text"
    PROGRESS = "progress"


@dataclass(frozen=True)
class StatTileDefinition:
    title: str
    subtitle: str
    icon: str
    type: StatTileType
    max: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.title,
            "subtitle": self.subtitle,
            "icon": self.icon,
            "type": self.type.value,
        }
        if self.max is not None:
            data["max"] = self.max
        return data


STAT_TILES: tuple[StatTileDefinition, ...] = (
    StatTileDefinition("Days Together", "and counting", "heart", StatTileType.COUNTER),
    StatTileDefinition("Relationship Started", "where it all began", "calendar-heart", StatTileType.DATE),
    StatTileDefinition("First Date", "our first evening out", "coffee", StatTileType.DATE),
    StatTileDefinition("First Kiss", "the place", "map-pin", StatTileType.LOCATION),
    StatTileDefinition("First Hug", "the place", "map-pin", StatTileType.LOCATION),
    StatTileDefinition("Best Day", "so far", "star", StatTileType.DATE),
    StatTileDefinition("Most Used Word", "in our chats", "message-circle", StatTileType.TEXT),
    StatTileDefinition("Total Messages", "sent and received", "messages-square", StatTileType.PROGRESS, max=100000),
    StatTileDefinition("Her Words", "typed by her", "type", StatTileType.PROGRESS, max=500000),
    StatTileDefinition("His Words", "typed by him", "type", StatTileType.PROGRESS, max=500000),
    StatTileDefinition("Reels Shared", "funny and otherwise", "film", StatTileType.PROGRESS, max=5000),
    StatTileDefinition("Love Count", "times we said it", "heart-handshake", StatTileType.PROGRESS, max=10000),
)


# ---------------------------------------------------------------------------
# Document model
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SongEntry:
    title: str
    artist: str
    filename: str

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "artist": self.artist, "filename": self.filename}


@dataclass(frozen=True)
class StatEntry:
    definition: StatTileDefinition
    value: str

    def to_dict(self) -> dict[str, Any]:
        return {**self.definition.to_dict(), "value": self.value}


@dataclass(frozen=True)
class MetadataDocument:
    songs: tuple[SongEntry, ...] = field(default_factory=tuple)
    stats: tuple[StatEntry, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "songs": [s.to_dict() for s in self.songs],
            "stats": [s.to_dict() for s in self.stats],
        }


def _value_at(values: Sequence[str], index: int) -> str:
    if index < len(values) and values[index] is not None:
        return values[index]
    return EMPTY_VALUE


def compose_metadata(
    titles: Sequence[str],
    artists: Sequence[str],
    stat_values: Sequence[str],
    catalog: DestinationCatalog,
    tiles: Sequence[StatTileDefinition] = STAT_TILES,
) -> MetadataDocument:
    """
    Build a fresh MetadataDocument with exactly one entry per song slot and
    per stat tile.  Inputs may be shorter than the catalog (padded with "")
    or longer (the excess is ignored).
    """
    songs = tuple(
        SongEntry(
            title=_value_at(titles, i),
            artist=_value_at(artists, i),
            filename=dest.filename,
        )
        for i, dest in enumerate(catalog.songs)
    )
    stats = tuple(
        StatEntry(definition=tile, value=_value_at(stat_values, i))
        for i, tile in enumerate(tiles)
    )
    return MetadataDocument(songs=songs, stats=stats)


def serialize_metadata(document: MetadataDocument) -> bytes:
    """Deterministic UTF-8 JSON: sorted keys, fixed indent, trailing newline."""
    text = json.dumps(document.to_dict(), sort_keys=True, indent=2, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


# ---------------------------------------------------------------------------
# Form field parsing
# ---------------------------------------------------------------------------
def parse_text_field(raw: str | None, field_name: str) -> list[str]:
    """
    Decode one of the form's serialized string arrays (``JSON.stringify``).

    Missing or blank input is an empty list.  ``null`` entries become "" and
    numbers are stringified; anything else is a ValidationError.
    """
    if raw is None or not raw.strip():
        return []

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{field_name} is not valid JSON: {e.msg}", field=field_name) from e

    if not isinstance(parsed, list):
        raise ValidationError(f"{field_name} must be a JSON array of strings", field=field_name)

    values: list[str] = []
    for i, item in enumerate(parsed):
        if item is None:
            values.append(EMPTY_VALUE)
        elif isinstance(item, str):
            values.append(item)
        elif isinstance(item, (int, float)) and not isinstance(item, bool):
            values.append(str(item))
        else:
            raise ValidationError(
                f"{field_name}[{i}] must be a string, got {type(item).__name__}",
                field=field_name,
            )
    return values
