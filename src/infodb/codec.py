"""Conversion between ordered field rows and :class:`MetadataRecord`.

Lookup results arrive as a bare six-field row (decode at offset 0). Persisted
rows carry the cache key as their leading field (decode at offset 1).
"""

from __future__ import annotations

from collections.abc import Sequence

from .models import MetadataRecord

FIELD_NAMES = ("catalog_id", "episode_name", "title", "season", "episode", "year")
FIELD_COUNT = len(FIELD_NAMES)

LOOKUP_OFFSET = 0
STORED_OFFSET = 1


def safe_get_field(fields: Sequence[str | None], index: int) -> str:
    """Return ``fields[index]`` or an empty string when missing."""
    if index < 0 or index >= len(fields):
        return ""
    value = fields[index]
    return "" if value is None else str(value)


def decode(fields: Sequence[str | None], offset: int = LOOKUP_OFFSET) -> MetadataRecord:
    values = {name: safe_get_field(fields, offset + position) for position, name in enumerate(FIELD_NAMES)}
    return MetadataRecord(**values)


def encode(record: MetadataRecord) -> list[str]:
    return [getattr(record, name) for name in FIELD_NAMES]


def is_usable(fields: Sequence[str | None] | None) -> bool:
    """True when a lookup result carries at least one field."""
    return fields is not None and len(fields) > 0
