"""Metadata records and the tagged cache entry type.

A cache key is in one of three states:

- ``ABSENT``: the key is not in the store; no lookup has been attempted.
- ``NEGATIVE``: a lookup ran and produced nothing usable.
- ``POSITIVE``: the key holds a real :class:`MetadataRecord`.

Inside the store a negative entry is held as the :data:`NEGATIVE` sentinel. The
sentinel never leaves the persistence layer; callers always see a
:class:`CacheEntry`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class MetadataRecord:
    """Metadata resolved for a single media file.

    Attributes:
        catalog_id: External catalog identifier (e.g., an IMDb id "tt0133093")
        episode_name: Episode title for TV content
        title: Show or movie title
        season: Season number as reported by the lookup service
        episode: Episode number as reported by the lookup service
        year: Release year
    """

    catalog_id: str = ""
    episode_name: str = ""
    title: str = ""
    season: str = ""
    episode: str = ""
    year: str = ""


class _NegativeMarker:
    """Type of the negative-cache sentinel. Only one instance exists."""

    _instance: _NegativeMarker | None = None

    def __new__(cls) -> _NegativeMarker:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NEGATIVE"


NEGATIVE = _NegativeMarker()

StoredValue = MetadataRecord | _NegativeMarker


def negative_value() -> _NegativeMarker:
    return NEGATIVE


def is_negative(value: Any) -> bool:
    return value is NEGATIVE


class EntryState(Enum):
    ABSENT = "absent"
    NEGATIVE = "negative"
    POSITIVE = "positive"


@dataclass(frozen=True)
class CacheEntry:
    """What the cache knows about one key."""

    state: EntryState
    record: MetadataRecord | None = None

    def __post_init__(self) -> None:
        if self.state is EntryState.POSITIVE and self.record is None:
            raise ValueError("Positive entries must carry a record")
        if self.state is not EntryState.POSITIVE and self.record is not None:
            raise ValueError(f"{self.state.value.capitalize()} entries cannot carry a record")

    @classmethod
    def absent(cls) -> CacheEntry:
        return cls(EntryState.ABSENT)

    @classmethod
    def negative(cls) -> CacheEntry:
        return cls(EntryState.NEGATIVE)

    @classmethod
    def positive(cls, record: MetadataRecord) -> CacheEntry:
        return cls(EntryState.POSITIVE, record)

    @classmethod
    def from_stored(cls, value: StoredValue | None) -> CacheEntry:
        """Build an entry from a raw store value (None means the key is missing)."""
        if value is None:
            return cls.absent()
        if is_negative(value):
            return cls.negative()
        return cls.positive(value)

    def to_stored(self) -> StoredValue:
        if self.state is EntryState.ABSENT:
            raise ValueError("Absent entries cannot be stored")
        if self.state is EntryState.NEGATIVE:
            return negative_value()
        return self.record

    @property
    def is_absent(self) -> bool:
        return self.state is EntryState.ABSENT

    @property
    def is_negative(self) -> bool:
        return self.state is EntryState.NEGATIVE

    @property
    def is_positive(self) -> bool:
        return self.state is EntryState.POSITIVE
