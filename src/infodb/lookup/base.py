"""Contract for the external metadata lookup service."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol


class MetadataLookupError(Exception):
    """Raised when the lookup service fails (as opposed to finding nothing)."""


class MetadataLookup(Protocol):
    def lookup(self, path: Path, display_name: str) -> Sequence[str] | None:
        """Resolve metadata for a media file.

        Args:
            path: Absolute path of the media file
            display_name: Human-readable name hint (usually the file name)

        Returns:
            Six ordered fields (catalog id, episode name, title, season,
            episode, year), or None when the service knows nothing about the file

        Raises:
            MetadataLookupError: If the service could not be queried
        """
        ...
