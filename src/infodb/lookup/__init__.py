"""Metadata lookup service contract and HTTP client."""

from __future__ import annotations

from .base import MetadataLookup, MetadataLookupError
from .client import HttpMetadataLookup
from .models import LookupResponse

__all__ = [
    "HttpMetadataLookup",
    "LookupResponse",
    "MetadataLookup",
    "MetadataLookupError",
]
