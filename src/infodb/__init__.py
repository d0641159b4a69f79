"""InfoDb core package.

A persistent cache of media file metadata with negative caching:

- **info_cache**: ``InfoCache`` facade (get, background_add, move_info)
- **cache_store**: Locked, typed facade over the persistent record store
- **persistence**: SQLite-backed store of ordered field rows (``InfoDb.db``)
- **codec**: Conversion between field rows and ``MetadataRecord``
- **models**: ``MetadataRecord``, the negative sentinel and ``CacheEntry``
- **populator**: Background lookups for unseen files
- **redo**: Periodic retry of negative entries
- **state**: Process-wide state (last redo timestamp, retry flag)
- **lookup**: Lookup service contract and HTTP client
- **config**: YAML settings with environment overrides
"""

from .codec import decode, encode
from .config import InfoDbSettings, load_settings
from .info_cache import InfoCache
from .models import CacheEntry, EntryState, MetadataRecord

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "CacheEntry",
    "EntryState",
    "InfoCache",
    "InfoDbSettings",
    "MetadataRecord",
    "decode",
    "encode",
    "load_settings",
]
