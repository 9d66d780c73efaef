"""
External text sources.

- Sefaria texts API client with typed fetch errors
- In-process TTL/LRU memo cache
"""

from .cache import TTLCache
from .sefaria import (
    FetchError,
    FetchErrorKind,
    FetchResult,
    ReferenceFetcher,
    SefariaVersion,
    extract_index_title,
    pick_preferred_version,
)

__all__ = [
    "TTLCache",
    "FetchError",
    "FetchErrorKind",
    "FetchResult",
    "ReferenceFetcher",
    "SefariaVersion",
    "extract_index_title",
    "pick_preferred_version",
]
