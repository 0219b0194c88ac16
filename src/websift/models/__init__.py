from __future__ import annotations

from websift.models.cache import CacheEntry, RobotsCacheEntry
from websift.models.tools import (
    BatchFetch,
    FetchRequest,
    ReadUrlInput,
    ResearchInput,
    SearchInput,
    SearchResult,
    SingleFetch,
)

__all__ = [
    # cache
    "CacheEntry",
    "RobotsCacheEntry",
    # tools
    "ReadUrlInput",
    "ResearchInput",
    "SearchInput",
    "SearchResult",
    "SingleFetch",
    "BatchFetch",
    "FetchRequest",
]
