from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from urllib.robotparser import RobotFileParser

V = TypeVar("V")


@dataclass(slots=True)
class CacheEntry(Generic[V]):
    """One value held by a BoundedCache. Owned by the cache that created it."""

    key: str
    value: V
    inserted_at: float  # time.monotonic() seconds
    last_access: float | None = None


@dataclass(slots=True)
class RobotsCacheEntry:
    """Parsed robots.txt rules for one hostname."""

    domain: str
    rules: RobotFileParser
    fetched_at: float  # time.monotonic() seconds
