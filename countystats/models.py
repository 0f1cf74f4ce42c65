"""
CountyStats - Data Models

Records passed between the fetcher, the cache and the warm cycle.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, List, Optional

from countystats.exceptions import (
    CountyStatsError,
    PerKeyWarmError,
    SubFetchError,
)


# Section names produced by the county fetcher
SECTION_TOTAL = "total"
SECTION_GAP_STATUS = "gap_status"
DEFAULT_SECTIONS = (SECTION_TOTAL, SECTION_GAP_STATUS)


@dataclass
class RegionRecord:
    """
    Merged statistics for one county.

    Sections map a section name to its sub-result. A record missing any
    expected section is degraded; callers check with is_complete().
    """
    sections: Dict[str, Any] = field(default_factory=dict)

    def __contains__(self, section: str) -> bool:
        return section in self.sections

    def __getitem__(self, section: str) -> Any:
        return self.sections[section]

    def missing_sections(self, expected: Iterable[str] = DEFAULT_SECTIONS) -> List[str]:
        """Return expected section names absent from this record."""
        return [name for name in expected if name not in self.sections]

    def is_complete(self, expected: Iterable[str] = DEFAULT_SECTIONS) -> bool:
        """True if every expected section is present."""
        return not self.missing_sections(expected)

    def to_dict(self) -> Dict[str, Any]:
        """Flat keyed structure used for the cache value and HTTP payload."""
        return dict(self.sections)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegionRecord":
        return cls(sections=dict(data))


@dataclass
class SectionResult:
    """Outcome of a single sub-fetch."""
    section: str
    data: Any = None
    error: Optional[SubFetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class WarmReport:
    """
    Summary of one warm cycle.

    A cycle is complete once every catalog key has been attempted, whether
    or not each key succeeded.
    """
    total: int = 0
    stored: List[str] = field(default_factory=list)
    degraded: List[str] = field(default_factory=list)
    failed: Dict[str, PerKeyWarmError] = field(default_factory=dict)
    started_at: float = field(default_factory=time.time)
    duration_ms: float = 0.0

    @property
    def attempted(self) -> int:
        return len(self.stored) + len(self.failed)

    def summary(self) -> Dict[str, Any]:
        """Serializable summary for status endpoints."""
        return {
            "total": self.total,
            "stored": len(self.stored),
            "degraded": sorted(self.degraded),
            "failed": {key: str(error) for key, error in sorted(self.failed.items())},
            "started_at": self.started_at,
            "duration_ms": round(self.duration_ms, 1),
        }


class CacheStats:
    """
    Hit/miss observations for the cache-aside resolver.

    Counters are updated from request threads, so increments take a lock.
    Recent errors are kept as typed exceptions for inspection.
    """

    def __init__(self, max_recent_errors: int = 50):
        self.hits = 0
        self.misses = 0
        self.fills = 0
        self.cache_errors = 0
        self.recent_errors: Deque[CountyStatsError] = deque(maxlen=max_recent_errors)
        self._lock = threading.Lock()

    def record_hit(self) -> None:
        with self._lock:
            self.hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self.misses += 1

    def record_fill(self) -> None:
        with self._lock:
            self.fills += 1

    def record_error(self, error: CountyStatsError) -> None:
        with self._lock:
            self.cache_errors += 1
            self.recent_errors.append(error)

    @property
    def hit_ratio(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "fills": self.fills,
            "cache_errors": self.cache_errors,
            "hit_ratio": round(self.hit_ratio, 3),
        }
