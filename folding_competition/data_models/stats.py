"""
Stats data models for ingestion results and historic queries.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ProviderStats:
    """Lifetime cumulative totals reported by the stats provider."""
    points: int
    units: int


@dataclass(frozen=True)
class StatsDelta:
    """Raw increase since the last known provider totals."""
    points: int
    units: int
    is_anomalous: bool = False


@dataclass
class IngestionResult:
    """Outcome of one ingestion cycle across all users."""
    started_at: datetime
    succeeded: List[int] = field(default_factory=list)
    skipped: Dict[int, str] = field(default_factory=dict)
    anomalous: List[int] = field(default_factory=list)
    
    @property
    def total_users(self) -> int:
        return len(self.succeeded) + len(self.skipped)


class Granularity(Enum):
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"


@dataclass(frozen=True)
class HistoricStats:
    """Stats gained within a single hour, day or month bucket."""
    bucket_start: datetime
    points: int
    multiplied_points: int
    units: int
    
    def to_dict(self) -> Dict:
        return {
            'bucket_start': self.bucket_start.isoformat(),
            'points': self.points,
            'multiplied_points': self.multiplied_points,
            'units': self.units,
        }


@dataclass(frozen=True)
class HistoricStatsResult:
    """Ordered historic buckets together with their content fingerprint."""
    stats: Tuple[HistoricStats, ...]
    fingerprint: str


class _Unchanged:
    """Sentinel returned when a caller's fingerprint still matches the stored data."""
    
    def __repr__(self):
        return "UNCHANGED"
    
    def __bool__(self):
        return False


UNCHANGED = _Unchanged()


@dataclass(frozen=True)
class CatalogEntry:
    """Hardware performance entry from the external GPU catalog."""
    hardware_name: str
    display_name: str
    hardware_make: str
    average_ppd: Optional[int]


@dataclass
class HardwareUpdateResult:
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)
