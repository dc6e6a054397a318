"""
Historic stats service.

Re-slices a user's stats time series into hourly, daily or monthly buckets on
every query. Each bucket reports the gain within that bucket: the maximum
cumulative value seen in the bucket minus the maximum of the bucket before it.
"""

import hashlib
import json
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import select

from folding_competition.services.base import BaseService
from folding_competition.database.models import Team, User, UserStatsSnapshot
from folding_competition.data_models.stats import Granularity, HistoricStats, HistoricStatsResult, UNCHANGED
from folding_competition.utils.exceptions import NotFoundError
from folding_competition.utils.time_utils import (
    day_bounds, month_bounds, year_bounds, truncate_to_day, truncate_to_hour, truncate_to_month
)

logger = logging.getLogger(__name__)

_TRUNCATE = {
    Granularity.HOUR: truncate_to_hour,
    Granularity.DAY: truncate_to_day,
    Granularity.MONTH: truncate_to_month,
}

_PERIOD_LENGTH = {
    Granularity.HOUR: 3,
    Granularity.DAY: 2,
    Granularity.MONTH: 1,
}

Totals = Tuple[int, int, int]


def compute_fingerprint(stats: Sequence[HistoricStats]) -> str:
    """SHA-256 over the canonical JSON of a historic result."""
    canonical = json.dumps([s.to_dict() for s in stats], sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


def bucket_maximums(snapshots: Iterable[UserStatsSnapshot], granularity: Granularity) -> Dict[datetime, Totals]:
    """Max cumulative (points, multiplied points, units) per bucket, per field."""
    truncate = _TRUNCATE[granularity]
    maximums: Dict[datetime, Totals] = {}
    for snapshot in snapshots:
        bucket = truncate(snapshot.utc_timestamp)
        current = (snapshot.points, snapshot.multiplied_points, snapshot.units)
        if bucket in maximums:
            current = tuple(max(a, b) for a, b in zip(maximums[bucket], current))
        maximums[bucket] = current
    return maximums


def diff_buckets(maximums: Dict[datetime, Totals], granularity: Granularity,
                 boundary: Totals = (0, 0, 0)) -> List[HistoricStats]:
    """
    Convert bucket maximums into per-bucket gains.
    
    Monthly buckets always diff against zero since each month starts from a reset.
    """
    stats = []
    previous = boundary
    for bucket_start in sorted(maximums):
        current = maximums[bucket_start]
        if granularity is Granularity.MONTH:
            previous = (0, 0, 0)
        points, multiplied_points, units = (max(0, c - p) for c, p in zip(current, previous))
        stats.append(HistoricStats(
            bucket_start=bucket_start,
            points=points,
            multiplied_points=multiplied_points,
            units=units
        ))
        previous = current
    return stats


class HistoricStatsService(BaseService):
    """Service for hourly, daily and monthly historic stats."""
    
    async def historic_stats(self, user_id: int, granularity: Union[Granularity, str],
                             period: Sequence[int]) -> List[HistoricStats]:
        """
        Get historic stats for a user.
        
        Args:
            user_id: Active user ID
            granularity: hour, day or month
            period: (year, month, day) for hour, (year, month) for day, (year,) for month
            
        Returns:
            Buckets ordered by start time, empty if the user has no stats in the period
        """
        granularity = self._parse_granularity(granularity)
        start, end = self._period_bounds(granularity, period)
        
        async with self.get_session() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return await self._user_buckets(session, user_id, granularity, start, end)
    
    async def historic_stats_result(self, user_id: int, granularity: Union[Granularity, str],
                                    period: Sequence[int], fingerprint: Optional[str] = None):
        """Historic stats with a fingerprint, or UNCHANGED if ``fingerprint`` still matches."""
        stats = await self.historic_stats(user_id, granularity, period)
        return self._with_fingerprint(stats, fingerprint)
    
    async def team_historic_stats(self, team_id: int, granularity: Union[Granularity, str],
                                  period: Sequence[int]) -> List[HistoricStats]:
        """Historic stats for a team, summing the buckets of its active users."""
        granularity = self._parse_granularity(granularity)
        start, end = self._period_bounds(granularity, period)
        
        async with self.get_session() as session:
            team = await session.get(Team, team_id)
            if team is None:
                raise NotFoundError("Team", team_id)
            
            totals: Dict[datetime, List[int]] = {}
            for user in team.users:
                for bucket in await self._user_buckets(session, user.id, granularity, start, end):
                    summed = totals.setdefault(bucket.bucket_start, [0, 0, 0])
                    summed[0] += bucket.points
                    summed[1] += bucket.multiplied_points
                    summed[2] += bucket.units
        
        return [
            HistoricStats(bucket_start=bucket_start, points=p, multiplied_points=mp, units=u)
            for bucket_start, (p, mp, u) in sorted(totals.items())
        ]
    
    async def team_historic_stats_result(self, team_id: int, granularity: Union[Granularity, str],
                                         period: Sequence[int], fingerprint: Optional[str] = None):
        stats = await self.team_historic_stats(team_id, granularity, period)
        return self._with_fingerprint(stats, fingerprint)
    
    async def _user_buckets(self, session, user_id: int, granularity: Granularity,
                            start: datetime, end: datetime) -> List[HistoricStats]:
        stmt = (
            select(UserStatsSnapshot)
            .where(
                UserStatsSnapshot.user_id == user_id,
                UserStatsSnapshot.utc_timestamp >= start,
                UserStatsSnapshot.utc_timestamp < end
            )
            .order_by(UserStatsSnapshot.utc_timestamp, UserStatsSnapshot.id)
        )
        snapshots = list((await session.execute(stmt)).scalars())
        if not snapshots:
            return []
        
        boundary = (0, 0, 0)
        if granularity is Granularity.HOUR:
            boundary = await self._hourly_boundary(session, user_id, start)
        
        return diff_buckets(bucket_maximums(snapshots, granularity), granularity, boundary)
    
    async def _hourly_boundary(self, session, user_id: int, day_start: datetime) -> Totals:
        """Last cumulative value earlier in the same month, or zero on the first day."""
        month_start = truncate_to_month(day_start)
        if day_start == month_start:
            return 0, 0, 0
        
        stmt = (
            select(UserStatsSnapshot)
            .where(
                UserStatsSnapshot.user_id == user_id,
                UserStatsSnapshot.utc_timestamp >= month_start,
                UserStatsSnapshot.utc_timestamp < day_start
            )
            .order_by(UserStatsSnapshot.utc_timestamp.desc(), UserStatsSnapshot.id.desc())
            .limit(1)
        )
        previous = (await session.execute(stmt)).scalar_one_or_none()
        if previous is None:
            return 0, 0, 0
        return previous.points, previous.multiplied_points, previous.units
    
    @staticmethod
    def _with_fingerprint(stats: List[HistoricStats], fingerprint: Optional[str]):
        current = compute_fingerprint(stats)
        if fingerprint is not None and fingerprint == current:
            logger.debug(f"Historic stats unchanged for fingerprint {fingerprint[:12]}")
            return UNCHANGED
        return HistoricStatsResult(stats=tuple(stats), fingerprint=current)
    
    @staticmethod
    def _parse_granularity(granularity: Union[Granularity, str]) -> Granularity:
        if isinstance(granularity, Granularity):
            return granularity
        try:
            return Granularity(granularity.lower())
        except ValueError:
            raise ValueError(f"Unknown granularity: {granularity}") from None
    
    @staticmethod
    def _period_bounds(granularity: Granularity, period: Sequence[int]) -> Tuple[datetime, datetime]:
        period = tuple(period)
        if len(period) != _PERIOD_LENGTH[granularity]:
            raise ValueError(f"Invalid period {period} for {granularity.value} granularity")
        if granularity is Granularity.HOUR:
            return day_bounds(*period)
        if granularity is Granularity.DAY:
            return month_bounds(*period)
        return year_bounds(*period)
