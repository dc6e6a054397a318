"""
Multiplier accumulation for team competition stats.

Converts raw point/unit deltas into cumulative competition stats using the
hardware multiplier in effect when the delta is accumulated, and appends the
result to the user's stats time series. Existing rows are never modified, so a
later multiplier change only affects points gained after it.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from folding_competition.services.base import BaseService
from folding_competition.database.models import Hardware, User, UserBaseline, UserStatsSnapshot
from folding_competition.utils.exceptions import InvalidStateError
from folding_competition.utils.multiplier import MultiplierCalculator
from folding_competition.utils.time_utils import to_utc

logger = logging.getLogger(__name__)


async def get_latest_snapshot(session: AsyncSession, user_id: int) -> Optional[UserStatsSnapshot]:
    """Most recent stats snapshot for a user, or None if none this month."""
    stmt = (
        select(UserStatsSnapshot)
        .where(UserStatsSnapshot.user_id == user_id)
        .order_by(UserStatsSnapshot.utc_timestamp.desc(), UserStatsSnapshot.id.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_raw_reference(session: AsyncSession, user_id: int) -> Tuple[int, int]:
    """
    Raw provider totals the next delta is computed against.
    
    This is the latest snapshot's raw reference, or the baseline if the user has
    no snapshot since their baseline was taken.
    """
    latest = await get_latest_snapshot(session, user_id)
    if latest is not None:
        return latest.raw_points, latest.raw_units
    
    baseline = await session.get(UserBaseline, user_id)
    if baseline is None:
        raise InvalidStateError(f"User {user_id} has no baseline stats")
    return baseline.raw_points, baseline.raw_units


def build_next_snapshot(user_id: int, previous: Optional[UserStatsSnapshot], raw_reference: Tuple[int, int],
                        raw_points_delta: int, raw_units_delta: int, multiplier: float,
                        now: datetime) -> UserStatsSnapshot:
    """Create the snapshot that follows ``previous`` after applying a delta."""
    multiplied_points_delta = MultiplierCalculator.apply_multiplier(raw_points_delta, multiplier)
    
    return UserStatsSnapshot(
        user_id=user_id,
        utc_timestamp=now,
        raw_points=raw_reference[0] + raw_points_delta,
        raw_units=raw_reference[1] + raw_units_delta,
        points=(previous.points if previous else 0) + raw_points_delta,
        multiplied_points=(previous.multiplied_points if previous else 0) + multiplied_points_delta,
        units=(previous.units if previous else 0) + raw_units_delta
    )


class StatsAccumulator(BaseService):
    """Appends cumulative competition stats for users."""
    
    async def accumulate(self, user: User, raw_points_delta: int, raw_units_delta: int,
                         now: datetime) -> UserStatsSnapshot:
        """
        Accumulate a raw delta for a user and append the new snapshot.
        
        Args:
            user: User the delta belongs to
            raw_points_delta: Unmultiplied points gained since the last reference
            raw_units_delta: Units completed since the last reference
            now: Timestamp of the snapshot
            
        Returns:
            The appended snapshot
        """
        if raw_points_delta < 0 or raw_units_delta < 0:
            raise ValueError(f"Deltas must not be negative: points={raw_points_delta}, units={raw_units_delta}")
        
        async with self.get_session() as session:
            # Multiplier is read at accumulation time, never cached on the user
            hardware = await session.get(Hardware, user.hardware_id)
            if hardware is None:
                raise InvalidStateError(f"User {user.id} references missing hardware {user.hardware_id}")
            
            previous = await get_latest_snapshot(session, user.id)
            if previous is not None:
                raw_reference = (previous.raw_points, previous.raw_units)
            else:
                raw_reference = await get_raw_reference(session, user.id)
            
            snapshot = build_next_snapshot(
                user.id, previous, raw_reference,
                raw_points_delta, raw_units_delta, hardware.multiplier,
                to_utc(now)
            )
            session.add(snapshot)
        
        if raw_points_delta or raw_units_delta:
            logger.debug(
                f"{user.display_name} (ID: {user.id}): +{raw_points_delta:,} points "
                f"(x{hardware.multiplier}) | +{raw_units_delta:,} units"
            )
        logger.info(
            f"{user.display_name} (ID: {user.id}): {snapshot.multiplied_points:,} TC points | {snapshot.units:,} TC units"
        )
        return snapshot


def offset_adjusted_totals(latest: Optional[UserStatsSnapshot], offset) -> Tuple[int, int, int]:
    """
    Offset-adjusted (points, multiplied points, units) for reading.
    
    Offsets are never stored in snapshots; each total is clamped to zero
    independently so a negative offset cannot produce negative stats.
    """
    points = latest.points if latest else 0
    multiplied_points = latest.multiplied_points if latest else 0
    units = latest.units if latest else 0
    if offset is not None:
        points += offset.points
        multiplied_points += offset.multiplied_points
        units += offset.units
    return max(0, points), max(0, multiplied_points), max(0, units)
