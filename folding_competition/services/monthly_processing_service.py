"""
Monthly processing service for the team competition.

At the end of each competition month the team and category leaderboards are
archived as a MonthlyResult, then every user's stats are reset so the new month
starts from zero. The snapshot must always be taken before the reset.
"""

import json
import logging
from datetime import datetime
from typing import Dict, Optional, Tuple

from sqlalchemy import select, delete

from folding_competition.services.base import BaseService
from folding_competition.services.leaderboard import LeaderboardService
from folding_competition.services.locks import CompetitionLocks
from folding_competition.database.models import (
    MonthlyResult, RetiredUserStats, User, UserBaseline, UserOffset, UserStatsSnapshot
)
from folding_competition.data_models.leaderboard import MonthlyResultData
from folding_competition.data_models.stats import ProviderStats
from folding_competition.utils.exceptions import InvalidStateError, NotFoundError
from folding_competition.utils.time_utils import to_utc, utc_now

logger = logging.getLogger(__name__)

class MonthlyProcessingService(BaseService):
    """Service for archiving monthly results and resetting competition stats."""
    
    def __init__(self, session_factory, stats_client, locks: CompetitionLocks,
                 leaderboard_service: Optional[LeaderboardService] = None):
        super().__init__(session_factory)
        self.stats_client = stats_client
        self.locks = locks
        self.leaderboard_service = leaderboard_service or LeaderboardService(session_factory)
    
    async def monthly_snapshot(self, now: Optional[datetime] = None,
                               period: Optional[Tuple[int, int]] = None) -> MonthlyResultData:
        """
        Archive the current leaderboards for the month containing ``now``.
        
        ``period`` overrides the (year, month) the result is stored under, for
        archiving a month after it has ended.
        
        A month with no stats is still archived. Each month can only be archived once.
        
        Raises:
            InvalidStateError: a result already exists for the month
        """
        now = to_utc(now or utc_now())
        
        async with self.locks.competition():
            monthly_result = await self._build_monthly_result(now, period)
            async with self.get_session() as session:
                await self._store_monthly_result(session, monthly_result)
        
        logger.info(f"Stored monthly result for {monthly_result.year}-{monthly_result.month:02d}")
        return self._to_data(monthly_result)
    
    async def reset(self, now: Optional[datetime] = None):
        """
        Clear all competition stats and re-base every user at their current provider totals.
        
        All provider totals are fetched before anything is changed, so a provider
        failure leaves the competition untouched.
        
        Raises:
            TransientProviderError: a user's current totals could not be retrieved
            ProviderProtocolError: unexpected provider payload
        """
        now = to_utc(now or utc_now())
        
        async with self.locks.competition():
            current_stats = await self._fetch_current_stats()
            async with self.get_session() as session:
                await self._apply_reset(session, current_stats, now)
        
        logger.info("Monthly reset complete")
    
    async def snapshot_and_reset(self, now: Optional[datetime] = None,
                                 period: Optional[Tuple[int, int]] = None) -> MonthlyResultData:
        """
        Archive the month containing ``now`` then reset, as a single transaction.
        
        Provider totals are fetched first. If any fetch fails nothing is archived
        or reset, so the whole operation can simply be retried.
        """
        now = to_utc(now or utc_now())
        
        async with self.locks.competition():
            current_stats = await self._fetch_current_stats()
            monthly_result = await self._build_monthly_result(now, period)
            
            async with self.get_session() as session:
                await self._store_monthly_result(session, monthly_result)
                await self._apply_reset(session, current_stats, now)
        
        logger.info(
            f"Stored monthly result for {monthly_result.year}-{monthly_result.month:02d} "
            f"and reset stats for {len(current_stats)} user(s)"
        )
        return self._to_data(monthly_result)
    
    async def get_monthly_result(self, year: int, month: int) -> MonthlyResultData:
        async with self.get_session() as session:
            result = await session.execute(
                select(MonthlyResult).where(MonthlyResult.year == year, MonthlyResult.month == month)
            )
            monthly_result = result.scalar_one_or_none()
            if monthly_result is None:
                raise NotFoundError("Monthly result", f"{year}-{month:02d}")
            return self._to_data(monthly_result)
    
    async def _build_monthly_result(self, now: datetime, period: Optional[Tuple[int, int]]) -> MonthlyResult:
        year, month = period or (now.year, now.month)
        summary = await self.leaderboard_service.summary_service.get_competition_summary()
        team_leaderboard = self.leaderboard_service.build_team_leaderboard(summary)
        category_leaderboard = self.leaderboard_service.build_category_leaderboard(summary)
        
        if not team_leaderboard:
            logger.warning(f"Monthly result for {year}-{month:02d} has no teams")
        
        return MonthlyResult(
            year=year,
            month=month,
            utc_timestamp=now,
            team_leaderboard=json.dumps([entry.to_dict() for entry in team_leaderboard]),
            category_leaderboard=json.dumps({
                category.name: [entry.to_dict() for entry in entries]
                for category, entries in category_leaderboard.items()
            })
        )
    
    async def _store_monthly_result(self, session, monthly_result: MonthlyResult):
        existing = await session.execute(
            select(MonthlyResult.id).where(
                MonthlyResult.year == monthly_result.year,
                MonthlyResult.month == monthly_result.month
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise InvalidStateError(
                f"Monthly result for {monthly_result.year}-{monthly_result.month:02d} already exists"
            )
        session.add(monthly_result)
    
    async def _fetch_current_stats(self) -> Dict[int, ProviderStats]:
        """Current provider totals for every active user, failing on the first provider error."""
        async with self.get_session() as session:
            users = list((await session.execute(select(User).order_by(User.id))).scalars())
        
        current_stats: Dict[int, ProviderStats] = {}
        for user in users:
            current_stats[user.id] = await self.stats_client.fetch_cumulative_stats(user.folding_user_name, user.passkey)
        return current_stats
    
    async def _apply_reset(self, session, current_stats: Dict[int, ProviderStats], now: datetime):
        logger.info(f"Resetting competition stats for {len(current_stats)} user(s)")
        await session.execute(delete(UserStatsSnapshot))
        await session.execute(delete(RetiredUserStats))
        await session.execute(delete(UserOffset))
        
        # Only users that still exist are re-based
        user_ids = set((await session.execute(select(User.id))).scalars())
        await session.execute(delete(UserBaseline).where(UserBaseline.user_id.notin_(user_ids)))
        
        missing = user_ids - current_stats.keys()
        if missing:
            raise InvalidStateError(f"No current stats for user(s) {sorted(missing)}, reset aborted")
        
        baselines = {
            b.user_id: b for b in (await session.execute(select(UserBaseline))).scalars()
        }
        for user_id in user_ids:
            stats = current_stats[user_id]
            baseline = baselines.get(user_id)
            if baseline is None:
                baseline = UserBaseline(user_id=user_id)
                session.add(baseline)
            baseline.raw_points = stats.points
            baseline.raw_units = stats.units
            baseline.utc_timestamp = now
    
    @staticmethod
    def _to_data(monthly_result: MonthlyResult) -> MonthlyResultData:
        return MonthlyResultData(
            year=monthly_result.year,
            month=monthly_result.month,
            utc_timestamp=monthly_result.utc_timestamp.isoformat(),
            team_leaderboard=json.loads(monthly_result.team_leaderboard),
            category_leaderboard=json.loads(monthly_result.category_leaderboard)
        )
