"""
Stats ingestion service for the team competition.

Polls the stats provider for every active user, computes the raw delta since the
user's last known provider totals and hands it to the StatsAccumulator. Each user
is an independent unit of work: a failed fetch for one user is recorded as
skipped and retried on the next cycle, never aborting the rest of the batch.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import select

from folding_competition.config import Config
from folding_competition.services.base import BaseService
from folding_competition.services.locks import CompetitionLocks
from folding_competition.services.stats_accumulator import StatsAccumulator, get_raw_reference
from folding_competition.database.models import User
from folding_competition.data_models.stats import IngestionResult, StatsDelta
from folding_competition.utils.exceptions import ProviderError
from folding_competition.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

class IngestionService(BaseService):
    """Service for polling provider stats and accumulating deltas per user."""
    
    def __init__(self, session_factory, stats_client, accumulator: StatsAccumulator,
                 locks: CompetitionLocks, concurrency: Optional[int] = None):
        super().__init__(session_factory)
        self.stats_client = stats_client
        self.accumulator = accumulator
        self.locks = locks
        self.concurrency = concurrency or Config.INGESTION_CONCURRENCY
    
    async def ingest(self, user: User) -> StatsDelta:
        """
        Compute the raw delta for a user since their last known provider totals.
        
        A provider total lower than the reference (account reset, name or passkey
        swap) is treated as no progress for that field; the reference is never
        moved backwards.
        
        Raises:
            TransientProviderError: provider unreachable
            ProviderProtocolError: unexpected provider payload
        """
        current = await self.stats_client.fetch_cumulative_stats(user.folding_user_name, user.passkey)
        
        async with self.get_session() as session:
            reference_points, reference_units = await get_raw_reference(session, user.id)
        
        points_delta = current.points - reference_points
        units_delta = current.units - reference_units
        is_anomalous = points_delta < 0 or units_delta < 0
        
        if is_anomalous:
            logger.warning(
                f"{user.display_name} (ID: {user.id}): provider totals went backwards "
                f"(points {reference_points:,} -> {current.points:,}, units {reference_units:,} -> {current.units:,}), "
                f"ignoring negative delta"
            )
        
        return StatsDelta(
            points=max(0, points_delta),
            units=max(0, units_delta),
            is_anomalous=is_anomalous
        )
    
    async def ingest_user(self, user_id: int, now: Optional[datetime] = None) -> Tuple[str, Optional[str]]:
        """
        Ingest and accumulate stats for a single user.
        
        Returns:
            Tuple of (outcome, reason) where outcome is 'succeeded', 'anomalous' or 'skipped'
        """
        async with self.locks.user(user_id):
            async with self.get_session() as session:
                user = await session.get(User, user_id)
            
            if user is None:
                # Removed between listing users and processing them
                return 'skipped', 'user no longer exists'
            
            try:
                delta = await self.ingest(user)
            except ProviderError as e:
                logger.warning(f"Skipping stats for {user.display_name} (ID: {user.id}): {e}")
                return 'skipped', str(e)
            
            await self.accumulator.accumulate(user, delta.points, delta.units, now or utc_now())
            return ('anomalous' if delta.is_anomalous else 'succeeded'), None
    
    async def ingest_cycle(self, now: Optional[datetime] = None) -> IngestionResult:
        """
        Run one full ingestion pass over all active users.
        
        Users are processed concurrently up to the configured limit. All snapshots
        appended in one cycle share the cycle's timestamp.
        """
        async with self.locks.competition():
            cycle_time = now or utc_now()
            result = IngestionResult(started_at=cycle_time)
            
            async with self.get_session() as session:
                user_ids = list((await session.execute(select(User.id).order_by(User.id))).scalars())
            
            if not user_ids:
                logger.info("No users to ingest stats for")
                return result
            
            logger.info(f"Starting stats update for {len(user_ids)} user(s)")
            semaphore = asyncio.Semaphore(self.concurrency)
            
            async def run(user_id: int):
                async with semaphore:
                    try:
                        return user_id, await self.ingest_user(user_id, cycle_time)
                    except Exception as e:
                        logger.error(f"Unexpected error updating stats for user {user_id}: {e}", exc_info=True)
                        return user_id, ('skipped', f"unexpected error: {e}")
            
            outcomes = await asyncio.gather(*(run(user_id) for user_id in user_ids))
            
            for user_id, (outcome, reason) in outcomes:
                if outcome == 'skipped':
                    result.skipped[user_id] = reason
                    continue
                result.succeeded.append(user_id)
                if outcome == 'anomalous':
                    result.anomalous.append(user_id)
            
            logger.info(
                f"Stats update complete: {len(result.succeeded)} succeeded, {len(result.skipped)} skipped"
            )
            return result
