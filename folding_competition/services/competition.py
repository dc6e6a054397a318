"""
Team competition facade.

Wires the competition services around one session factory, stats client and
lock registry, and exposes the operations used by the scheduler and any outer
interface.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Union

from folding_competition.services.hardware_multiplier_service import HardwareMultiplierService
from folding_competition.services.historic_stats_service import HistoricStatsService
from folding_competition.services.ingestion_service import IngestionService
from folding_competition.services.leaderboard import LeaderboardService
from folding_competition.services.locks import CompetitionLocks
from folding_competition.services.monthly_processing_service import MonthlyProcessingService
from folding_competition.services.roster_service import RosterService
from folding_competition.services.stats_accumulator import StatsAccumulator
from folding_competition.services.summary_service import SummaryService
from folding_competition.database.models import Category, RetiredUserStats, User, UserOffset
from folding_competition.data_models.leaderboard import (
    MonthlyResultData, TeamLeaderboardEntry, UserCategoryLeaderboardEntry
)
from folding_competition.data_models.stats import CatalogEntry, Granularity, HardwareUpdateResult, IngestionResult
from folding_competition.data_models.summary import CompetitionSummary, TeamSummary, UserSummary

logger = logging.getLogger(__name__)

class TeamCompetition:
    """Entry point for all team competition operations."""
    
    def __init__(self, session_factory, stats_client, concurrency: Optional[int] = None):
        self.stats_client = stats_client
        self.locks = CompetitionLocks()
        
        self.accumulator = StatsAccumulator(session_factory)
        self.ingestion = IngestionService(session_factory, stats_client, self.accumulator, self.locks, concurrency)
        self.roster = RosterService(session_factory, stats_client, self.locks)
        self.summaries = SummaryService(session_factory)
        self.leaderboards = LeaderboardService(session_factory, self.summaries)
        self.historic = HistoricStatsService(session_factory)
        self.monthly = MonthlyProcessingService(session_factory, stats_client, self.locks, self.leaderboards)
        self.hardware = HardwareMultiplierService(session_factory, self.locks)
    
    # Stats
    async def ingest_cycle(self, now: Optional[datetime] = None) -> IngestionResult:
        return await self.ingestion.ingest_cycle(now)
    
    async def get_competition_summary(self) -> CompetitionSummary:
        return await self.summaries.get_competition_summary()
    
    async def get_team_summary(self, team_id: int) -> TeamSummary:
        return await self.summaries.get_team_summary(team_id)
    
    async def get_user_summary(self, user_id: int) -> UserSummary:
        return await self.summaries.get_user_summary(user_id)
    
    async def get_historic_stats(self, user_id: int, granularity: Union[Granularity, str],
                                 period: Sequence[int], fingerprint: Optional[str] = None):
        """
        Historic stats for a user.
        
        Returns a HistoricStatsResult, or UNCHANGED when ``fingerprint`` matches
        the current result.
        """
        return await self.historic.historic_stats_result(user_id, granularity, period, fingerprint)
    
    async def get_team_historic_stats(self, team_id: int, granularity: Union[Granularity, str],
                                      period: Sequence[int], fingerprint: Optional[str] = None):
        return await self.historic.team_historic_stats_result(team_id, granularity, period, fingerprint)
    
    # Leaderboards
    async def get_team_leaderboard(self) -> List[TeamLeaderboardEntry]:
        return await self.leaderboards.team_leaderboard()
    
    async def get_category_leaderboard(self) -> Dict[Category, List[UserCategoryLeaderboardEntry]]:
        return await self.leaderboards.category_leaderboard()
    
    # Monthly processing
    async def monthly_snapshot(self, now: Optional[datetime] = None) -> MonthlyResultData:
        return await self.monthly.monthly_snapshot(now)
    
    async def trigger_monthly_reset(self, now: Optional[datetime] = None) -> MonthlyResultData:
        """Archive the current month's leaderboards, then reset all stats."""
        logger.info("Monthly reset triggered")
        return await self.monthly.snapshot_and_reset(now)
    
    async def get_monthly_result(self, year: int, month: int) -> MonthlyResultData:
        return await self.monthly.get_monthly_result(year, month)
    
    # Hardware
    async def recalculate_multipliers(self, catalog: Iterable[CatalogEntry]) -> HardwareUpdateResult:
        return await self.hardware.recalculate_multipliers(catalog)
    
    # Roster
    async def create_user(self, *args, **kwargs) -> User:
        return await self.roster.create_user(*args, **kwargs)
    
    async def reactivate_user(self, *args, **kwargs) -> User:
        return await self.roster.reactivate_user(*args, **kwargs)
    
    async def delete_user(self, user_id: int) -> Optional[RetiredUserStats]:
        return await self.roster.delete_user(user_id)
    
    async def team_has_captain(self, team_id: int) -> bool:
        return await self.roster.team_has_captain(team_id)
    
    async def apply_offset(self, user_id: int, points: int = 0, multiplied_points: int = 0,
                           units: int = 0) -> UserOffset:
        return await self.roster.apply_offset(user_id, points, multiplied_points, units)
    
    async def update_user_hardware(self, user_id: int, hardware_id: int) -> User:
        return await self.roster.update_user_hardware(user_id, hardware_id)
