"""
Background scheduling for the team competition.

Runs stats ingestion on a fixed interval and checks hourly whether a new
competition month has started in the configured timezone, archiving the
previous month and resetting stats when it has.
"""

from datetime import datetime
from typing import Optional

from discord.ext import tasks

from folding_competition.config import Config
from folding_competition.services.competition import TeamCompetition
from folding_competition.utils.exceptions import NotFoundError
from folding_competition.utils.logger import setup_logger
from folding_competition.utils.time_utils import local_now, previous_month

logger = setup_logger(__name__)


class CompetitionScheduler:
    """Owns the periodic stats and monthly reset tasks"""
    
    def __init__(self, competition: TeamCompetition, timezone_name: Optional[str] = None):
        self.competition = competition
        self.timezone_name = timezone_name or Config.TIMEZONE
        self.logger = logger
        self.update_stats.change_interval(minutes=Config.STATS_POLL_MINUTES)
    
    def start(self):
        self.update_stats.start()
        if Config.MONTHLY_RESET_ENABLED:
            self.monthly_reset_check.start()
        else:
            self.logger.warning("Monthly reset is disabled")
        self.logger.info(f"Scheduler started: stats every {Config.STATS_POLL_MINUTES} minute(s)")
    
    def stop(self):
        self.update_stats.cancel()
        self.monthly_reset_check.cancel()
        self.logger.info("Scheduler stopped")
    
    @tasks.loop(minutes=60)
    async def update_stats(self):
        """Background task to ingest stats for all users"""
        try:
            result = await self.competition.ingest_cycle()
            if result.skipped:
                self.logger.warning(f"Skipped {len(result.skipped)} user(s) this update: {result.skipped}")
        except Exception as e:
            self.logger.error(f"Error in stats update task: {e}", exc_info=True)
    
    @tasks.loop(hours=1)
    async def monthly_reset_check(self):
        """Background task to archive and reset once the month rolls over"""
        try:
            await self.run_monthly_reset_if_due(local_now(self.timezone_name))
        except Exception as e:
            self.logger.error(f"Error in monthly reset task: {e}", exc_info=True)
    
    async def run_monthly_reset_if_due(self, now: datetime) -> bool:
        """
        Archive the previous month and reset if ``now`` is on the first day of a
        month and the previous month has not been archived yet.
        
        Returns:
            True if a reset was performed
        """
        if now.day != 1:
            return False
        
        year, month = previous_month(now.year, now.month)
        try:
            await self.competition.get_monthly_result(year, month)
            return False
        except NotFoundError:
            pass
        
        self.logger.info(f"Competition month {year}-{month:02d} has ended, archiving and resetting")
        await self.competition.monthly.snapshot_and_reset(now, period=(year, month))
        return True
