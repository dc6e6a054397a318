import asyncio

from folding_competition.config import Config
from folding_competition.database.database import Database
from folding_competition.scheduler import CompetitionScheduler
from folding_competition.services.competition import TeamCompetition
from folding_competition.services.stats_provider import FoldingStatsClient
from folding_competition.utils.logger import setup_logger

# Service modules log through child loggers of the package logger
setup_logger('folding_competition')
logger = setup_logger(__name__)

async def run():
    """Run the competition until interrupted"""
    Config.validate()
    
    db = Database()
    await db.initialize()
    stats_client = FoldingStatsClient()
    
    competition = TeamCompetition(db.session_factory, stats_client)
    scheduler = CompetitionScheduler(competition)
    scheduler.start()
    logger.info("Team competition running")
    
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
        await stats_client.close()
        await db.close()

def main():
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Team competition stopped")

if __name__ == "__main__":
    main()
