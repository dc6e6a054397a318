"""
Leaderboard service for team and category rankings.

Both leaderboards are computed from the current competition summary and ranked
by multiplied points, with ties sharing a rank.
"""

import logging
from typing import Dict, List

from folding_competition.services.base import BaseService
from folding_competition.services.summary_service import SummaryService
from folding_competition.database.models import Category
from folding_competition.data_models.leaderboard import TeamLeaderboardEntry, UserCategoryLeaderboardEntry
from folding_competition.data_models.summary import CompetitionSummary
from folding_competition.utils.ranking import RankingUtility

logger = logging.getLogger(__name__)


class LeaderboardService(BaseService):
    """Service for team and per-category user leaderboards."""
    
    def __init__(self, session_factory, summary_service: SummaryService = None):
        super().__init__(session_factory)
        self.summary_service = summary_service or SummaryService(session_factory)
    
    async def team_leaderboard(self) -> List[TeamLeaderboardEntry]:
        summary = await self.summary_service.get_competition_summary()
        return self.build_team_leaderboard(summary)
    
    async def category_leaderboard(self) -> Dict[Category, List[UserCategoryLeaderboardEntry]]:
        summary = await self.summary_service.get_competition_summary()
        return self.build_category_leaderboard(summary)
    
    @staticmethod
    def build_team_leaderboard(summary: CompetitionSummary) -> List[TeamLeaderboardEntry]:
        """Teams ranked by multiplied points, ties ordered by team creation."""
        teams = sorted(summary.teams, key=lambda t: t.team_id)
        return [
            TeamLeaderboardEntry(
                rank=entry.rank,
                team_id=entry.item.team_id,
                team_name=entry.item.team_name,
                points=entry.item.points,
                multiplied_points=entry.item.multiplied_points,
                units=entry.item.units,
                diff_to_leader=entry.diff_to_leader,
                diff_to_next=entry.diff_to_next
            )
            for entry in RankingUtility.rank(teams, key=lambda t: t.multiplied_points)
        ]
    
    @staticmethod
    def build_category_leaderboard(summary: CompetitionSummary) -> Dict[Category, List[UserCategoryLeaderboardEntry]]:
        """
        Active users ranked within their category across all teams.
        
        Categories without any users are left out of the mapping.
        """
        team_names = {team.team_id: team.team_name for team in summary.teams}
        users_by_category: Dict[Category, list] = {}
        for team in summary.teams:
            for user in team.active_users:
                users_by_category.setdefault(Category[user.category], []).append(user)
        
        leaderboards = {}
        for category in Category:
            users = users_by_category.get(category)
            if not users:
                continue
            users.sort(key=lambda u: u.user_id)
            leaderboards[category] = [
                UserCategoryLeaderboardEntry(
                    rank=entry.rank,
                    user_id=entry.item.user_id,
                    display_name=entry.item.display_name,
                    team_name=team_names[entry.item.team_id],
                    hardware_name=entry.item.hardware_name,
                    points=entry.item.points,
                    multiplied_points=entry.item.multiplied_points,
                    units=entry.item.units,
                    diff_to_leader=entry.diff_to_leader,
                    diff_to_next=entry.diff_to_next
                )
                for entry in RankingUtility.rank(users, key=lambda u: u.multiplied_points)
            ]
        return leaderboards
