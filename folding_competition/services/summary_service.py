"""
Competition summary service.

Builds team and user summaries on every read from the latest stats snapshot of
each active user, their offsets, and the retired user stats of each team.
"""

import logging
from dataclasses import replace
from typing import Dict, List

from sqlalchemy import select, func

from folding_competition.services.base import BaseService
from folding_competition.services.stats_accumulator import offset_adjusted_totals
from folding_competition.database.models import RetiredUserStats, Team, User, UserOffset, UserStatsSnapshot
from folding_competition.data_models.summary import (
    CompetitionSummary, RetiredUserSummary, TeamSummary, UserSummary
)
from folding_competition.utils.exceptions import NotFoundError
from folding_competition.utils.ranking import RankingUtility

logger = logging.getLogger(__name__)


class SummaryService(BaseService):
    """Service for competition, team and user summaries."""
    
    async def get_competition_summary(self) -> CompetitionSummary:
        """Summarise every team, ranked by multiplied points."""
        async with self.get_session() as session:
            teams = list((await session.execute(select(Team).order_by(Team.id))).scalars())
            users = list((await session.execute(select(User).order_by(User.id))).scalars())
            latest_snapshots = await self._get_latest_snapshots(session)
            offsets = {o.user_id: o for o in (await session.execute(select(UserOffset))).scalars()}
            retired_stats = list((await session.execute(
                select(RetiredUserStats).order_by(RetiredUserStats.id)
            )).scalars())
        
        user_summaries = self._build_user_summaries(users, latest_snapshots, offsets)
        
        retired_by_team: Dict[int, List[RetiredUserSummary]] = {}
        for retired in retired_stats:
            retired_by_team.setdefault(retired.team_id, []).append(RetiredUserSummary(
                retired_user_id=retired.id,
                display_name=retired.display_name,
                masked_identity=retired.masked_identity,
                points=retired.points,
                multiplied_points=retired.multiplied_points,
                units=retired.units
            ))
        
        unranked_teams = []
        for team in teams:
            active = [u for u in user_summaries if u.team_id == team.id]
            retired = retired_by_team.get(team.id, [])
            members = active + retired
            captain = next((u.display_name for u in active if u.is_captain), None)
            unranked_teams.append(TeamSummary(
                team_id=team.id,
                team_name=team.team_name,
                rank=0,
                points=sum(m.points for m in members),
                multiplied_points=sum(m.multiplied_points for m in members),
                units=sum(m.units for m in members),
                captain_name=captain,
                active_users=active,
                retired_users=retired
            ))
        
        team_summaries = [
            replace(entry.item, rank=entry.rank)
            for entry in RankingUtility.rank(unranked_teams, key=lambda t: t.multiplied_points)
        ]
        
        return CompetitionSummary(
            points=sum(t.points for t in team_summaries),
            multiplied_points=sum(t.multiplied_points for t in team_summaries),
            units=sum(t.units for t in team_summaries),
            teams=team_summaries
        )
    
    async def get_user_summary(self, user_id: int) -> UserSummary:
        """Summary for a single active user, including team and overall rank."""
        summary = await self.get_competition_summary()
        for team in summary.teams:
            for user in team.active_users:
                if user.user_id == user_id:
                    return user
        raise NotFoundError("User", user_id)
    
    async def get_team_summary(self, team_id: int) -> TeamSummary:
        summary = await self.get_competition_summary()
        for team in summary.teams:
            if team.team_id == team_id:
                return team
        raise NotFoundError("Team", team_id)
    
    async def _get_latest_snapshots(self, session) -> Dict[int, UserStatsSnapshot]:
        """Latest snapshot per user, using the same ordering as ingestion."""
        row_number = func.row_number().over(
            partition_by=UserStatsSnapshot.user_id,
            order_by=(UserStatsSnapshot.utc_timestamp.desc(), UserStatsSnapshot.id.desc())
        ).label('row_number')
        ranked = select(UserStatsSnapshot.id, row_number).subquery()
        
        stmt = (
            select(UserStatsSnapshot)
            .join(ranked, ranked.c.id == UserStatsSnapshot.id)
            .where(ranked.c.row_number == 1)
        )
        result = await session.execute(stmt)
        return {snapshot.user_id: snapshot for snapshot in result.scalars()}
    
    def _build_user_summaries(self, users, latest_snapshots, offsets) -> List[UserSummary]:
        totals = {}
        for user in users:
            totals[user.id] = offset_adjusted_totals(latest_snapshots.get(user.id), offsets.get(user.id))
        
        def multiplied(u):
            return totals[u.id][1]
        
        overall_ranks = RankingUtility.rank_lookup(users, key=multiplied, identity=lambda u: u.id)
        
        team_ranks = {}
        for team_id in {u.team_id for u in users}:
            team_users = [u for u in users if u.team_id == team_id]
            team_ranks.update(RankingUtility.rank_lookup(team_users, key=multiplied, identity=lambda u: u.id))
        
        summaries = []
        for user in users:
            points, multiplied_points, units = totals[user.id]
            summaries.append(UserSummary(
                user_id=user.id,
                display_name=user.display_name,
                folding_user_name=user.folding_user_name,
                category=user.category.name,
                hardware_name=user.hardware.hardware_name,
                multiplier=user.hardware.multiplier,
                team_id=user.team_id,
                points=points,
                multiplied_points=multiplied_points,
                units=units,
                is_captain=user.is_captain,
                rank_in_team=team_ranks[user.id],
                rank_overall=overall_ranks[user.id]
            ))
        return summaries
