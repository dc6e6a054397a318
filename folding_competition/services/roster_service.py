"""
Roster lifecycle service for the team competition.

Handles user enrolment, retirement (deletion with preserved contribution),
reactivation of retired folding identities, captaincy queries, offsets and
hardware changes. Every operation that touches a user's stats holds that user's
lock so it cannot interleave with the user's ingestion. Enrolment, retirement
and offsets also hold the competition lock so they cannot overlap a monthly reset.
"""

import hashlib
import logging
from typing import Optional

from sqlalchemy import select, delete, func

from folding_competition.config import Config
from folding_competition.services.base import BaseService
from folding_competition.services.locks import CompetitionLocks
from folding_competition.services.stats_accumulator import get_latest_snapshot, offset_adjusted_totals
from folding_competition.database.models import (
    Category, Hardware, RetiredUserStats, Team, User, UserBaseline, UserOffset
)
from folding_competition.utils.exceptions import InvalidStateError, NotFoundError
from folding_competition.utils.multiplier import MultiplierCalculator
from folding_competition.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

PASSKEY_VISIBLE_CHARACTERS = 8


def identity_key(folding_user_name: str, passkey: str) -> str:
    """Stable key for a folding identity, without storing the passkey itself."""
    return hashlib.sha256(f"{folding_user_name}:{passkey}".encode('utf-8')).hexdigest()


def mask_identity(folding_user_name: str, passkey: str) -> str:
    """Folding user name with all but the start of the passkey hidden."""
    visible = passkey[:PASSKEY_VISIBLE_CHARACTERS]
    return f"{folding_user_name}/{visible}{'*' * (len(passkey) - len(visible))}"


class RosterService(BaseService):
    """Service for adding, retiring and reactivating competition users."""
    
    def __init__(self, session_factory, stats_client, locks: CompetitionLocks):
        super().__init__(session_factory)
        self.stats_client = stats_client
        self.locks = locks
    
    async def create_user(self, folding_user_name: str, display_name: str, passkey: str,
                          category: Category, hardware_id: int, team_id: int,
                          is_captain: bool = False, profile_link: Optional[str] = None,
                          live_stats_link: Optional[str] = None) -> User:
        """
        Enrol a user, capturing their current provider totals as the baseline.
        
        The user starts the competition with zero contribution regardless of how
        much they have folded before joining.
        
        Raises:
            NotFoundError: team or hardware does not exist
            InvalidStateError: the team already has a captain, or the identity is already active
            TransientProviderError: baseline stats could not be retrieved
        """
        async with self.locks.competition():
            return await self._create_user(
                folding_user_name, display_name, passkey, category, hardware_id, team_id,
                is_captain=is_captain, profile_link=profile_link, live_stats_link=live_stats_link
            )
    
    async def _create_user(self, folding_user_name: str, display_name: str, passkey: str,
                           category: Category, hardware_id: int, team_id: int,
                           is_captain: bool, profile_link: Optional[str],
                           live_stats_link: Optional[str]) -> User:
        async with self.get_session() as session:
            await self._validate_new_user(session, folding_user_name, passkey, category,
                                          hardware_id, team_id, is_captain)
        
        # Fetch outside any transaction, the provider call may be slow
        baseline_stats = await self.stats_client.fetch_cumulative_stats(folding_user_name, passkey)
        
        async with self.get_session() as session:
            # Re-check, another user may have been created while fetching
            await self._validate_new_user(session, folding_user_name, passkey, category,
                                          hardware_id, team_id, is_captain)
            user = User(
                folding_user_name=folding_user_name,
                display_name=display_name,
                passkey=passkey,
                category=category,
                hardware_id=hardware_id,
                team_id=team_id,
                is_captain=is_captain,
                profile_link=profile_link,
                live_stats_link=live_stats_link
            )
            session.add(user)
            await session.flush()
            
            session.add(UserBaseline(
                user_id=user.id,
                raw_points=baseline_stats.points,
                raw_units=baseline_stats.units,
                utc_timestamp=utc_now()
            ))
            await session.flush()
            await session.refresh(user)
        
        logger.info(
            f"Created user '{display_name}' (ID: {user.id}) on team {team_id} with baseline "
            f"{baseline_stats.points:,} points | {baseline_stats.units:,} units"
        )
        return user
    
    async def _validate_new_user(self, session, folding_user_name: str, passkey: str, category: Category,
                                 hardware_id: int, team_id: int, is_captain: bool):
        team = await session.get(Team, team_id)
        if team is None:
            raise NotFoundError("Team", team_id)
        
        hardware = await session.get(Hardware, hardware_id)
        if hardware is None:
            raise NotFoundError("Hardware", hardware_id)
        
        if not category.supports(hardware):
            raise InvalidStateError(f"Hardware '{hardware.hardware_name}' is not valid for category {category.name}")
        
        existing = await session.execute(
            select(User.id).where(User.folding_user_name == folding_user_name, User.passkey == passkey)
        )
        if existing.scalar_one_or_none() is not None:
            raise InvalidStateError(f"Folding user '{folding_user_name}' with this passkey is already active")
        
        category_users = await session.execute(
            select(func.count(User.id)).where(User.team_id == team_id, User.category == category)
        )
        if category_users.scalar() >= Config.USERS_PER_CATEGORY:
            raise InvalidStateError(
                f"Team '{team.team_name}' already has {Config.USERS_PER_CATEGORY} user(s) in category {category.name}"
            )
        
        if is_captain and await self._team_has_captain(session, team_id):
            raise InvalidStateError(f"Team '{team.team_name}' already has a captain")
    
    async def reactivate_user(self, folding_user_name: str, display_name: str, passkey: str,
                              category: Category, hardware_id: int, team_id: int,
                              is_captain: bool = False, profile_link: Optional[str] = None,
                              live_stats_link: Optional[str] = None) -> User:
        """
        Bring a retired folding identity back as a new active user.
        
        The new user gets a fresh baseline, so only stats gained after reactivation
        count for their (possibly different) team. The retired stats stay with the
        original team until the monthly reset.
        
        Raises:
            InvalidStateError: the identity has not been retired this month
        """
        async with self.locks.competition():
            async with self.get_session() as session:
                retired = await session.execute(
                    select(func.count(RetiredUserStats.id))
                    .where(RetiredUserStats.identity_key == identity_key(folding_user_name, passkey))
                )
                if not retired.scalar():
                    raise InvalidStateError(f"Folding user '{folding_user_name}' has no retired stats to reactivate")
            
            user = await self._create_user(
                folding_user_name, display_name, passkey, category, hardware_id, team_id,
                is_captain=is_captain, profile_link=profile_link, live_stats_link=live_stats_link
            )
        logger.info(f"Reactivated retired folding user '{folding_user_name}' as user {user.id} on team {team_id}")
        return user
    
    async def delete_user(self, user_id: int) -> Optional[RetiredUserStats]:
        """
        Remove a user from the competition.
        
        If the user has contributed this month their stats are frozen as
        RetiredUserStats for their team; otherwise the user is simply removed.
        
        Returns:
            The retired stats, or None if the user had no contribution
        """
        async with self.locks.administrative(user_id):
            async with self.get_session() as session:
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User", user_id)
                
                latest = await get_latest_snapshot(session, user_id)
                offset = await session.get(UserOffset, user_id)
                points, multiplied_points, units = offset_adjusted_totals(latest, offset)
                
                retired = None
                if points or multiplied_points or units:
                    retired = RetiredUserStats(
                        team_id=user.team_id,
                        user_id=user.id,
                        display_name=user.display_name,
                        masked_identity=mask_identity(user.folding_user_name, user.passkey),
                        identity_key=identity_key(user.folding_user_name, user.passkey),
                        points=points,
                        multiplied_points=multiplied_points,
                        units=units,
                        retired_at=utc_now()
                    )
                    session.add(retired)
                
                await session.execute(delete(UserBaseline).where(UserBaseline.user_id == user_id))
                await session.execute(delete(UserOffset).where(UserOffset.user_id == user_id))
                await session.delete(user)
        
        await self.locks.forget_user(user_id)
        
        if retired is not None:
            logger.info(
                f"Retired user '{user.display_name}' (ID: {user_id}) from team {user.team_id} with "
                f"{retired.multiplied_points:,} TC points | {retired.units:,} TC units"
            )
        else:
            logger.info(f"Deleted user '{user.display_name}' (ID: {user_id}) with no stats")
        return retired
    
    async def team_has_captain(self, team_id: int) -> bool:
        """Whether the team currently has an active captain."""
        async with self.get_session() as session:
            if await session.get(Team, team_id) is None:
                raise NotFoundError("Team", team_id)
            return await self._team_has_captain(session, team_id)
    
    async def _team_has_captain(self, session, team_id: int) -> bool:
        result = await session.execute(
            select(func.count(User.id)).where(User.team_id == team_id, User.is_captain.is_(True))
        )
        return result.scalar() > 0
    
    async def apply_offset(self, user_id: int, points: int = 0, multiplied_points: int = 0,
                           units: int = 0) -> UserOffset:
        """
        Add a manual adjustment to a user's offset.
        
        Repeated calls accumulate, so each correction is kept.
        
        If only one of points/multiplied points is provided, the other is derived
        from the user's current hardware multiplier.
        """
        async with self.locks.administrative(user_id):
            async with self.get_session() as session:
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User", user_id)
                
                multiplier = user.hardware.multiplier
                if points and not multiplied_points:
                    multiplied_points = MultiplierCalculator.apply_multiplier(points, multiplier)
                elif multiplied_points and not points:
                    points = MultiplierCalculator.derive_points(multiplied_points, multiplier)
                
                offset = await session.get(UserOffset, user_id)
                if offset is None:
                    offset = UserOffset(user_id=user_id, points=0, multiplied_points=0, units=0)
                    session.add(offset)
                offset.points += points
                offset.multiplied_points += multiplied_points
                offset.units += units
        
        logger.info(
            f"Applied offset for user {user_id}: {points:+,} points | {multiplied_points:+,} multiplied points | {units:+,} units "
            f"(total {offset.points:,} | {offset.multiplied_points:,} | {offset.units:,})"
        )
        return offset
    
    async def update_user_hardware(self, user_id: int, hardware_id: int) -> User:
        """Move a user to other hardware; only future deltas use its multiplier."""
        async with self.locks.user(user_id):
            async with self.get_session() as session:
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User", user_id)
                hardware = await session.get(Hardware, hardware_id)
                if hardware is None:
                    raise NotFoundError("Hardware", hardware_id)
                if not user.category.supports(hardware):
                    raise InvalidStateError(
                        f"Hardware '{hardware.hardware_name}' is not valid for category {user.category.name}"
                    )
                
                previous_hardware = user.hardware.hardware_name
                user.hardware_id = hardware.id
                user.hardware = hardware
        
        logger.info(f"User {user_id} hardware changed: '{previous_hardware}' -> '{hardware.hardware_name}'")
        return user

