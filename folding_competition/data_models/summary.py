"""
Competition summary data models.

Summaries are derived on every read from the latest stats snapshots, offsets
and retired user stats; none of them are persisted.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class UserSummary:
    """A user's offset-adjusted totals and rankings."""
    user_id: int
    display_name: str
    folding_user_name: str
    category: str
    hardware_name: str
    multiplier: float
    team_id: int
    points: int
    multiplied_points: int
    units: int
    is_captain: bool = False
    rank_in_team: int = 0
    rank_overall: int = 0


@dataclass(frozen=True)
class RetiredUserSummary:
    """Frozen contribution of a user who left the team this month."""
    retired_user_id: int
    display_name: str
    masked_identity: str
    points: int
    multiplied_points: int
    units: int


@dataclass(frozen=True)
class TeamSummary:
    team_id: int
    team_name: str
    rank: int
    points: int
    multiplied_points: int
    units: int
    captain_name: Optional[str] = None
    active_users: List[UserSummary] = field(default_factory=list)
    retired_users: List[RetiredUserSummary] = field(default_factory=list)


@dataclass(frozen=True)
class CompetitionSummary:
    points: int
    multiplied_points: int
    units: int
    teams: List[TeamSummary] = field(default_factory=list)
