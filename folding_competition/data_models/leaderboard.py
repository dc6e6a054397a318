"""
Leaderboard data models for team and category rankings.

Provides immutable data transfer objects for ranked leaderboard rows.
"""

from dataclasses import dataclass, asdict
from typing import Dict, List


@dataclass(frozen=True)
class TeamLeaderboardEntry:
    """Single team leaderboard row."""
    rank: int
    team_id: int
    team_name: str
    points: int
    multiplied_points: int
    units: int
    diff_to_leader: int
    diff_to_next: int
    
    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class UserCategoryLeaderboardEntry:
    """Single user row within a category leaderboard."""
    rank: int
    user_id: int
    display_name: str
    team_name: str
    hardware_name: str
    points: int
    multiplied_points: int
    units: int
    diff_to_leader: int
    diff_to_next: int
    
    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class MonthlyResultData:
    """Archived leaderboards for a single competition month."""
    year: int
    month: int
    utc_timestamp: str
    team_leaderboard: List[Dict]
    category_leaderboard: Dict[str, List[Dict]]
    
    def has_no_stats(self) -> bool:
        return not self.team_leaderboard and not any(self.category_leaderboard.values())
