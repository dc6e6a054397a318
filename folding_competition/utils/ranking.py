"""
Shared ranking utilities for summaries and leaderboards.

Entries are ranked by a numeric key, highest first. Equal values share a rank
(1, 1, 3) and keep their input order, so callers pass entries in creation order
to get a stable tie-break.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, List, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class Ranked(Generic[T]):
    rank: int
    diff_to_leader: int
    diff_to_next: int
    item: T


class RankingUtility:
    """Consistent ranking logic for teams and users."""
    
    @staticmethod
    def rank(items: Iterable[T], key: Callable[[T], int]) -> List[Ranked[T]]:
        """
        Rank items by key in descending order.
        
        diff_to_leader is the gap to the first entry, diff_to_next the gap to the
        entry immediately ahead; both are 0 for the leader.
        """
        ordered = sorted(items, key=key, reverse=True)
        if not ordered:
            return []
        
        leader_value = key(ordered[0])
        ranked = []
        previous_value = None
        previous_rank = 0
        for index, item in enumerate(ordered):
            value = key(item)
            rank = previous_rank if value == previous_value else index + 1
            ranked.append(Ranked(
                rank=rank,
                diff_to_leader=leader_value - value,
                diff_to_next=0 if previous_value is None else previous_value - value,
                item=item
            ))
            previous_value = value
            previous_rank = rank
        return ranked
    
    @staticmethod
    def rank_lookup(items: Iterable[T], key: Callable[[T], int], identity: Callable[[T], int]) -> dict:
        """Map of identity -> rank."""
        return {identity(entry.item): entry.rank for entry in RankingUtility.rank(items, key)}
