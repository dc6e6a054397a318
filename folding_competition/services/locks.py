"""
In-memory locking for stats ingestion and administrative operations.

Per-user locks serialise everything that writes a single user's stats
(ingestion, retirement, offsets, hardware changes). The competition lock is
held for a whole ingestion cycle, by monthly resets and multiplier
recalculations, and by roster changes, so a reset never overlaps a user being
added, removed or adjusted. It is always taken before any user lock.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
import logging

logger = logging.getLogger(__name__)

class CompetitionLocks:
    """Lock registry shared by all services of one competition instance.
    
    Note: locks are process-local. Running several ingestion processes against
    the same database is not supported.
    """
    
    def __init__(self):
        self._user_locks = defaultdict(asyncio.Lock)  # Grows with user IDs, pruned on user removal
        self._registry_lock = asyncio.Lock()
        self.competition_lock = asyncio.Lock()
    
    async def _get_user_lock(self, user_id: int) -> asyncio.Lock:
        async with self._registry_lock:
            return self._user_locks[user_id]
    
    @asynccontextmanager
    async def user(self, user_id: int):
        """Hold the lock for a single user's stats."""
        lock = await self._get_user_lock(user_id)
        async with lock:
            yield
    
    @asynccontextmanager
    async def competition(self):
        """Hold the competition-wide lock."""
        if self.competition_lock.locked():
            logger.debug("Waiting for in-flight competition operation to finish")
        async with self.competition_lock:
            yield
    
    @asynccontextmanager
    async def administrative(self, user_id: int):
        """Hold the competition lock, then the user's lock, for roster changes."""
        async with self.competition():
            async with self.user(user_id):
                yield
    
    async def forget_user(self, user_id: int):
        """Drop the lock for a removed user."""
        async with self._registry_lock:
            lock = self._user_locks.get(user_id)
            if lock is not None and not lock.locked():
                del self._user_locks[user_id]
