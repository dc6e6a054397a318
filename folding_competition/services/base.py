"""
Base service class for the team competition.

Provides async database session management for all service layer operations.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

class BaseService:
    """Base class for all services with async database session management."""
    
    def __init__(self, session_factory):
        """
        Initialize base service with session factory.
        
        Args:
            session_factory: Async session factory from Database class
        """
        self.session_factory = session_factory
    
    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for async database operations."""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
