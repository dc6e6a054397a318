from typing import Optional, List
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import select

from folding_competition.config import Config
from folding_competition.database.models import (
    Base, Team, Hardware, User, HardwareMake, HardwareType
)
from folding_competition.utils.exceptions import NotFoundError
from folding_competition.utils.logger import setup_logger

class Database:
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url
        self.engine = None
        self.async_session = None
        
    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")
        
        database_url = self.database_url or Config.get_async_database_url()
        
        self.engine = create_async_engine(
            database_url,
            echo=Config.DEBUG,
            future=True
        )
        
        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )
        
        # Create all tables
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            
        self.logger.info("Database initialized successfully")
    
    @property
    def session_factory(self):
        """Async session factory handed to the service layer"""
        return self.async_session
    
    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()
    
    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.
        
        All operations within the context will be committed together on success,
        or rolled back together on failure.
        """
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()
    
    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")
    
    # Team operations
    async def create_team(self, team_name: str, team_description: str = None, forum_link: str = None) -> Team:
        """Create a new team"""
        async with self.transaction() as session:
            team = Team(
                team_name=team_name,
                team_description=team_description,
                forum_link=forum_link
            )
            session.add(team)
            await session.flush()
            await session.refresh(team)
            return team
    
    async def get_team(self, team_id: int) -> Team:
        """Get a team by ID, raising NotFoundError if it does not exist"""
        async with self.get_session() as session:
            team = await session.get(Team, team_id)
            if not team:
                raise NotFoundError("Team", team_id)
            return team
    
    async def get_all_teams(self) -> List[Team]:
        """Get all teams in creation order"""
        async with self.get_session() as session:
            result = await session.execute(select(Team).order_by(Team.id))
            return list(result.scalars().all())
    
    # Hardware operations
    async def create_hardware(self, hardware_name: str, display_name: str, hardware_make: HardwareMake,
                              multiplier: float = 1.0, average_ppd: int = 1,
                              hardware_type: HardwareType = HardwareType.GPU) -> Hardware:
        """Create a new hardware entry"""
        async with self.transaction() as session:
            hardware = Hardware(
                hardware_name=hardware_name,
                display_name=display_name,
                hardware_make=hardware_make,
                hardware_type=hardware_type,
                multiplier=multiplier,
                average_ppd=average_ppd
            )
            session.add(hardware)
            await session.flush()
            await session.refresh(hardware)
            return hardware
    
    async def get_hardware(self, hardware_id: int) -> Hardware:
        """Get hardware by ID, raising NotFoundError if it does not exist"""
        async with self.get_session() as session:
            hardware = await session.get(Hardware, hardware_id)
            if not hardware:
                raise NotFoundError("Hardware", hardware_id)
            return hardware
    
    async def get_all_hardware(self) -> List[Hardware]:
        """Get all hardware ordered by name"""
        async with self.get_session() as session:
            result = await session.execute(select(Hardware).order_by(Hardware.hardware_name))
            return list(result.scalars().all())
    
    # User operations
    async def get_user(self, user_id: int) -> User:
        """Get a user by ID, raising NotFoundError if it does not exist"""
        async with self.get_session() as session:
            user = await session.get(User, user_id)
            if not user:
                raise NotFoundError("User", user_id)
            return user
    
    async def get_all_users(self) -> List[User]:
        """Get all active users in creation order"""
        async with self.get_session() as session:
            result = await session.execute(select(User).order_by(User.id))
            return list(result.scalars().all())
