from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text,
    ForeignKey, Float, BigInteger, Enum as SQLEnum, UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from enum import Enum

Base = declarative_base()

class HardwareMake(Enum):
    AMD = "amd"
    NVIDIA = "nvidia"
    INTEL = "intel"

class HardwareType(Enum):
    GPU = "gpu"
    CPU = "cpu"

class Category(Enum):
    """Competition category, constraining which hardware a user may fold on."""
    AMD_GPU = "amd_gpu"
    NVIDIA_GPU = "nvidia_gpu"
    WILDCARD = "wildcard"
    
    @property
    def supported_makes(self) -> frozenset:
        if self is Category.AMD_GPU:
            return frozenset({HardwareMake.AMD})
        if self is Category.NVIDIA_GPU:
            return frozenset({HardwareMake.NVIDIA})
        return frozenset(HardwareMake)
    
    @property
    def supported_types(self) -> frozenset:
        if self is Category.WILDCARD:
            return frozenset(HardwareType)
        return frozenset({HardwareType.GPU})
    
    def supports(self, hardware: "Hardware") -> bool:
        return hardware.hardware_make in self.supported_makes and hardware.hardware_type in self.supported_types
    
    @classmethod
    def get(cls, value: str) -> "Category":
        """Case-insensitive lookup by name or value."""
        for category in cls:
            if value.lower() in (category.name.lower(), category.value):
                return category
        raise ValueError(f"Unknown category: {value}")

class Team(Base):
    __tablename__ = 'teams'
    
    id = Column(Integer, primary_key=True)
    team_name = Column(String(100), nullable=False, unique=True)
    team_description = Column(String(255), nullable=True)
    forum_link = Column(String(255), nullable=True)
    
    # Metadata
    created_at = Column(DateTime, default=func.now())
    
    # Relationships
    users = relationship("User", back_populates="team", lazy="selectin", order_by="User.id")
    
    def __repr__(self):
        return f"<Team(id={self.id}, team_name='{self.team_name}')>"

class Hardware(Base):
    __tablename__ = 'hardware'
    
    id = Column(Integer, primary_key=True)
    hardware_name = Column(String(200), nullable=False, unique=True)
    display_name = Column(String(200), nullable=False)
    hardware_make = Column(SQLEnum(HardwareMake), nullable=False)
    hardware_type = Column(SQLEnum(HardwareType), nullable=False, default=HardwareType.GPU)
    
    # Multiplier is derived from average PPD relative to the best hardware
    multiplier = Column(Float, nullable=False, default=1.0)
    average_ppd = Column(BigInteger, nullable=False, default=1)
    
    # Metadata
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
    
    __table_args__ = (
        CheckConstraint('multiplier >= 1.0', name='check_multiplier_minimum'),
    )
    
    def __repr__(self):
        return f"<Hardware(hardware_name='{self.hardware_name}', multiplier={self.multiplier}, average_ppd={self.average_ppd})>"

class User(Base):
    __tablename__ = 'users'
    
    id = Column(Integer, primary_key=True)
    folding_user_name = Column(String(100), nullable=False)
    display_name = Column(String(100), nullable=False)
    passkey = Column(String(32), nullable=False)
    category = Column(SQLEnum(Category), nullable=False)
    profile_link = Column(String(255), nullable=True)
    live_stats_link = Column(String(255), nullable=True)
    is_captain = Column(Boolean, default=False, nullable=False)
    
    hardware_id = Column(Integer, ForeignKey('hardware.id'), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey('teams.id'), nullable=False, index=True)
    
    # Metadata
    created_at = Column(DateTime, default=func.now())
    
    # Relationships
    hardware = relationship("Hardware", lazy="selectin")
    team = relationship("Team", back_populates="users", lazy="selectin")
    
    # A folding identity may only be active once
    __table_args__ = (
        UniqueConstraint('folding_user_name', 'passkey', name='uq_user_identity'),
        # Snapshots outlive their user until the monthly reset, so IDs must never be reused
        {'sqlite_autoincrement': True},
    )
    
    def __repr__(self):
        return f"<User(id={self.id}, folding_user_name='{self.folding_user_name}', team_id={self.team_id})>"

class UserBaseline(Base):
    """Raw provider totals captured when the user's current accumulation started."""
    __tablename__ = 'user_baselines'
    
    user_id = Column(Integer, primary_key=True)
    raw_points = Column(BigInteger, nullable=False, default=0)
    raw_units = Column(Integer, nullable=False, default=0)
    utc_timestamp = Column(DateTime, nullable=False)
    
    def __repr__(self):
        return f"<UserBaseline(user_id={self.user_id}, raw_points={self.raw_points}, raw_units={self.raw_units})>"

class UserOffset(Base):
    """Manual adjustment applied on top of accumulated totals when reading."""
    __tablename__ = 'user_offsets'
    
    user_id = Column(Integer, primary_key=True)
    points = Column(BigInteger, nullable=False, default=0)
    multiplied_points = Column(BigInteger, nullable=False, default=0)
    units = Column(Integer, nullable=False, default=0)
    
    def __repr__(self):
        return f"<UserOffset(user_id={self.user_id}, points={self.points}, multiplied_points={self.multiplied_points}, units={self.units})>"

class UserStatsSnapshot(Base):
    """
    Append-only time series of a user's cumulative competition stats.
    
    raw_points/raw_units are the provider reference the next delta is computed from,
    points/multiplied_points/units are the cumulative contribution for the current month.
    """
    __tablename__ = 'user_stats_snapshots'
    
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    utc_timestamp = Column(DateTime, nullable=False)
    
    raw_points = Column(BigInteger, nullable=False, default=0)
    raw_units = Column(Integer, nullable=False, default=0)
    
    points = Column(BigInteger, nullable=False, default=0)
    multiplied_points = Column(BigInteger, nullable=False, default=0)
    units = Column(Integer, nullable=False, default=0)
    
    __table_args__ = (
        Index('ix_user_stats_snapshots_user_time', 'user_id', 'utc_timestamp'),
    )
    
    def __repr__(self):
        return (f"<UserStatsSnapshot(user_id={self.user_id}, utc_timestamp={self.utc_timestamp}, "
                f"points={self.points}, multiplied_points={self.multiplied_points}, units={self.units})>")

class RetiredUserStats(Base):
    """Frozen contribution of a user removed from a team mid-month."""
    __tablename__ = 'retired_user_stats'
    
    id = Column(Integer, primary_key=True)
    team_id = Column(Integer, ForeignKey('teams.id'), nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    display_name = Column(String(100), nullable=False)
    masked_identity = Column(String(150), nullable=False)
    identity_key = Column(String(64), nullable=False, index=True)
    
    points = Column(BigInteger, nullable=False, default=0)
    multiplied_points = Column(BigInteger, nullable=False, default=0)
    units = Column(Integer, nullable=False, default=0)
    
    retired_at = Column(DateTime, nullable=False)
    
    def __repr__(self):
        return f"<RetiredUserStats(id={self.id}, team_id={self.team_id}, display_name='{self.display_name}', multiplied_points={self.multiplied_points})>"

class MonthlyResult(Base):
    __tablename__ = 'monthly_results'
    
    id = Column(Integer, primary_key=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    utc_timestamp = Column(DateTime, nullable=False)
    
    # JSON-encoded leaderboards
    team_leaderboard = Column(Text, nullable=False)
    category_leaderboard = Column(Text, nullable=False)
    
    __table_args__ = (
        UniqueConstraint('year', 'month', name='uq_monthly_result_period'),
        CheckConstraint('month >= 1 AND month <= 12', name='check_month_range'),
    )
    
    def __repr__(self):
        return f"<MonthlyResult(year={self.year}, month={self.month})>"
