"""
Shared fixtures for team competition tests.
"""

import asyncio
from datetime import datetime

import pytest

from folding_competition.config import Config
from folding_competition.database.database import Database
from folding_competition.database.models import Category, HardwareMake
from folding_competition.data_models.stats import ProviderStats
from folding_competition.services.competition import TeamCompetition
from folding_competition.utils.exceptions import ProviderProtocolError, TransientProviderError


class StubStatsClient:
    """In-memory stats provider keyed by (folding user name, passkey)."""
    
    def __init__(self):
        self.totals = {}
        self.failures = {}
        self.calls = []
        # When set, fetches wait on it so a test can hold an operation mid-fetch
        self.gate = None
    
    def set_totals(self, folding_user_name: str, passkey: str, points: int, units: int):
        self.totals[(folding_user_name, passkey)] = ProviderStats(points=points, units=units)
    
    def add_points(self, folding_user_name: str, passkey: str, points: int, units: int = 0):
        current = self.totals[(folding_user_name, passkey)]
        self.set_totals(folding_user_name, passkey, current.points + points, current.units + units)
    
    def fail(self, folding_user_name: str, error_type=TransientProviderError):
        self.failures[folding_user_name] = error_type
    
    def recover(self, folding_user_name: str):
        self.failures.pop(folding_user_name, None)
    
    async def fetch_cumulative_stats(self, folding_user_name: str, passkey: str) -> ProviderStats:
        self.calls.append(folding_user_name)
        await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        error_type = self.failures.get(folding_user_name)
        if error_type is not None:
            raise error_type(folding_user_name, "stubbed failure")
        return self.totals.get((folding_user_name, passkey), ProviderStats(points=0, units=0))
    
    async def close(self):
        pass


@pytest.fixture(autouse=True)
def roomy_categories(monkeypatch):
    monkeypatch.setattr(Config, 'USERS_PER_CATEGORY', 5)


@pytest.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'competition_test.db'}")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def stats_client():
    return StubStatsClient()


@pytest.fixture
def competition(db, stats_client):
    return TeamCompetition(db.session_factory, stats_client, concurrency=4)


@pytest.fixture
async def nvidia_gpu(db):
    return await db.create_hardware("GeForce RTX 4090", "RTX 4090", HardwareMake.NVIDIA,
                                    multiplier=1.0, average_ppd=30_000_000)


@pytest.fixture
async def slow_gpu(db):
    return await db.create_hardware("GeForce GTX 1080", "GTX 1080", HardwareMake.NVIDIA,
                                    multiplier=10.0, average_ppd=3_000_000)


@pytest.fixture
async def amd_gpu(db):
    return await db.create_hardware("Radeon RX 7900 XTX", "RX 7900 XTX", HardwareMake.AMD,
                                    multiplier=1.5, average_ppd=20_000_000)


@pytest.fixture
async def team(db):
    return await db.create_team("Team Alpha")


async def enrol(competition, stats_client, name, team, hardware, category=Category.NVIDIA_GPU,
                points=0, units=0, passkey=None, **kwargs):
    """Create a user whose provider currently reports the given totals."""
    passkey = passkey or f"{name}passkey0000000000000000000"[:32]
    stats_client.set_totals(name, passkey, points, units)
    return await competition.create_user(name, name.title(), passkey, category, hardware.id, team.id, **kwargs)


def at(day: int, hour: int, minute: int = 0, month: int = 3, year: int = 2024) -> datetime:
    return datetime(year, month, day, hour, minute)
