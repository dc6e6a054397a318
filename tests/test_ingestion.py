"""
Tests for stats ingestion and multiplier accumulation.
"""

import asyncio

from sqlalchemy import select

from folding_competition.database.models import Category, Hardware, UserStatsSnapshot
from folding_competition.utils.exceptions import ProviderProtocolError

from conftest import at, enrol


class TestIngestCycle:

    async def test_no_users(self, competition):
        result = await competition.ingest_cycle(at(1, 1))
        assert result.total_users == 0
        assert result.succeeded == []

    async def test_new_user_starts_at_zero(self, competition, stats_client, team, nvidia_gpu):
        user = await enrol(competition, stats_client, "veteran", team, nvidia_gpu, points=5_000_000, units=900)

        result = await competition.ingest_cycle(at(1, 1))

        assert result.succeeded == [user.id]
        summary = await competition.get_user_summary(user.id)
        assert (summary.points, summary.multiplied_points, summary.units) == (0, 0, 0)

    async def test_delta_is_multiplied(self, competition, stats_client, team, slow_gpu):
        user = await enrol(competition, stats_client, "folder", team, slow_gpu, points=1000, units=10)
        stats_client.add_points("folder", user.passkey, 250, units=3)

        await competition.ingest_cycle(at(1, 1))

        summary = await competition.get_user_summary(user.id)
        assert summary.points == 250
        assert summary.multiplied_points == 2500
        assert summary.units == 3

    async def test_each_delta_rounded_separately(self, competition, stats_client, team, amd_gpu):
        user = await enrol(competition, stats_client, "radeon", team, amd_gpu, category=Category.AMD_GPU)

        stats_client.add_points("radeon", user.passkey, 15)
        await competition.ingest_cycle(at(1, 1))
        stats_client.add_points("radeon", user.passkey, 15)
        await competition.ingest_cycle(at(1, 2))

        summary = await competition.get_user_summary(user.id)
        assert summary.points == 30
        # round(22.5) + round(22.5), not round(45.0)
        assert summary.multiplied_points == 46

    async def test_backwards_totals_clamped(self, competition, stats_client, team, nvidia_gpu):
        user = await enrol(competition, stats_client, "folder", team, nvidia_gpu, points=1000, units=10)

        stats_client.set_totals("folder", user.passkey, 1500, 12)
        await competition.ingest_cycle(at(1, 1))

        stats_client.set_totals("folder", user.passkey, 200, 1)
        result = await competition.ingest_cycle(at(1, 2))
        assert result.anomalous == [user.id]
        assert user.id in result.succeeded

        summary = await competition.get_user_summary(user.id)
        assert (summary.points, summary.units) == (500, 2)

        # Reference is not moved backwards, so only gains above 1500 count
        stats_client.set_totals("folder", user.passkey, 1100, 12)
        await competition.ingest_cycle(at(1, 3))
        stats_client.set_totals("folder", user.passkey, 1600, 13)
        await competition.ingest_cycle(at(1, 4))

        summary = await competition.get_user_summary(user.id)
        assert (summary.points, summary.units) == (600, 3)

    async def test_failed_user_skipped_without_aborting_batch(self, competition, stats_client, team, nvidia_gpu):
        healthy = await enrol(competition, stats_client, "healthy", team, nvidia_gpu)
        broken = await enrol(competition, stats_client, "broken", team, nvidia_gpu)
        stats_client.add_points("healthy", healthy.passkey, 100)
        stats_client.add_points("broken", broken.passkey, 300)
        stats_client.fail("broken")

        result = await competition.ingest_cycle(at(1, 1))

        assert result.succeeded == [healthy.id]
        assert list(result.skipped) == [broken.id]
        assert "broken" in result.skipped[broken.id]

        # Points gained while the provider was failing are picked up on recovery
        stats_client.recover("broken")
        await competition.ingest_cycle(at(1, 2))
        summary = await competition.get_user_summary(broken.id)
        assert summary.points == 300

    async def test_protocol_error_skips_user(self, competition, stats_client, team, nvidia_gpu):
        user = await enrol(competition, stats_client, "garbled", team, nvidia_gpu)
        stats_client.fail("garbled", ProviderProtocolError)

        result = await competition.ingest_cycle(at(1, 1))

        assert result.skipped.keys() == {user.id}

    async def test_snapshots_are_appended(self, db, competition, stats_client, team, nvidia_gpu):
        user = await enrol(competition, stats_client, "folder", team, nvidia_gpu)
        for hour in range(3):
            stats_client.add_points("folder", user.passkey, 10)
            await competition.ingest_cycle(at(1, hour))

        async with db.get_session() as session:
            snapshots = list((await session.execute(
                select(UserStatsSnapshot).order_by(UserStatsSnapshot.id)
            )).scalars())

        assert [s.points for s in snapshots] == [10, 20, 30]
        assert [s.raw_points for s in snapshots] == [10, 20, 30]
        assert [s.utc_timestamp for s in snapshots] == [at(1, 0), at(1, 1), at(1, 2)]

    async def test_concurrent_ingestion_of_one_user_counts_delta_once(self, db, competition, stats_client, team, nvidia_gpu):
        user = await enrol(competition, stats_client, "folder", team, nvidia_gpu)
        stats_client.add_points("folder", user.passkey, 100, units=1)

        outcomes = await asyncio.gather(
            competition.ingestion.ingest_user(user.id, at(1, 1)),
            competition.ingestion.ingest_user(user.id, at(1, 1)),
        )

        assert outcomes == [('succeeded', None), ('succeeded', None)]
        async with db.get_session() as session:
            snapshots = list((await session.execute(
                select(UserStatsSnapshot).order_by(UserStatsSnapshot.id)
            )).scalars())

        # The second ingestion sees the first one's reference, so its delta is 0
        assert [s.points for s in snapshots] == [100, 100]
        assert [s.raw_points for s in snapshots] == [100, 100]
        summary = await competition.get_user_summary(user.id)
        assert (summary.points, summary.units) == (100, 1)


class TestMultiplierChanges:

    async def test_past_points_keep_old_multiplier(self, db, competition, stats_client, team, slow_gpu):
        user = await enrol(competition, stats_client, "folder", team, slow_gpu)
        stats_client.add_points("folder", user.passkey, 100)
        await competition.ingest_cycle(at(1, 1))

        async with db.transaction() as session:
            hardware = await session.get(Hardware, slow_gpu.id)
            hardware.multiplier = 2.0

        stats_client.add_points("folder", user.passkey, 100)
        await competition.ingest_cycle(at(1, 2))

        summary = await competition.get_user_summary(user.id)
        assert summary.multiplied_points == 1000 + 200

    async def test_hardware_change_only_affects_future(self, competition, stats_client, team, nvidia_gpu, slow_gpu):
        user = await enrol(competition, stats_client, "folder", team, nvidia_gpu)
        stats_client.add_points("folder", user.passkey, 100)
        await competition.ingest_cycle(at(1, 1))

        await competition.update_user_hardware(user.id, slow_gpu.id)
        stats_client.add_points("folder", user.passkey, 100)
        await competition.ingest_cycle(at(1, 2))

        summary = await competition.get_user_summary(user.id)
        assert summary.multiplied_points == 100 + 1000
        assert summary.hardware_name == slow_gpu.hardware_name
