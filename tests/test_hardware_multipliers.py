"""
Tests for hardware multiplier recalculation from the GPU catalog.
"""

import pytest

from folding_competition.data_models.stats import CatalogEntry
from folding_competition.database.models import Category, HardwareMake
from folding_competition.utils.exceptions import InvalidStateError

from conftest import at, enrol

CATALOG = [
    CatalogEntry("GeForce RTX 4090", "RTX 4090", "NVIDIA", 30_000_000),
    CatalogEntry("Radeon RX 7900 XTX", "RX 7900 XTX", "AMD", 20_000_000),
    CatalogEntry("GeForce GTX 1080", "GTX 1080", "nvidia", 7_000_000),
    CatalogEntry("Mystery GPU", "Mystery", "AMD", None),
    CatalogEntry("Broken GPU", "Broken", "AMD", 0),
]


async def multipliers(db):
    return {h.hardware_name: (h.multiplier, h.average_ppd) for h in await db.get_all_hardware()}


class TestRecalculateMultipliers:

    async def test_creates_hardware_relative_to_best(self, db, competition):
        result = await competition.recalculate_multipliers(CATALOG)

        assert sorted(result.created) == ["GeForce GTX 1080", "GeForce RTX 4090", "Radeon RX 7900 XTX"]
        assert sorted(result.ignored) == ["Broken GPU", "Mystery GPU"]
        assert await multipliers(db) == {
            "GeForce RTX 4090": (1.0, 30_000_000),
            "Radeon RX 7900 XTX": (1.5, 20_000_000),
            "GeForce GTX 1080": (4.29, 7_000_000),
        }

    async def test_only_changed_hardware_updated(self, db, competition):
        await competition.recalculate_multipliers(CATALOG)
        catalog = list(CATALOG)
        catalog[1] = CatalogEntry("Radeon RX 7900 XTX", "RX 7900 XTX", "AMD", 15_000_000)

        result = await competition.recalculate_multipliers(catalog)

        assert result.created == []
        assert result.updated == ["Radeon RX 7900 XTX"]
        assert (await multipliers(db))["Radeon RX 7900 XTX"] == (2.0, 15_000_000)

    async def test_unchanged_catalog_is_noop(self, competition):
        await competition.recalculate_multipliers(CATALOG)

        result = await competition.recalculate_multipliers(CATALOG)

        assert (result.created, result.updated, result.deleted) == ([], [], [])

    async def test_unused_hardware_deleted(self, db, competition):
        await db.create_hardware("Retired GPU", "Retired", HardwareMake.INTEL)

        result = await competition.recalculate_multipliers(CATALOG)

        assert result.deleted == ["Retired GPU"]
        assert "Retired GPU" not in await multipliers(db)

    async def test_hardware_in_use_rejects_whole_update(self, db, competition, stats_client, team):
        in_use = await db.create_hardware("Old GPU", "Old", HardwareMake.NVIDIA, multiplier=3.0)
        await enrol(competition, stats_client, "folder", team, in_use)

        with pytest.raises(InvalidStateError, match="used by"):
            await competition.recalculate_multipliers(CATALOG)

        assert await multipliers(db) == {"Old GPU": (3.0, 1)}

    async def test_catalog_without_ppd_rejected(self, competition):
        with pytest.raises(ValueError):
            await competition.recalculate_multipliers([CatalogEntry("Mystery GPU", "Mystery", "AMD", None)])

    async def test_earned_points_keep_old_multiplier(self, db, competition, stats_client, team):
        await competition.recalculate_multipliers(CATALOG)
        gpu = next(h for h in await db.get_all_hardware() if h.hardware_name == "Radeon RX 7900 XTX")
        user = await enrol(competition, stats_client, "folder", team, gpu, category=Category.AMD_GPU)
        stats_client.add_points("folder", user.passkey, 100)
        await competition.ingest_cycle(at(1, 1))

        catalog = list(CATALOG)
        catalog[1] = CatalogEntry("Radeon RX 7900 XTX", "RX 7900 XTX", "AMD", 10_000_000)
        await competition.recalculate_multipliers(catalog)
        stats_client.add_points("folder", user.passkey, 100)
        await competition.ingest_cycle(at(1, 2))

        summary = await competition.get_user_summary(user.id)
        assert summary.multiplied_points == 150 + 300
