"""
Tests for competition summaries and team/category leaderboards.
"""

from folding_competition.database.models import Category

from conftest import at, enrol


async def team_with_points(db, competition, stats_client, name, hardware, points, category=Category.NVIDIA_GPU):
    team = await db.create_team(name)
    user = await enrol(competition, stats_client, name.lower(), team, hardware, category=category)
    stats_client.add_points(user.folding_user_name, user.passkey, points)
    return team, user


class TestTeamLeaderboard:

    async def test_ranked_with_diffs(self, db, competition, stats_client, nvidia_gpu):
        third, _ = await team_with_points(db, competition, stats_client, "Third", nvidia_gpu, 10000)
        first, _ = await team_with_points(db, competition, stats_client, "First", nvidia_gpu, 30000)
        second, _ = await team_with_points(db, competition, stats_client, "Second", nvidia_gpu, 20000)
        await competition.ingest_cycle(at(1, 1))

        leaderboard = await competition.get_team_leaderboard()

        assert [(e.team_name, e.rank, e.multiplied_points, e.diff_to_leader, e.diff_to_next) for e in leaderboard] == [
            ("First", 1, 30000, 0, 0),
            ("Second", 2, 20000, 10000, 10000),
            ("Third", 3, 10000, 20000, 10000),
        ]

    async def test_ties_share_rank_in_creation_order(self, db, competition, stats_client, nvidia_gpu):
        await team_with_points(db, competition, stats_client, "Early", nvidia_gpu, 500)
        await team_with_points(db, competition, stats_client, "Leader", nvidia_gpu, 1000)
        await team_with_points(db, competition, stats_client, "Late", nvidia_gpu, 500)
        await db.create_team("Empty")
        await competition.ingest_cycle(at(1, 1))

        leaderboard = await competition.get_team_leaderboard()

        assert [(e.team_name, e.rank, e.diff_to_next) for e in leaderboard] == [
            ("Leader", 1, 0),
            ("Early", 2, 500),
            ("Late", 2, 0),
            ("Empty", 4, 500),
        ]

    async def test_ranked_by_multiplied_points(self, db, competition, stats_client, nvidia_gpu, slow_gpu):
        await team_with_points(db, competition, stats_client, "Raw", nvidia_gpu, 5000)
        await team_with_points(db, competition, stats_client, "Multiplied", slow_gpu, 1000)
        await competition.ingest_cycle(at(1, 1))

        leaderboard = await competition.get_team_leaderboard()

        assert [e.team_name for e in leaderboard] == ["Multiplied", "Raw"]
        assert leaderboard[1].points == 5000

    async def test_no_teams(self, competition):
        assert await competition.get_team_leaderboard() == []


class TestCategoryLeaderboard:

    async def test_users_ranked_across_teams(self, db, competition, stats_client, nvidia_gpu, amd_gpu):
        await team_with_points(db, competition, stats_client, "Alpha", nvidia_gpu, 100)
        await team_with_points(db, competition, stats_client, "Beta", nvidia_gpu, 300)
        await team_with_points(db, competition, stats_client, "Gamma", amd_gpu, 100, category=Category.AMD_GPU)
        await competition.ingest_cycle(at(1, 1))

        leaderboard = await competition.get_category_leaderboard()

        assert set(leaderboard) == {Category.NVIDIA_GPU, Category.AMD_GPU}
        nvidia = leaderboard[Category.NVIDIA_GPU]
        assert [(e.team_name, e.rank, e.multiplied_points, e.diff_to_leader) for e in nvidia] == [
            ("Beta", 1, 300, 0),
            ("Alpha", 2, 100, 200),
        ]
        amd = leaderboard[Category.AMD_GPU]
        assert [(e.display_name, e.rank, e.multiplied_points) for e in amd] == [("Gamma", 1, 150)]

    async def test_empty_categories_omitted(self, db, competition, stats_client, nvidia_gpu):
        await team_with_points(db, competition, stats_client, "Alpha", nvidia_gpu, 100)

        leaderboard = await competition.get_category_leaderboard()

        assert list(leaderboard) == [Category.NVIDIA_GPU]
        assert leaderboard[Category.NVIDIA_GPU][0].multiplied_points == 0


class TestCompetitionSummary:

    async def test_totals_and_ranks(self, competition, stats_client, team, db, nvidia_gpu, slow_gpu):
        other_team = await db.create_team("Other")
        fast = await enrol(competition, stats_client, "fast", team, nvidia_gpu)
        slow = await enrol(competition, stats_client, "slow", team, slow_gpu)
        rival = await enrol(competition, stats_client, "rival", other_team, nvidia_gpu)
        stats_client.add_points("fast", fast.passkey, 400, units=4)
        stats_client.add_points("slow", slow.passkey, 50, units=1)
        stats_client.add_points("rival", rival.passkey, 450, units=2)
        await competition.ingest_cycle(at(1, 1))

        summary = await competition.get_competition_summary()

        assert (summary.points, summary.multiplied_points, summary.units) == (900, 1350, 7)
        assert [(t.team_name, t.rank, t.multiplied_points) for t in summary.teams] == [
            ("Team Alpha", 1, 900),
            ("Other", 2, 450),
        ]

        slow_summary = await competition.get_user_summary(slow.id)
        assert (slow_summary.rank_in_team, slow_summary.rank_overall) == (1, 1)
        fast_summary = await competition.get_user_summary(fast.id)
        assert (fast_summary.rank_in_team, fast_summary.rank_overall) == (2, 3)
        rival_summary = await competition.get_user_summary(rival.id)
        assert (rival_summary.rank_in_team, rival_summary.rank_overall) == (1, 2)

    async def test_user_summary_fields(self, competition, stats_client, team, amd_gpu):
        user = await enrol(competition, stats_client, "radeon", team, amd_gpu, category=Category.AMD_GPU)

        summary = await competition.get_user_summary(user.id)

        assert summary.category == "AMD_GPU"
        assert summary.hardware_name == amd_gpu.hardware_name
        assert summary.multiplier == 1.5
        assert summary.team_id == team.id

    async def test_empty_competition(self, competition):
        summary = await competition.get_competition_summary()
        assert (summary.points, summary.multiplied_points, summary.units, summary.teams) == (0, 0, 0, [])
