"""Integration tests for services/leaderboard.py."""

import asyncio
from datetime import datetime

import pytest

from racepicks.data_models.leaderboard import (
    FriendsScope, GlobalScope, GroupScope, LeaderboardFilter, LeaderboardStatus,
    RegionalScope, SeriesFilter, TimePeriod
)
from racepicks.data_models.prediction import Pick, Prediction, ResultPosition

NOW = datetime(2025, 6, 1, 12, 0)


async def score_race(services, database, race_id, predictions, results):
    for user_id, pairs in predictions.items():
        await services['scoring'].submit_prediction(
            Prediction(race_id, user_id, [Pick(r, p) for r, p in pairs])
        )
    await database.record_race_results(race_id, [ResultPosition(r, p) for r, p in results])
    await services['scoring'].recompute_race(race_id)


@pytest.mark.asyncio
class TestLeaderboardService:
    """Scoped, filtered and cached leaderboards."""

    async def _seed_scores(self, services, database):
        # sx-1 (January, SX): alice 200, bob 100, carol 0 (rider not classified)
        await score_race(services, database, 'sx-1', {
            'alice': [('A', 1), ('B', 2)],
            'bob': [('A', 1)],
            'carol': [('Z', 1)],
        }, [('A', 1), ('B', 2)])
        # mx-1 (May, MX): bob 100
        await score_race(services, database, 'mx-1', {'bob': [('X', 1)]}, [('X', 1)])

    async def test_global_leaderboard(self, services, seeded):
        await self._seed_scores(services, seeded)

        page = await services['leaderboards'].get_page(GlobalScope(), now=NOW)

        assert page.is_available
        assert [(m.user_id, m.points, m.rank) for m in page.entries] == [
            ('bob', 200, 1), ('alice', 200, 2), ('carol', 0, 3),
        ]
        assert page.entries[0].accuracy == 100.0
        assert page.entries[0].display_name == 'Bob'
        assert page.total_members == 3
        assert page.total_pages == 1

    async def test_total_predictions_break_full_ties(self, services, seeded):
        await self._seed_scores(services, seeded)
        board = await services['leaderboards'].get_leaderboard(GlobalScope(), now=NOW)
        first, second = board.entries[0], board.entries[1]
        assert (first.points, first.accuracy) == (second.points, second.accuracy) == (200, 100.0)
        assert (first.user_id, first.total_predictions) == ('bob', 2)
        assert (second.user_id, second.total_predictions) == ('alice', 1)

    async def test_regional_and_group_scopes(self, services, seeded):
        await self._seed_scores(services, seeded)
        leaderboards = services['leaderboards']

        west = await leaderboards.get_page(RegionalScope('west'), now=NOW)
        crew = await leaderboards.get_page(GroupScope('crew'), now=NOW)
        nowhere = await leaderboards.get_page(RegionalScope('north'), now=NOW)

        assert {m.user_id for m in west.entries} == {'alice', 'bob'}
        assert [m.user_id for m in crew.entries] == ['alice', 'carol']
        assert nowhere.entries == []
        assert nowhere.total_pages == 1

    async def test_filters(self, services, seeded):
        await self._seed_scores(services, seeded)
        leaderboards = services['leaderboards']

        sx_only = await leaderboards.get_page(GlobalScope(), LeaderboardFilter(series=SeriesFilter.SX), now=NOW)
        last_month = await leaderboards.get_page(
            GlobalScope(), LeaderboardFilter(time_period=TimePeriod.MONTH), now=NOW
        )

        assert [(m.user_id, m.points) for m in sx_only.entries] == [('alice', 200), ('bob', 100), ('carol', 0)]
        assert [(m.user_id, m.points) for m in last_month.entries] == [('bob', 100)]

    async def test_friends_scope_is_unavailable(self, services, seeded):
        page = await services['leaderboards'].get_page(FriendsScope('alice'), now=NOW)
        assert page.status is LeaderboardStatus.UNAVAILABLE
        assert page.is_available is False

    async def test_user_rank_and_unranked_lookup(self, services, seeded):
        await self._seed_scores(services, seeded)
        leaderboards = services['leaderboards']

        bob = await leaderboards.get_user_rank('bob', GlobalScope(), now=NOW)
        carol_mx = await leaderboards.get_user_rank(
            'carol', GlobalScope(), LeaderboardFilter(series=SeriesFilter.MX), now=NOW
        )

        assert bob.rank == 1
        assert carol_mx.rank == 0
        assert carol_mx.total_predictions == 0

    async def test_compare_users(self, services, seeded):
        await self._seed_scores(services, seeded)
        comparison = await services['leaderboards'].compare_users('alice', 'carol', GlobalScope(), now=NOW)
        assert comparison['leader'] == 'alice'
        assert comparison['point_gap'] == 200

    async def test_pagination(self, services, seeded):
        await self._seed_scores(services, seeded)
        leaderboards = services['leaderboards']

        second = await leaderboards.get_page(GlobalScope(), page=2, page_size=2, now=NOW)

        assert second.total_pages == 2
        assert [m.rank for m in second.entries] == [3]
        with pytest.raises(ValueError):
            await leaderboards.get_page(GlobalScope(), page=0)
        with pytest.raises(ValueError):
            await leaderboards.get_page(GlobalScope(), page_size=51)

    async def test_cache_is_invalidated_by_scoring(self, services, seeded):
        leaderboards = services['leaderboards']
        await score_race(services, seeded, 'sx-1', {'alice': [('A', 1)]}, [('A', 1)])

        before = await leaderboards.get_page(GlobalScope(), now=NOW)
        cached = await leaderboards.get_page(GlobalScope(), now=NOW)
        assert [m.points for m in before.entries] == [100]
        assert cached.entries == before.entries

        await seeded.record_race_results('sx-1', [ResultPosition('A', 2)])
        await services['scoring'].recompute_race('sx-1')

        after = await leaderboards.get_page(GlobalScope(), now=NOW)
        assert [m.points for m in after.entries] == [50]

    async def test_board_read_before_a_correction_is_not_cached(self, services, seeded, monkeypatch):
        leaderboards = services['leaderboards']
        await score_race(services, seeded, 'sx-1', {'alice': [('A', 1)]}, [('A', 1)])

        loaded, release = asyncio.Event(), asyncio.Event()
        original = services['score_ops'].load_candidates

        async def paused_load(scope, session=None):
            candidates = await original(scope, session=session)
            loaded.set()
            await release.wait()
            return candidates

        monkeypatch.setattr(services['score_ops'], 'load_candidates', paused_load)

        reader = asyncio.create_task(leaderboards.get_page(GlobalScope(), now=NOW))
        await loaded.wait()
        await seeded.record_race_results('sx-1', [ResultPosition('A', 2)])
        await services['scoring'].recompute_race('sx-1')
        release.set()

        # The slow reader still answers from the rows it read
        stale = await reader
        assert [m.points for m in stale.entries] == [100]

        after = await leaderboards.get_page(GlobalScope(), now=NOW)
        assert [m.points for m in after.entries] == [50]
