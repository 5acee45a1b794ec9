"""End-to-end tests through RacePicksEngine and the live race service."""

import asyncio
from datetime import datetime

import pytest

from racepicks.data_models.leaderboard import GlobalScope, SeriesType
from racepicks.data_models.prediction import Pick, Prediction, ResultPosition
from racepicks.data_models.score import ScoreStatus
from racepicks.utils.time_filters import utc_now


async def seed(engine):
    await engine.db.create_race('sx-1', 'Anaheim 1', datetime(2025, 1, 11, 20), SeriesType.SX)
    for user_id in ('alice', 'bob', 'carol'):
        await engine.db.create_user(user_id, user_id)


def picks(*pairs):
    return [Pick(r, p) for r, p in pairs]


def positions(*pairs):
    return [ResultPosition(r, p) for r, p in pairs]


@pytest.mark.asyncio
class TestLiveRace:
    """Provisional standings while a race runs."""

    async def test_live_updates(self, engine):
        await seed(engine)
        await engine.submit_prediction(Prediction('sx-1', 'alice', picks(('A', 1), ('B', 2))))
        await engine.submit_prediction(Prediction('sx-1', 'bob', picks(('B', 1))))

        board = await engine.handle_live_event('sx-1', positions(('A', 1)), sequence=1)
        assert [(s.user_id, s.current_points) for s in board] == [('alice', 100), ('bob', 0)]

        board = await engine.handle_live_event('sx-1', positions(('B', 1), ('A', 3)), sequence=2)
        assert [(s.user_id, s.current_points) for s in board] == [('bob', 100), ('alice', 75)]

        bob = engine.live.get_user_live_score('sx-1', 'bob')
        assert bob.rank == 1
        assert bob.pending_picks == 0
        assert engine.live.get_partial_results('sx-1') == tuple(positions(('B', 1), ('A', 3)))

    async def test_stale_sequence_is_ignored(self, engine):
        await seed(engine)
        await engine.submit_prediction(Prediction('sx-1', 'alice', picks(('A', 1))))

        await engine.handle_live_event('sx-1', positions(('A', 1)), sequence=5)
        board = await engine.handle_live_event('sx-1', positions(('A', 3)), sequence=4)

        assert board[0].current_points == 100
        assert engine.live.get_partial_results('sx-1') == tuple(positions(('A', 1)))

    async def test_conflicting_positions_keep_first(self, engine):
        await seed(engine)
        await engine.submit_prediction(Prediction('sx-1', 'alice', picks(('A', 1))))

        await engine.handle_live_event('sx-1', positions(('A', 1), ('A', 2), ('B', 1)))

        assert engine.live.get_partial_results('sx-1') == tuple(positions(('A', 1)))

    async def test_limit(self, engine):
        await seed(engine)
        for user_id in ('alice', 'bob', 'carol'):
            await engine.submit_prediction(Prediction('sx-1', user_id, picks(('A', 1))))

        board = await engine.live.apply_event('sx-1', positions(('A', 1)), limit=2)

        assert len(board) == 2
        assert board[0].total_participants == 3

    async def test_unknown_race_has_no_live_state(self, engine):
        assert engine.live.get_live_leaderboard('nope') == []
        assert engine.live.get_user_live_score('nope', 'alice') is None

    async def test_late_event_after_result_is_ignored(self, engine):
        await seed(engine)
        await engine.submit_prediction(Prediction('sx-1', 'alice', picks(('A', 1))))
        await engine.handle_live_event('sx-1', positions(('A', 1)), sequence=1)
        await engine.db.record_race_results('sx-1', positions(('A', 1)))
        await engine.handle_result_event('sx-1')

        board = await engine.handle_live_event('sx-1', positions(('A', 2)), sequence=2)

        assert board == []
        assert engine.live.get_partial_results('sx-1') == ()
        assert engine.live.get_live_leaderboard('sx-1') == []
        assert len(engine.live._race_locks) == 0

    async def test_race_ending_during_update_drops_it(self, engine, monkeypatch):
        await seed(engine)
        await engine.submit_prediction(Prediction('sx-1', 'alice', picks(('A', 1))))

        loaded = asyncio.Event()
        release = asyncio.Event()
        original = engine.score_ops.load_predictions

        async def paused_load(*args, **kwargs):
            predictions = await original(*args, **kwargs)
            loaded.set()
            await release.wait()
            return predictions

        monkeypatch.setattr(engine.score_ops, 'load_predictions', paused_load)

        update = asyncio.create_task(engine.live.apply_event('sx-1', positions(('A', 1))))
        await loaded.wait()
        assert 'sx-1' in engine.live._race_locks
        engine.live.end_race('sx-1')
        release.set()

        assert await update == []
        assert engine.live.get_live_leaderboard('sx-1') == []
        assert engine.live.get_partial_results('sx-1') == ()
        assert 'sx-1' not in engine.live._race_locks

    async def test_concurrent_updates_share_one_lock(self, engine):
        await seed(engine)
        await engine.submit_prediction(Prediction('sx-1', 'alice', picks(('A', 1))))

        await asyncio.gather(
            engine.live.apply_event('sx-1', positions(('A', 1)), sequence=1),
            engine.live.apply_event('sx-1', positions(('A', 2)), sequence=2),
        )

        assert engine.live.get_partial_results('sx-1') == tuple(positions(('A', 2)))
        assert len(engine.live._race_locks) == 0


@pytest.mark.asyncio
class TestEngine:
    """Prediction, result and leaderboard flow."""

    async def test_full_flow(self, engine, notifier, webhook):
        await seed(engine)
        await engine.submit_prediction(Prediction('sx-1', 'alice', picks(('A', 1), ('B', 2)), confidence_level=4))
        await engine.submit_prediction(Prediction('sx-1', 'bob', picks(('B', 1), ('A', 2))))
        await engine.handle_live_event('sx-1', positions(('A', 1)))

        await engine.db.record_race_results('sx-1', positions(('A', 1), ('B', 2)))
        summary = await engine.handle_result_event('sx-1')

        assert summary.scored == 2
        alice = await engine.scoring.get_user_score('sx-1', 'alice')
        assert alice.status is ScoreStatus.SCORED
        # 200 base x 1.5 confidence
        assert alice.total_points == 300
        assert engine.live.get_live_leaderboard('sx-1') == []

        board = await engine.leaderboards.get_page(GlobalScope(), now=datetime(2025, 2, 1))
        assert [(m.user_id, m.points) for m in board.entries] == [('alice', 300), ('bob', 100)]

        await notifier.flush()
        titles = [call.kwargs['embed'].title for call in webhook.send.await_args_list]
        assert any('sx-1' in title for title in titles)

    async def test_submission_counts_towards_streak(self, engine):
        await seed(engine)
        await engine.submit_prediction(Prediction('sx-1', 'carol', picks(('A', 1))))

        state = await engine.streaks.get_streak('carol')

        assert state.current_streak == 1
        assert state.last_activity_date == utc_now().date()

    async def test_resubmission_replaces_picks(self, engine):
        await seed(engine)
        await engine.submit_prediction(Prediction('sx-1', 'alice', picks(('A', 1))))
        await engine.submit_prediction(Prediction('sx-1', 'alice', picks(('B', 1))))

        await engine.db.record_race_results('sx-1', positions(('B', 1)))
        await engine.handle_result_event('sx-1')

        row = await engine.scoring.get_user_score('sx-1', 'alice')
        assert row.total_points == 100
