"""Integration tests for services/race_scoring.py against a temporary SQLite database."""

import pytest
from sqlalchemy import update

from racepicks.data_models.prediction import BonusPicks, Pick, Prediction, ResultPosition
from racepicks.data_models.score import ScoreStatus
from racepicks.database.models import UserProfile
from racepicks.utils.exceptions import (
    DatabaseError, PredictionValidationError, RaceNotFoundError, ScoreStateError
)
from racepicks.utils.scoring import ScoreCalculator

FULL = (('A', 1), ('B', 2), ('C', 3), ('D', 4), ('E', 5))


def prediction(user_id, *pairs, race_id='sx-1', confidence=None, bonus=None):
    return Prediction(race_id, user_id, [Pick(r, p) for r, p in pairs], confidence, bonus)


def positions(*pairs):
    return [ResultPosition(r, p) for r, p in pairs]


async def set_streak(database, user_id, days):
    async with database.transaction() as session:
        await session.execute(update(UserProfile).where(UserProfile.id == user_id).values(current_streak=days))


@pytest.mark.asyncio
class TestSubmitPrediction:
    """Validation and storage of predictions."""

    async def test_invalid_prediction_lists_every_error(self, services, seeded):
        bad = prediction('alice', ('A', 1), ('A', 7))

        with pytest.raises(PredictionValidationError) as excinfo:
            await services['scoring'].submit_prediction(bad)

        assert "Rider 'A' is picked more than once" in excinfo.value.errors
        assert "Predicted position 7 is outside 1-5" in excinfo.value.errors

    async def test_unknown_race_is_rejected(self, services, seeded):
        with pytest.raises(RaceNotFoundError):
            await services['scoring'].submit_prediction(prediction('alice', ('A', 1), race_id='nope'))

    async def test_submission_creates_submitted_score(self, services, seeded):
        await services['scoring'].submit_prediction(prediction('alice', *FULL))

        row = await services['scoring'].get_user_score('sx-1', 'alice')
        assert row.status is ScoreStatus.SUBMITTED
        assert row.breakdown is None


@pytest.mark.asyncio
class TestRecomputeRace:
    """Race-wide scoring batches."""

    async def test_scores_every_prediction(self, services, seeded, webhook, notifier):
        scoring = services['scoring']
        await scoring.submit_prediction(prediction('alice', *FULL, confidence=3))
        await scoring.submit_prediction(prediction('bob', ('C', 1), ('A', 2)))
        await seeded.record_race_results('sx-1', positions(('A', 1), ('C', 2), ('B', 3), ('D', 4), ('F', 5)))

        summary = await scoring.recompute_race('sx-1')

        assert summary.scored == 2
        assert summary.rescored == 0
        assert summary.failed == []

        alice = await scoring.get_user_score('sx-1', 'alice')
        assert alice.status is ScoreStatus.SCORED
        assert alice.total_points == 300
        assert alice.exact_matches == 2
        assert alice.accuracy == 60.0
        assert alice.breakdown['base_total'] == 300
        assert alice.calculated_at is not None

        # C predicted 1 finished 2, A predicted 2 finished 1
        bob = await scoring.get_user_score('sx-1', 'bob')
        assert bob.total_points == 100

        await notifier.flush()
        webhook.send.assert_awaited_once()
        embed = webhook.send.await_args.kwargs['embed']
        assert 'sx-1' in embed.title
        assert embed.fields[0].value == "1. alice: 300 pts\n2. bob: 100 pts"

    async def test_recompute_is_idempotent(self, services, seeded, webhook, notifier):
        scoring = services['scoring']
        await scoring.submit_prediction(prediction('alice', *FULL))
        await seeded.record_race_results('sx-1', positions(*FULL))

        await scoring.recompute_race('sx-1')
        first = await scoring.get_user_score('sx-1', 'alice')

        summary = await scoring.recompute_race('sx-1')
        second = await scoring.get_user_score('sx-1', 'alice')

        assert summary.changed == 0
        assert summary.unchanged == 1
        assert second.status is ScoreStatus.SCORED
        assert second.breakdown == first.breakdown
        assert second.calculated_at == first.calculated_at
        await notifier.flush()
        assert webhook.send.await_count == 1

    async def test_result_correction_rescores(self, services, seeded):
        scoring = services['scoring']
        await scoring.submit_prediction(prediction('alice', *FULL))
        await seeded.record_race_results('sx-1', positions(('B', 1), ('A', 2)))
        await scoring.recompute_race('sx-1')

        await seeded.record_race_results('sx-1', positions(('A', 1), ('B', 2)))
        summary = await scoring.recompute_race('sx-1')

        row = await scoring.get_user_score('sx-1', 'alice')
        assert summary.rescored == 1
        assert row.status is ScoreStatus.RESCORED
        assert row.total_points == 200

    async def test_missing_results_score_nothing(self, services, seeded):
        scoring = services['scoring']
        await scoring.submit_prediction(prediction('alice', *FULL))

        summary = await scoring.recompute_race('sx-1')

        assert summary.changed == 0
        row = await scoring.get_user_score('sx-1', 'alice')
        assert row.status is ScoreStatus.SUBMITTED

    async def test_withdrawn_results_rescore_to_zero(self, services, seeded):
        scoring = services['scoring']
        await scoring.submit_prediction(prediction('alice', ('A', 1)))
        await seeded.record_race_results('sx-1', positions(('A', 1)))
        await scoring.recompute_race('sx-1')

        await seeded.record_race_results('sx-1', [])
        summary = await scoring.recompute_race('sx-1')

        assert summary.rescored == 1
        row = await scoring.get_user_score('sx-1', 'alice')
        assert row.status is ScoreStatus.RESCORED
        assert row.total_points == 0
        assert row.exact_matches == 0

    async def test_withdrawn_results_leave_unscored_rows_submitted(self, services, seeded):
        scoring = services['scoring']
        await scoring.submit_prediction(prediction('alice', ('A', 1)))
        await seeded.record_race_results('sx-1', positions(('A', 1)))
        await scoring.recompute_race('sx-1')
        await scoring.submit_prediction(prediction('bob', ('A', 1)))

        await seeded.record_race_results('sx-1', [])
        summary = await scoring.recompute_race('sx-1')

        assert summary.scored == 0
        assert (await scoring.get_user_score('sx-1', 'bob')).status is ScoreStatus.SUBMITTED

    async def test_unknown_race(self, services, seeded):
        with pytest.raises(RaceNotFoundError):
            await services['scoring'].recompute_race('missing')

    async def test_one_failing_user_keeps_previous_score(self, services, seeded, monkeypatch):
        scoring = services['scoring']
        await scoring.submit_prediction(prediction('alice', ('A', 1)))
        await scoring.submit_prediction(prediction('bob', ('A', 1)))
        await seeded.record_race_results('sx-1', positions(('A', 1)))
        await scoring.recompute_race('sx-1')

        original = ScoreCalculator.score_prediction

        def flaky(prediction, result, streak_days=0):
            if prediction.user_id == 'bob':
                raise RuntimeError("boom")
            return original(prediction, result, streak_days)

        monkeypatch.setattr(ScoreCalculator, 'score_prediction', staticmethod(flaky))
        await seeded.record_race_results('sx-1', positions(('A', 2)))

        summary = await scoring.recompute_race('sx-1')

        assert summary.failed == ['bob']
        assert summary.rescored == 1
        alice = await scoring.get_user_score('sx-1', 'alice')
        bob = await scoring.get_user_score('sx-1', 'bob')
        assert alice.total_points == 50
        assert alice.status is ScoreStatus.RESCORED
        assert bob.total_points == 100
        assert bob.status is ScoreStatus.SCORED

    async def test_failed_publish_leaves_old_batch(self, services, seeded, monkeypatch):
        scoring = services['scoring']
        await scoring.submit_prediction(prediction('alice', ('A', 1)))
        await scoring.submit_prediction(prediction('bob', ('A', 2)))
        await seeded.record_race_results('sx-1', positions(('A', 1)))

        calls = []
        original = services['score_ops'].apply_score

        def apply_then_fail(*args):
            calls.append(args)
            if len(calls) == 2:
                raise RuntimeError("write failed")
            return original(*args)

        monkeypatch.setattr(services['score_ops'], 'apply_score', apply_then_fail)

        with pytest.raises(RuntimeError):
            await scoring.recompute_race('sx-1')

        for user_id in ('alice', 'bob'):
            row = await scoring.get_user_score('sx-1', user_id)
            assert row.status is ScoreStatus.SUBMITTED
            assert row.total_points == 0

    async def test_streak_multiplier_is_fixed_at_first_scoring(self, services, seeded):
        scoring = services['scoring']
        await set_streak(seeded, 'alice', 10)
        await scoring.submit_prediction(prediction('alice', ('A', 1)))
        await seeded.record_race_results('sx-1', positions(('A', 1)))
        await scoring.recompute_race('sx-1')

        await set_streak(seeded, 'alice', 0)
        await seeded.record_race_results('sx-1', positions(('A', 1), ('B', 2)))
        await scoring.recompute_race('sx-1')

        row = await scoring.get_user_score('sx-1', 'alice')
        assert row.streak_days == 10
        assert row.total_points == 110

    async def test_bonus_points_are_stored_separately(self, services, seeded):
        scoring = services['scoring']
        await scoring.submit_prediction(prediction(
            'alice', ('A', 1), bonus=BonusPicks(holeshot_winner_id='A', qualifying_1_id='B')
        ))
        await seeded.record_race_results('sx-1', positions(('A', 1)))
        await seeded.record_bonus_results('sx-1', BonusPicks(holeshot_winner_id='A', qualifying_1_id='B'))

        await scoring.recompute_race('sx-1')

        row = await scoring.get_user_score('sx-1', 'alice')
        assert row.total_points == 100
        assert row.bonus_points == 20


@pytest.mark.asyncio
class TestFinalizeRace:
    """Freezing scores."""

    async def test_finalize_then_correction(self, services, seeded):
        scoring = services['scoring']
        await scoring.submit_prediction(prediction('alice', ('A', 1)))
        await scoring.submit_prediction(prediction('bob', ('A', 1)))
        await seeded.record_race_results('sx-1', positions(('A', 1)))
        await scoring.recompute_race('sx-1')

        assert await scoring.finalize_race('sx-1') == 2
        assert await scoring.finalize_race('sx-1') == 0
        assert (await scoring.get_user_score('sx-1', 'alice')).status is ScoreStatus.FINAL

        # A late correction reopens final scores
        await seeded.record_race_results('sx-1', positions(('A', 3)))
        await scoring.recompute_race('sx-1')
        row = await scoring.get_user_score('sx-1', 'alice')
        assert row.status is ScoreStatus.RESCORED
        assert row.total_points == 25

    async def test_final_prediction_cannot_be_replaced(self, services, seeded):
        scoring = services['scoring']
        await scoring.submit_prediction(prediction('alice', ('A', 1)))
        await seeded.record_race_results('sx-1', positions(('A', 1)))
        await scoring.recompute_race('sx-1')
        await scoring.finalize_race('sx-1')

        with pytest.raises(ScoreStateError):
            await scoring.submit_prediction(prediction('alice', ('B', 1)))


@pytest.mark.asyncio
class TestRecordResults:
    """Result storage."""

    async def test_conflicting_results_keep_previous(self, seeded):
        await seeded.record_race_results('sx-1', positions(('A', 1), ('B', 2)))

        with pytest.raises(DatabaseError):
            await seeded.record_race_results('sx-1', positions(('A', 1), ('A', 2)))
        with pytest.raises(DatabaseError):
            await seeded.record_race_results('sx-1', positions(('A', 1), ('B', 1)))

        stored = await seeded.get_race_results('sx-1')
        assert [(e.rider_id, e.position) for e in stored] == [('A', 1), ('B', 2)]
