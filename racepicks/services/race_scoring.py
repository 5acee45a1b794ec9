"""
Race scoring service.

Owns the write side of scoring: accepting predictions and turning a race's
results into published PredictionScores.

A race recompute has exactly one writer at a time. An in-process
asyncio.Lock per race serializes callers inside this process and, when Redis
is configured, a Redis key per race does the same across instances. All new
scores of a batch are written in a single transaction, so a reader sees
either the complete old batch or the complete new one.
"""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Iterable, List, Optional

from racepicks.config import Config
from racepicks.data_models.leaderboard import GlobalScope, MemberCandidate, MemberStats, ScoredRace
from racepicks.data_models.prediction import Prediction
from racepicks.data_models.score import RecomputeSummary, ScoreStatus
from racepicks.database.models import PredictionRecord, PredictionScoreRecord, Race
from racepicks.services.base import BaseService
from racepicks.utils.bonus_predictions import BonusPredictionValidator
from racepicks.utils.exceptions import (
    PredictionValidationError, RaceNotFoundError, TransactionError
)
from racepicks.utils.race_locks import RaceLocks
from racepicks.utils.ranking import LeaderboardAggregator
from racepicks.utils.redis_utils import RedisUtils
from racepicks.utils.score_lifecycle import ScoreLifecycle, input_fingerprint
from racepicks.utils.scoring import ScoreCalculator
from racepicks.utils.time_filters import utc_now
from racepicks.utils.validation import PredictionValidator

logger = logging.getLogger(__name__)

RESULTS_TOP_N = 3


class RaceScoringService(BaseService):
    """Validates predictions and publishes race score batches."""

    def __init__(self, session_factory, config_service, score_ops,
                 leaderboard_service=None, notification_service=None, redis_client=None):
        super().__init__(session_factory)
        self.config_service = config_service
        self.score_ops = score_ops
        self.leaderboard_service = leaderboard_service
        self.notification_service = notification_service
        self.redis_client = redis_client
        self._race_locks = RaceLocks()

    @property
    def lock_timeout(self) -> int:
        return self.config_service.get_int('scoring.lock_timeout', Config.SCORE_LOCK_TIMEOUT)

    # Predictions

    async def submit_prediction(self, prediction: Prediction) -> PredictionRecord:
        """
        Validate and store a prediction.

        Raises:
            PredictionValidationError: With every problem found
            RaceNotFoundError: If the race does not exist
            ScoreStateError: If the user's score for the race is already final
        """
        validation = PredictionValidator.validate(prediction)
        if not validation.valid:
            logger.info(
                f"Rejected prediction of user {prediction.user_id} for race {prediction.race_id}: "
                f"{len(validation.errors)} errors"
            )
            raise PredictionValidationError(validation.errors)

        async with self.get_session() as session:
            return await self.score_ops.save_prediction(prediction, session=session)

    # Locking

    @asynccontextmanager
    async def _distributed_lock(self, race_id: str):
        """Redis SET NX lock, waiting up to the lock timeout for another writer"""
        if self.redis_client is None:
            yield
            return

        lock_key = RedisUtils.race_lock_key(race_id)
        token = uuid.uuid4().hex
        timeout = self.lock_timeout
        deadline = time.monotonic() + timeout
        delay = 0.05

        while not await self.redis_client.set(lock_key, token, ex=timeout, nx=True):
            if time.monotonic() >= deadline:
                logger.error(f"Timed out waiting for score lock on race {race_id}")
                raise TransactionError(f"score lock for race {race_id}", 1)
            await asyncio.sleep(delay)
            delay = min(delay * 2, 1.0)

        try:
            yield
        finally:
            # Only release the key if it still holds our token
            current = await self.redis_client.get(lock_key)
            if current is not None and (current.decode() if isinstance(current, bytes) else current) == token:
                await self.redis_client.delete(lock_key)
            else:
                logger.warning(f"Score lock for race {race_id} expired before release")

    @asynccontextmanager
    async def race_lock(self, race_id: str):
        """Single-writer section for one race"""
        async with self._race_locks.hold(race_id):
            async with self._distributed_lock(race_id):
                yield

    # Recompute

    async def recompute_race(self, race_id: str) -> RecomputeSummary:
        """
        Score every prediction of a race against its current results.

        Safe to call repeatedly: unchanged inputs leave scores untouched, a
        corrected result rescores only the affected users. A failure scoring
        one user is logged and that user keeps their previous score while
        the rest of the batch publishes.

        Raises:
            RaceNotFoundError: If the race does not exist
            TransactionError: If the batch could not be committed
        """
        async with self.race_lock(race_id):
            async def publish_batch():
                return await self._publish_batch(race_id)

            summary, race, top_members = await self.execute_with_retry(publish_batch)

        logger.info(
            f"Race {race_id} recomputed: {summary.scored} scored, {summary.rescored} rescored, "
            f"{summary.unchanged} unchanged, {len(summary.failed)} failed"
        )

        if summary.changed:
            if self.leaderboard_service:
                await self.leaderboard_service.invalidate_race(race_id, race.series)
            if self.notification_service:
                self.notification_service.send_results_available(race_id, top_members)
        return summary

    async def _publish_batch(self, race_id: str):
        async with self.get_session() as session:
            race = await session.get(Race, race_id)
            if race is None:
                raise RaceNotFoundError(race_id)

            result = await self.score_ops.load_race_result(race_id, session=session)
            rows = await self.score_ops.load_score_rows(race_id, session=session)

            # Withdrawn results still rescore what was already published
            if result.is_empty and not any(row.is_scored for row in rows.values()):
                logger.warning(f"Race {race_id} has no results yet, nothing to score")
                return RecomputeSummary(race_id), race, []

            predictions = await self.score_ops.load_predictions(race_id, session=session)
            bonus_result = await self.score_ops.load_bonus_result(race_id, session=session)
            profile_streaks = await self.score_ops.load_streak_days(
                [p.user_id for p in predictions], session=session
            )

            calculated_at = utc_now()
            pending = []
            unchanged = 0
            failed: List[str] = []

            # Compute the whole batch before touching any row
            for prediction in predictions:
                try:
                    row = rows.get(prediction.user_id)
                    if row is None:
                        row = PredictionScoreRecord(
                            race_id=race_id, user_id=prediction.user_id, status=ScoreStatus.SUBMITTED
                        )
                        session.add(row)
                        rows[prediction.user_id] = row

                    if result.is_empty and not row.is_scored:
                        continue

                    # The streak multiplier is fixed at first scoring
                    if row.is_scored:
                        streak_days = row.streak_days or 0
                    else:
                        streak_days = profile_streaks.get(prediction.user_id, 0)

                    fingerprint = input_fingerprint(prediction, result, streak_days, bonus_result)
                    transition = ScoreLifecycle.apply_result(row.status, row.input_hash, fingerprint)
                    if not transition.changed:
                        unchanged += 1
                        continue

                    score = ScoreCalculator.score_prediction(prediction, result, streak_days)
                    bonus = BonusPredictionValidator.score(prediction.bonus, bonus_result)
                    pending.append((row, score, bonus, transition.status, fingerprint))
                except Exception:
                    logger.exception(f"Failed to score user {prediction.user_id} for race {race_id}")
                    failed.append(prediction.user_id)

            scored = rescored = 0
            for row, score, bonus, status, fingerprint in pending:
                self.score_ops.apply_score(row, score, bonus, status, fingerprint, calculated_at)
                if status is ScoreStatus.RESCORED:
                    rescored += 1
                else:
                    scored += 1

            top_members = self._race_standings(race, rows.values())

        summary = RecomputeSummary(race_id, scored, rescored, unchanged, failed)
        return summary, race, top_members

    @staticmethod
    def _race_standings(race: Race, rows: Iterable[PredictionScoreRecord]) -> List[MemberStats]:
        """Top of this race's scores, ranked the same way as leaderboards"""
        candidates = [
            MemberCandidate(
                user_id=row.user_id,
                scores=[ScoredRace(race.id, race.date, race.series, row.total_points or 0, row.exact_matches or 0)],
            )
            for row in rows
            if row.is_scored
        ]
        board = LeaderboardAggregator.aggregate(GlobalScope(), candidates)
        return board.entries[:RESULTS_TOP_N]

    async def finalize_race(self, race_id: str) -> int:
        """
        Freeze every scored row of a race. Returns how many rows changed.

        Rows still in Submitted were never scored and are left alone.
        """
        async with self.race_lock(race_id):
            async with self.get_session() as session:
                if await session.get(Race, race_id) is None:
                    raise RaceNotFoundError(race_id)

                rows = await self.score_ops.load_score_rows(race_id, session=session)
                finalized = skipped = 0
                for row in rows.values():
                    if row.status is ScoreStatus.SUBMITTED:
                        skipped += 1
                        continue
                    transition = ScoreLifecycle.finalize(row.status)
                    if transition.changed:
                        row.status = transition.status
                        finalized += 1

        if skipped:
            logger.warning(f"Race {race_id} finalized with {skipped} unscored predictions")
        logger.info(f"Finalized {finalized} scores for race {race_id}")
        return finalized

    async def get_user_score(self, race_id: str, user_id: str) -> Optional[PredictionScoreRecord]:
        async with self.get_session() as session:
            rows = await self.score_ops.load_score_rows(race_id, session=session)
            return rows.get(user_id)
