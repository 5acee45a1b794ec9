"""
Score Operations Module

Session-bound queries behind race scoring and leaderboards:

- loading the inputs of a race recompute (predictions, results, bonus
  results, existing score rows, profile streaks)
- writing PredictionScore snapshots back onto score rows
- loading leaderboard candidates with their scored race history per scope

Every method accepts an optional session so that a caller can compose
several operations inside one transaction.
"""

from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from racepicks.data_models.leaderboard import (
    FriendsScope, GlobalScope, GroupScope, LeaderboardScope, MemberCandidate,
    RegionalScope, ScoredRace
)
from racepicks.data_models.prediction import BonusResult, Prediction, RaceResult
from racepicks.data_models.score import BonusScore, PredictionScore, ScoreStatus
from racepicks.database.models import (
    BonusResultRecord, GroupMember, PredictionRecord, PredictionScoreRecord,
    Race, RaceResultEntry, UserProfile, result_from_entries
)
from racepicks.utils.exceptions import RaceNotFoundError, ScoreStateError
from racepicks.utils.logger import setup_logger
from racepicks.utils.score_lifecycle import SCORED_STATES

logger = setup_logger(__name__)


class ScoreOperations:
    """Persistence workflows for predictions and their scores."""

    def __init__(self, database):
        """Initialize with database instance"""
        self.db = database
        self.logger = logger

    @asynccontextmanager
    async def _get_session_context(self, session: Optional[AsyncSession] = None):
        """
        Provides a session context. Uses the provided session if available,
        otherwise opens a transaction and manages its lifecycle.
        """
        if session:
            # A provided session belongs to the caller's transaction
            yield session
        else:
            async with self.db.transaction() as new_session:
                yield new_session

    # Predictions

    async def save_prediction(self, prediction: Prediction,
                              session: Optional[AsyncSession] = None) -> PredictionRecord:
        """
        Store a prediction and make sure its score row exists in Submitted.

        Replacing a prediction keeps the score row; the next recompute sees
        different inputs and rescores it. A Final score cannot be replaced.

        Raises:
            RaceNotFoundError: If the race is unknown
            ScoreStateError: If the score for this prediction is already final
        """
        async with self._get_session_context(session) as s:
            if await s.get(Race, prediction.race_id) is None:
                raise RaceNotFoundError(prediction.race_id)

            score_row = await self._get_score_row(s, prediction.race_id, prediction.user_id)
            if score_row is not None and score_row.status is ScoreStatus.FINAL:
                raise ScoreStateError(score_row.status.value, 'resubmit')

            result = await s.execute(
                select(PredictionRecord).where(
                    PredictionRecord.race_id == prediction.race_id,
                    PredictionRecord.user_id == prediction.user_id,
                )
            )
            existing = result.scalar_one_or_none()
            replacement = PredictionRecord.from_domain(prediction)

            if existing:
                existing.picks = replacement.picks
                existing.confidence_level = replacement.confidence_level
                existing.holeshot_winner_id = replacement.holeshot_winner_id
                existing.fastest_lap_rider_id = replacement.fastest_lap_rider_id
                existing.qualifying_1_id = replacement.qualifying_1_id
                existing.qualifying_2_id = replacement.qualifying_2_id
                existing.qualifying_3_id = replacement.qualifying_3_id
                record = existing
                self.logger.info(f"Replaced prediction of user {prediction.user_id} for race {prediction.race_id}")
            else:
                s.add(replacement)
                record = replacement
                self.logger.info(f"Stored prediction of user {prediction.user_id} for race {prediction.race_id}")

            if score_row is None:
                s.add(PredictionScoreRecord(
                    race_id=prediction.race_id,
                    user_id=prediction.user_id,
                    status=ScoreStatus.SUBMITTED,
                ))

            await s.flush()
            return record

    async def load_predictions(self, race_id: str,
                               session: Optional[AsyncSession] = None) -> List[Prediction]:
        async with self._get_session_context(session) as s:
            result = await s.execute(
                select(PredictionRecord)
                .where(PredictionRecord.race_id == race_id)
                .order_by(PredictionRecord.id)
            )
            return [record.to_domain() for record in result.scalars().all()]

    # Results

    async def load_race_result(self, race_id: str,
                               session: Optional[AsyncSession] = None) -> RaceResult:
        """Known finishing positions for a race, possibly partial or empty"""
        async with self._get_session_context(session) as s:
            result = await s.execute(
                select(RaceResultEntry).where(RaceResultEntry.race_id == race_id)
            )
            return result_from_entries(race_id, result.scalars().all())

    async def load_bonus_result(self, race_id: str,
                                session: Optional[AsyncSession] = None) -> Optional[BonusResult]:
        async with self._get_session_context(session) as s:
            record = await s.get(BonusResultRecord, race_id)
            return record.to_domain() if record else None

    # Score rows

    async def _get_score_row(self, session: AsyncSession, race_id: str,
                             user_id: str) -> Optional[PredictionScoreRecord]:
        result = await session.execute(
            select(PredictionScoreRecord).where(
                PredictionScoreRecord.race_id == race_id,
                PredictionScoreRecord.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def load_score_rows(self, race_id: str,
                              session: Optional[AsyncSession] = None) -> Dict[str, PredictionScoreRecord]:
        """Score rows for a race keyed by user id"""
        async with self._get_session_context(session) as s:
            result = await s.execute(
                select(PredictionScoreRecord).where(PredictionScoreRecord.race_id == race_id)
            )
            return {row.user_id: row for row in result.scalars().all()}

    async def load_streak_days(self, user_ids: Iterable[str],
                               session: Optional[AsyncSession] = None) -> Dict[str, int]:
        """Cached day streak per user, used for the streak multiplier"""
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        async with self._get_session_context(session) as s:
            result = await s.execute(
                select(UserProfile.id, UserProfile.current_streak)
                .where(UserProfile.id.in_(user_ids))
            )
            return {user_id: streak or 0 for user_id, streak in result.all()}

    @staticmethod
    def apply_score(row: PredictionScoreRecord, score: PredictionScore, bonus: BonusScore,
                    status: ScoreStatus, fingerprint: str, calculated_at: datetime):
        """Overwrite a score row with a freshly computed snapshot"""
        row.status = status
        row.input_hash = fingerprint
        row.breakdown = score.to_dict()
        row.total_points = score.total_points
        row.exact_matches = score.exact_matches
        row.accuracy = score.accuracy
        row.is_perfect = score.is_perfect_prediction
        row.streak_days = score.streak_days
        row.bonus_points = bonus.total_bonus
        row.calculated_at = calculated_at

    # Leaderboard candidates

    async def _candidate_profiles(self, session: AsyncSession,
                                  scope: LeaderboardScope) -> List[UserProfile]:
        if isinstance(scope, GlobalScope):
            query = select(UserProfile)
        elif isinstance(scope, RegionalScope):
            query = select(UserProfile).where(UserProfile.region == scope.region)
        elif isinstance(scope, GroupScope):
            query = (
                select(UserProfile)
                .join(GroupMember, GroupMember.user_id == UserProfile.id)
                .where(GroupMember.group_id == scope.group_id)
            )
        else:
            # Friends and unknown scopes have no candidates
            return []

        result = await session.execute(query.order_by(UserProfile.id))
        return list(result.scalars().all())

    async def load_candidates(self, scope: LeaderboardScope,
                              session: Optional[AsyncSession] = None) -> List[MemberCandidate]:
        """
        Users eligible for a scope together with every scored race of theirs.

        Only Scored, Rescored and Final rows count; Submitted rows have no
        score yet.
        """
        if isinstance(scope, FriendsScope):
            return []

        async with self._get_session_context(session) as s:
            profiles = await self._candidate_profiles(s, scope)
            if not profiles:
                return []

            user_ids = [profile.id for profile in profiles]
            result = await s.execute(
                select(
                    PredictionScoreRecord.user_id,
                    PredictionScoreRecord.race_id,
                    PredictionScoreRecord.total_points,
                    PredictionScoreRecord.exact_matches,
                    Race.date,
                    Race.series,
                )
                .join(Race, Race.id == PredictionScoreRecord.race_id)
                .where(
                    PredictionScoreRecord.user_id.in_(user_ids),
                    PredictionScoreRecord.status.in_(SCORED_STATES),
                )
            )

            scores_by_user: Dict[str, List[ScoredRace]] = defaultdict(list)
            for user_id, race_id, total_points, exact_matches, race_date, series in result.all():
                scores_by_user[user_id].append(ScoredRace(
                    race_id=race_id,
                    race_date=race_date,
                    series=series,
                    total_points=total_points or 0,
                    exact_matches=exact_matches or 0,
                ))

            return [
                MemberCandidate(
                    user_id=profile.id,
                    scores=scores_by_user.get(profile.id, []),
                    display_name=profile.display_name,
                )
                for profile in profiles
            ]

    async def load_user_history(self, user_id: str,
                                session: Optional[AsyncSession] = None) -> MemberCandidate:
        """Single-user candidate over every scored race, for milestones"""
        async with self._get_session_context(session) as s:
            profile = await s.get(UserProfile, user_id)
            result = await s.execute(
                select(PredictionScoreRecord, Race)
                .join(Race, Race.id == PredictionScoreRecord.race_id)
                .where(
                    PredictionScoreRecord.user_id == user_id,
                    PredictionScoreRecord.status.in_(SCORED_STATES),
                )
            )
            scores = [
                ScoredRace(row.race_id, race.date, race.series, row.total_points or 0, row.exact_matches or 0)
                for row, race in result.all()
            ]
            return MemberCandidate(
                user_id=user_id,
                scores=scores,
                display_name=profile.display_name if profile else None,
            )
