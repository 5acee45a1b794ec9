"""
Live race service.

Keeps the latest partial results of every race in progress and the live
leaderboard computed from them. Events for one race are applied one at a
time in arrival order; each event carries the full set of positions known so
far and replaces the previous one.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from racepicks.config import Config
from racepicks.data_models.leaderboard import LiveUserScore
from racepicks.data_models.prediction import ResultPosition
from racepicks.services.base import BaseService
from racepicks.utils.live_scoring import LiveScoreTracker
from racepicks.utils.race_locks import RaceLocks

logger = logging.getLogger(__name__)


class LiveRaceService(BaseService):
    """Provisional standings while races are running."""

    def __init__(self, session_factory, score_ops, default_limit: int = None):
        super().__init__(session_factory)
        self.score_ops = score_ops
        self.default_limit = default_limit or Config.LIVE_LEADERBOARD_LIMIT
        self._race_locks = RaceLocks()
        self._partial_results: Dict[str, Tuple[ResultPosition, ...]] = {}
        self._boards: Dict[str, List[LiveUserScore]] = {}
        self._last_sequence: Dict[str, int] = {}
        # Races whose official result has been scored; live events for them are late
        self._ended: Set[str] = set()

    @staticmethod
    def _dedupe(positions: Iterable[ResultPosition]) -> Tuple[ResultPosition, ...]:
        """Keep the first entry per rider and per position"""
        riders, places, kept = set(), set(), []
        for position in positions:
            if position.rider_id in riders or position.position in places:
                logger.warning(f"Ignoring conflicting live position {position}")
                continue
            riders.add(position.rider_id)
            places.add(position.position)
            kept.append(position)
        return tuple(sorted(kept, key=lambda p: p.position))

    async def apply_event(self, race_id: str, positions: Iterable[ResultPosition],
                          sequence: Optional[int] = None,
                          limit: Optional[int] = None) -> List[LiveUserScore]:
        """
        Apply a live result update and recompute the race's live leaderboard.

        Args:
            race_id: Race in progress
            positions: Every position known so far
            sequence: Optional feed sequence number; updates at or below the
                last applied one are stale and ignored
            limit: Rows to return, defaults to the configured live limit

        Returns:
            The top of the live leaderboard after the update
        """
        async with self._race_locks.hold(race_id):
            if race_id in self._ended:
                logger.info(f"Ignoring live update for finished race {race_id}")
                return []

            if sequence is not None:
                last = self._last_sequence.get(race_id)
                if last is not None and sequence <= last:
                    logger.info(f"Ignoring stale live update {sequence} for race {race_id} (last {last})")
                    return self.get_live_leaderboard(race_id, limit)
                self._last_sequence[race_id] = sequence

            partial = self._dedupe(positions)

            async with self.get_session() as session:
                predictions = await self.score_ops.load_predictions(race_id, session=session)
                streaks = await self.score_ops.load_streak_days(
                    [p.user_id for p in predictions], session=session
                )

            if race_id in self._ended:
                logger.info(f"Race {race_id} finished while a live update was applied, dropping it")
                return []

            board = LiveScoreTracker.live_leaderboard(predictions, partial, streaks)
            self._partial_results[race_id] = partial
            self._boards[race_id] = board

        logger.debug(f"Live update for race {race_id}: {len(partial)} positions, {len(board)} participants")
        return self.get_live_leaderboard(race_id, limit)

    def get_live_leaderboard(self, race_id: str, limit: Optional[int] = None) -> List[LiveUserScore]:
        board = self._boards.get(race_id, [])
        return board[:limit or self.default_limit]

    def get_user_live_score(self, race_id: str, user_id: str) -> Optional[LiveUserScore]:
        for score in self._boards.get(race_id, []):
            if score.user_id == user_id:
                return score
        return None

    def get_partial_results(self, race_id: str) -> Tuple[ResultPosition, ...]:
        return self._partial_results.get(race_id, ())

    def end_race(self, race_id: str):
        """Forget live state once the official result has been scored and ignore later events"""
        self._ended.add(race_id)
        self._partial_results.pop(race_id, None)
        self._boards.pop(race_id, None)
        self._last_sequence.pop(race_id, None)
        logger.info(f"Cleared live state for race {race_id}")
