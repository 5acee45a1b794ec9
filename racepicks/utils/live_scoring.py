"""
Provisional scoring while a race is in progress.

Each recompute reads the full partial result set, so a later update always
supersedes an earlier one and no merge logic is needed.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from racepicks.constants import LiveConstants
from racepicks.data_models.leaderboard import LiveUserScore
from racepicks.data_models.prediction import Prediction, ResultPosition
from racepicks.utils.scoring import ScoreCalculator

logger = logging.getLogger(__name__)


class LiveScoreTracker:
    """Locked-in and optimistic scores from partially known results"""

    @staticmethod
    def track(prediction: Prediction, partial_results: Iterable[ResultPosition],
              streak_days: int = 0) -> LiveUserScore:
        """
        Split the picks into finished (rider already placed) and pending.

        current_points is the full ScoreCalculator total over the finished
        picks; potential_points assumes every pending pick still lands exactly.
        """
        partial_results = list(partial_results)
        placed = {result.rider_id for result in partial_results}

        finished = [pick for pick in prediction.picks if pick.rider_id in placed]
        pending_count = len(prediction.picks) - len(finished)

        current = ScoreCalculator.calculate(
            prediction.race_id,
            prediction.user_id,
            finished,
            partial_results,
            prediction.confidence_level,
            streak_days,
        )

        return LiveUserScore(
            user_id=prediction.user_id,
            race_id=prediction.race_id,
            current_points=current.total_points,
            potential_points=current.total_points + LiveConstants.PENDING_PICK_POTENTIAL * pending_count,
            correct_picks=current.exact_matches,
            pending_picks=pending_count,
            total_picks=len(prediction.picks),
        )

    @staticmethod
    def live_leaderboard(predictions: Iterable[Prediction], partial_results: Iterable[ResultPosition],
                         streak_days_by_user: Optional[Dict[str, int]] = None,
                         limit: Optional[int] = None) -> List[LiveUserScore]:
        """
        Rank every prediction for a race by (current desc, potential desc).

        This ordering differs from the final leaderboard's
        (points, accuracy, total predictions).
        """
        partial_results = list(partial_results)
        streak_days_by_user = streak_days_by_user or {}

        scores = [
            LiveScoreTracker.track(prediction, partial_results, streak_days_by_user.get(prediction.user_id, 0))
            for prediction in predictions
        ]
        scores.sort(key=lambda s: (s.current_points, s.potential_points), reverse=True)

        total = len(scores)
        ranked = [
            replace(score, rank=index, total_participants=total)
            for index, score in enumerate(scores, start=1)
        ]
        logger.debug(f"Live leaderboard computed for {total} participants")

        if limit is not None:
            return ranked[:limit]
        return ranked
