"""
Prediction Scoring

Converts (prediction, actual result) pairs into point totals:
- Base points by position accuracy
- Confidence multipliers (0.5x to 2.0x), rounded per pick
- Perfect prediction bonus
- Streak bonuses (up to 3.0x)
"""

import logging
from typing import Dict, Iterable, List, Optional

from racepicks.constants import ScoringConstants
from racepicks.data_models.prediction import Pick, Prediction, RaceResult, ResultPosition
from racepicks.data_models.score import (
    PerformanceRating, PredictionScore, ResultComparison, RiderScore
)
from racepicks.utils.confidence import ConfidenceModifier
from racepicks.utils.rounding import round_half_up, to_decimal
from racepicks.utils.streaks import StreakEngine

logger = logging.getLogger(__name__)


class ScoreCalculator:
    """Pure, reentrant scoring of one prediction against one result set"""

    @staticmethod
    def base_points(position_diff: Optional[int]) -> int:
        """
        Base points for an absolute position difference

        Args:
            position_diff: |predicted - actual|, or None when the rider is unscored

        Returns:
            100/50/25/10/5 for a diff of 0..4, otherwise 0
        """
        if position_diff is None:
            return ScoringConstants.WRONG
        return ScoringConstants.BASE_POINTS_BY_DIFF.get(position_diff, ScoringConstants.WRONG)

    @staticmethod
    def score_pick(pick: Pick, actual_position: Optional[int],
                   confidence_level: Optional[int] = None) -> RiderScore:
        """Score a single pick, rounding the confidence-adjusted points here"""
        position_diff = None
        if actual_position is not None:
            position_diff = abs(pick.predicted_position - actual_position)
        base = ScoreCalculator.base_points(position_diff)
        multiplier = ConfidenceModifier.multiplier_for(confidence_level)

        return RiderScore(
            rider_id=pick.rider_id,
            predicted_position=pick.predicted_position,
            actual_position=actual_position,
            position_diff=position_diff,
            base_points=base,
            confidence_multiplier=multiplier,
            points_earned=ConfidenceModifier.apply(base, confidence_level),
        )

    @staticmethod
    def calculate(race_id: str, user_id: str, picks: Iterable[Pick],
                  actual_results: Iterable[ResultPosition],
                  confidence_level: Optional[int] = None,
                  streak_days: int = 0) -> PredictionScore:
        """
        Calculate a complete prediction score with all bonuses.

        Riders missing from actual_results are unscored and earn 0 base points;
        a missing or partial result set is never an error.
        """
        picks = list(picks)
        actual_positions: Dict[str, int] = {r.rider_id: r.position for r in actual_results}

        rider_scores = [
            ScoreCalculator.score_pick(pick, actual_positions.get(pick.rider_id), confidence_level)
            for pick in picks
        ]

        base_total = sum(score.base_points for score in rider_scores)
        subtotal = sum(score.points_earned for score in rider_scores)
        confidence_multiplier = ConfidenceModifier.multiplier_for(confidence_level)

        is_perfect = (
            len(rider_scores) == ScoringConstants.MAX_PICKS
            and all(score.is_exact for score in rider_scores)
        )
        perfect_bonus = ScoringConstants.PERFECT_PREDICTION_BONUS if is_perfect else 0

        streak_days = streak_days or 0
        streak_multiplier = StreakEngine.multiplier_for(streak_days)
        streak_bonus = round_half_up(
            (subtotal + perfect_bonus) * (to_decimal(streak_multiplier) - 1)
        )

        total = subtotal + perfect_bonus + streak_bonus

        max_points = len(picks) * ScoringConstants.EXACT_MATCH
        accuracy = (base_total * 100 / max_points) if max_points > 0 else 0.0

        logger.debug(
            f"Scored race {race_id} for user {user_id}: base={base_total}, subtotal={subtotal}, "
            f"perfect={perfect_bonus}, streak={streak_bonus}, total={total}"
        )

        return PredictionScore(
            race_id=race_id,
            user_id=user_id,
            rider_scores=rider_scores,
            base_total=base_total,
            confidence_level=confidence_level,
            confidence_multiplier=confidence_multiplier,
            confidence_bonus=subtotal - base_total,
            subtotal_after_confidence=subtotal,
            streak_days=streak_days,
            streak_multiplier=streak_multiplier,
            streak_bonus=streak_bonus,
            perfect_prediction_bonus=perfect_bonus,
            total_points=total,
            accuracy=float(accuracy),
            is_perfect_prediction=is_perfect,
        )

    @staticmethod
    def score_prediction(prediction: Prediction, result: RaceResult,
                         streak_days: int = 0) -> PredictionScore:
        """Convenience wrapper over calculate() for stored records"""
        return ScoreCalculator.calculate(
            prediction.race_id,
            prediction.user_id,
            prediction.picks,
            result.positions,
            prediction.confidence_level,
            streak_days,
        )

    @staticmethod
    def points_range(num_picks: int = ScoringConstants.MAX_PICKS) -> Dict[str, float]:
        """Minimum, maximum and neutral-average points before streak bonuses"""
        max_base = num_picks * ScoringConstants.EXACT_MATCH
        max_points = ConfidenceModifier.apply(max_base, 5)
        if num_picks == ScoringConstants.MAX_PICKS:
            max_points += ScoringConstants.PERFECT_PREDICTION_BONUS
        return {
            'min_points': 0,
            'max_points': max_points,
            'average_points': max_base / 2,
        }

    @staticmethod
    def compare_results(picks: Iterable[Pick], actual_results: Iterable[ResultPosition]) -> ResultComparison:
        """Distribution of how close each pick landed"""
        actual_positions = {r.rider_id: r.position for r in actual_results}
        exact = one_off = two_off = three_or_more = not_in_top5 = 0

        for pick in picks:
            actual = actual_positions.get(pick.rider_id)
            if actual is None or actual > ScoringConstants.MAX_POSITION:
                not_in_top5 += 1
                continue

            diff = abs(pick.predicted_position - actual)
            if diff == 0:
                exact += 1
            elif diff == 1:
                one_off += 1
            elif diff == 2:
                two_off += 1
            else:
                three_or_more += 1

        return ResultComparison(exact, one_off, two_off, three_or_more, not_in_top5)

    @staticmethod
    def performance_rating(accuracy: float) -> PerformanceRating:
        if accuracy >= 100:
            return PerformanceRating('Perfect', '#ffd700', '🏆')
        if accuracy >= 80:
            return PerformanceRating('Excellent', '#00ff00', '🔥')
        if accuracy >= 60:
            return PerformanceRating('Great', '#00d9ff', '💪')
        if accuracy >= 40:
            return PerformanceRating('Good', '#ffa726', '👍')
        if accuracy >= 20:
            return PerformanceRating('Fair', '#ff9800', '📈')
        return PerformanceRating('Poor', '#ff6b6b', '📉')

    @staticmethod
    def format_breakdown(score: PredictionScore) -> str:
        """Multi-line text breakdown of a score"""
        lines: List[str] = [f"Base Points: {score.base_total}"]

        if score.confidence_bonus != 0:
            sign = '+' if score.confidence_bonus > 0 else ''
            lines.append(f"Confidence ({score.confidence_multiplier}x): {sign}{score.confidence_bonus}")
        if score.perfect_prediction_bonus > 0:
            lines.append(f"Perfect Prediction: +{score.perfect_prediction_bonus}")
        if score.streak_bonus > 0:
            lines.append(f"Streak Bonus ({score.streak_multiplier:.2f}x): +{score.streak_bonus}")

        lines.append("─" * 17)
        lines.append(f"Total: {score.total_points} points")
        return "\n".join(lines)
