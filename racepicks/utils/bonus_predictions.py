"""
Bonus category predictions beyond the main top 5:
holeshot winner, fastest lap rider and qualifying top 3.

Each category is validated and scored independently of the main picks.
"""

import logging
from collections import OrderedDict
from itertools import combinations
from typing import Dict, List, Optional

from racepicks.constants import BonusConstants
from racepicks.data_models.prediction import BonusPicks, BonusResult, ValidationResult
from racepicks.data_models.score import BonusScore

logger = logging.getLogger(__name__)


class BonusPredictionValidator:
    """Validates and scores supplemental bonus picks"""

    @staticmethod
    def validate(draft: BonusPicks) -> ValidationResult:
        """
        Validate a bonus draft, collecting every violation rather than the first.

        A rider may be used in only one category, and the three qualifying
        slots must hold three different riders.
        """
        errors: List[str] = []

        # rider_id -> categories it was picked for, in category order
        usage: Dict[str, List[str]] = OrderedDict()
        for category, rider_id in draft.categories():
            if rider_id is not None:
                usage.setdefault(rider_id, []).append(category)

        for rider_id, categories in usage.items():
            if len(categories) > 1:
                errors.append(
                    f"Rider '{rider_id}' is selected for multiple categories: {', '.join(categories)}"
                )

        for (slot_a, rider_a), (slot_b, rider_b) in combinations(enumerate(draft.qualifying, start=1), 2):
            if rider_a is not None and rider_a == rider_b:
                errors.append(f"Qualifying positions {slot_a} and {slot_b} must have different riders")

        return ValidationResult(valid=not errors, errors=errors)

    @staticmethod
    def score(draft: Optional[BonusPicks], actual: Optional[BonusResult]) -> BonusScore:
        """Score each bonus category independently against the actual outcome"""
        if draft is None or actual is None:
            return BonusScore()

        holeshot = BonusConstants.HOLESHOT_POINTS if _matches(draft.holeshot_winner_id, actual.holeshot_winner_id) else 0
        fastest_lap = BonusConstants.FASTEST_LAP_POINTS if _matches(draft.fastest_lap_rider_id, actual.fastest_lap_rider_id) else 0
        qualifying = sum(
            BonusConstants.QUALIFYING_POINTS_PER_SLOT
            for picked, actual_rider in zip(draft.qualifying, actual.qualifying)
            if _matches(picked, actual_rider)
        )

        result = BonusScore(holeshot, fastest_lap, qualifying)
        logger.debug(f"Bonus score: holeshot={holeshot}, fastest_lap={fastest_lap}, qualifying={qualifying}")
        return result

    @staticmethod
    def max_bonus_points() -> int:
        return BonusConstants.MAX_BONUS_POINTS

    @staticmethod
    def breakdown(score: BonusScore) -> List[Dict[str, object]]:
        """Non-zero categories for display"""
        rows = [
            ('Holeshot Winner', score.holeshot_points),
            ('Fastest Lap', score.fastest_lap_points),
            ('Qualifying', score.qualifying_points),
        ]
        return [{'label': label, 'points': points} for label, points in rows if points > 0]


def _matches(picked: Optional[str], actual: Optional[str]) -> bool:
    return picked is not None and picked == actual
