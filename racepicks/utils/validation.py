"""
Validation of main predictions before they reach the scoring engine.

The ScoreCalculator assumes well-formed input; anything malformed is rejected
here with every problem listed.
"""

from typing import List

from racepicks.constants import ScoringConstants
from racepicks.data_models.prediction import Prediction, ValidationResult
from racepicks.utils.bonus_predictions import BonusPredictionValidator


class PredictionValidator:
    """Validates pick count, positions, duplicates and bonus picks"""

    @staticmethod
    def validate(prediction: Prediction) -> ValidationResult:
        errors: List[str] = []
        picks = prediction.picks

        if not 1 <= len(picks) <= ScoringConstants.MAX_PICKS:
            errors.append(
                f"A prediction needs between 1 and {ScoringConstants.MAX_PICKS} picks, got {len(picks)}"
            )

        seen_riders = set()
        seen_positions = set()
        for pick in picks:
            position = pick.predicted_position
            if not isinstance(position, int) or isinstance(position, bool):
                errors.append(f"Predicted position for rider '{pick.rider_id}' must be a whole number")
                continue
            if not ScoringConstants.MIN_POSITION <= position <= ScoringConstants.MAX_POSITION:
                errors.append(
                    f"Predicted position {position} is outside "
                    f"{ScoringConstants.MIN_POSITION}-{ScoringConstants.MAX_POSITION}"
                )
            if pick.rider_id in seen_riders:
                errors.append(f"Rider '{pick.rider_id}' is picked more than once")
            if position in seen_positions:
                errors.append(f"Position {position} is picked more than once")
            seen_riders.add(pick.rider_id)
            seen_positions.add(position)

        if prediction.bonus is not None:
            errors.extend(BonusPredictionValidator.validate(prediction.bonus).errors)

        return ValidationResult(valid=not errors, errors=errors)
