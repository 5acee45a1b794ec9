"""
Lifecycle of one (user, race) score:

    Submitted -> Scored -> Rescored* -> Final

A result correction moves Scored, Rescored or Final back to Rescored.
Applying the same inputs twice is a no-op, detected by fingerprinting the
scoring inputs.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Optional

from racepicks.data_models.prediction import BonusResult, Prediction, RaceResult
from racepicks.data_models.score import ScoreStatus
from racepicks.utils.exceptions import ScoreStateError

SCORED_STATES = (ScoreStatus.SCORED, ScoreStatus.RESCORED, ScoreStatus.FINAL)


@dataclass(frozen=True)
class ScoreTransition:
    status: ScoreStatus
    changed: bool


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(',', ':'), default=str)


def input_fingerprint(prediction: Prediction, result: RaceResult,
                      streak_days: int = 0, bonus_result: Optional[BonusResult] = None) -> str:
    """SHA-256 over every input that affects a PredictionScore"""
    payload = {
        'race_id': prediction.race_id,
        'user_id': prediction.user_id,
        'picks': sorted((p.rider_id, p.predicted_position) for p in prediction.picks),
        'confidence': prediction.confidence_level,
        'bonus': prediction.bonus.categories() if prediction.bonus else None,
        'results': sorted((r.rider_id, r.position) for r in result.positions),
        'bonus_result': bonus_result.categories() if bonus_result else None,
        'streak_days': streak_days or 0,
    }
    return hashlib.sha256(_canonical(payload).encode('utf-8')).hexdigest()


class ScoreLifecycle:
    """Pure transition rules for a score's status"""

    @staticmethod
    def apply_result(status: Optional[ScoreStatus], previous_fingerprint: Optional[str],
                     new_fingerprint: str) -> ScoreTransition:
        if status is None:
            raise ScoreStateError('none', 'score')

        if status is ScoreStatus.SUBMITTED:
            return ScoreTransition(ScoreStatus.SCORED, True)

        if previous_fingerprint == new_fingerprint:
            return ScoreTransition(status, False)

        return ScoreTransition(ScoreStatus.RESCORED, True)

    @staticmethod
    def finalize(status: Optional[ScoreStatus]) -> ScoreTransition:
        if status is ScoreStatus.FINAL:
            return ScoreTransition(status, False)
        if status not in SCORED_STATES:
            raise ScoreStateError(status.value if status else 'none', 'finalize')
        return ScoreTransition(ScoreStatus.FINAL, True)
