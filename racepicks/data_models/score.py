"""
Score data models.

PredictionScore is a derived snapshot: it is always produced by the
ScoreCalculator and is overwritten whenever the race result changes.
"""

from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ScoreStatus(Enum):
    SUBMITTED = "submitted"
    SCORED = "scored"
    RESCORED = "rescored"
    FINAL = "final"


@dataclass(frozen=True)
class RiderScore:
    """Score for a single pick. actual_position is None when the rider is unscored."""
    rider_id: str
    predicted_position: int
    actual_position: Optional[int]
    position_diff: Optional[int]
    base_points: int
    confidence_multiplier: float
    points_earned: int

    @property
    def is_exact(self) -> bool:
        return self.position_diff == 0


@dataclass(frozen=True)
class PredictionScore:
    """Complete score breakdown for one (user, race)."""
    race_id: str
    user_id: str
    rider_scores: List[RiderScore]
    base_total: int
    confidence_level: Optional[int]
    confidence_multiplier: float
    confidence_bonus: int
    subtotal_after_confidence: int
    streak_days: int
    streak_multiplier: float
    streak_bonus: int
    perfect_prediction_bonus: int
    total_points: int
    accuracy: float
    is_perfect_prediction: bool

    @property
    def exact_matches(self) -> int:
        return sum(1 for score in self.rider_scores if score.is_exact)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BonusScore:
    """Points earned on the supplemental bonus categories."""
    holeshot_points: int = 0
    fastest_lap_points: int = 0
    qualifying_points: int = 0

    @property
    def total_bonus(self) -> int:
        return self.holeshot_points + self.fastest_lap_points + self.qualifying_points


@dataclass(frozen=True)
class ResultComparison:
    """Accuracy distribution of a set of picks against results."""
    exact_matches: int
    one_off: int
    two_off: int
    three_or_more: int
    not_in_top5: int


@dataclass(frozen=True)
class PerformanceRating:
    rating: str
    color: str
    emoji: str


@dataclass(frozen=True)
class RecomputeSummary:
    """Outcome of one race-wide scoring batch."""
    race_id: str
    scored: int = 0
    rescored: int = 0
    unchanged: int = 0
    failed: List[str] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return self.scored + self.rescored
