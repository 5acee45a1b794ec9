"""
Prediction and result data models.

Immutable inputs to the scoring engine as supplied by the persistence layer.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Pick:
    """One (rider, predicted finishing position) pair."""
    rider_id: str
    predicted_position: int


@dataclass(frozen=True)
class BonusPicks:
    """Supplemental bonus category picks. Every field is optional."""
    holeshot_winner_id: Optional[str] = None
    fastest_lap_rider_id: Optional[str] = None
    qualifying_1_id: Optional[str] = None
    qualifying_2_id: Optional[str] = None
    qualifying_3_id: Optional[str] = None

    def categories(self) -> List[Tuple[str, Optional[str]]]:
        """Category label and rider id, in display order."""
        return [
            ('holeshot', self.holeshot_winner_id),
            ('fastest lap', self.fastest_lap_rider_id),
            ('qualifying 1', self.qualifying_1_id),
            ('qualifying 2', self.qualifying_2_id),
            ('qualifying 3', self.qualifying_3_id),
        ]

    @property
    def qualifying(self) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        return (self.qualifying_1_id, self.qualifying_2_id, self.qualifying_3_id)

    @property
    def is_empty(self) -> bool:
        return all(rider_id is None for _, rider_id in self.categories())


# Actual bonus outcomes share the same shape as the picks
BonusResult = BonusPicks


@dataclass(frozen=True)
class Prediction:
    """A user's prediction for one race."""
    race_id: str
    user_id: str
    picks: Tuple[Pick, ...]
    confidence_level: Optional[int] = None
    bonus: Optional[BonusPicks] = None

    def __post_init__(self):
        # Accept any iterable of picks but store a tuple so the object stays hashable
        object.__setattr__(self, 'picks', tuple(self.picks))


@dataclass(frozen=True)
class ResultPosition:
    """One rider's actual finishing position."""
    rider_id: str
    position: int


@dataclass(frozen=True)
class RaceResult:
    """Ordered finishing positions for a race, possibly partial."""
    race_id: str
    positions: Tuple[ResultPosition, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(
            self, 'positions', tuple(sorted(self.positions, key=lambda p: p.position))
        )

    @property
    def is_empty(self) -> bool:
        return len(self.positions) == 0


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a draft prediction."""
    valid: bool
    errors: List[str]
