"""
Profile data models: day streaks and milestone rewards.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class StreakState:
    """Cached per-user day streak."""
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[date] = None


@dataclass(frozen=True)
class StreakUpdate:
    """Result of advancing a streak by one activity."""
    current_streak: int
    longest_streak: int
    last_activity_date: date
    streak_broken: bool
    previous_streak: int


@dataclass(frozen=True)
class StreakReward:
    streak_days: int
    bonus_multiplier: float
    badge_title: str


class MilestoneType(Enum):
    PREDICTIONS = "predictions"
    POINTS = "points"
    ACCURACY = "accuracy"


@dataclass(frozen=True)
class Milestone:
    milestone_type: MilestoneType
    milestone_value: int
    reward_points: int
    reward_title: str
    is_claimed: bool = False

    @property
    def key(self) -> str:
        return f"{self.milestone_type.value}_{self.milestone_value}"
