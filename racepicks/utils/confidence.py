"""
Confidence multipliers for predictions.

Higher confidence means higher rewards but also higher risk. Absent or
out-of-range levels fall back to the neutral multiplier without raising.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from racepicks.constants import ConfidenceConstants
from racepicks.utils.rounding import scale_points

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfidenceConfig:
    level: int
    multiplier: float
    label: str
    description: str


class ConfidenceModifier:
    """Static lookup: confidence level -> point multiplier"""

    NEUTRAL_LEVEL = 3

    @staticmethod
    def is_valid_level(level: Any) -> bool:
        # bool is an int subclass but never a valid level
        return isinstance(level, int) and not isinstance(level, bool) and level in ConfidenceConstants.LEVELS

    @staticmethod
    def multiplier_for(level: Optional[int] = None) -> float:
        """
        Get the point multiplier for a confidence level

        Args:
            level: Confidence level 1-5, or None when the user did not set one

        Returns:
            Multiplier; 1.0 when the level is absent or invalid
        """
        if level is None:
            return ConfidenceConstants.NEUTRAL_MULTIPLIER
        if not ConfidenceModifier.is_valid_level(level):
            logger.debug(f"Out-of-range confidence level {level!r}, using neutral multiplier")
            return ConfidenceConstants.NEUTRAL_MULTIPLIER
        return ConfidenceConstants.LEVELS[level][0]

    @staticmethod
    def config_for(level: Optional[int]) -> ConfidenceConfig:
        """Full display config for a level, neutral for anything invalid"""
        if not ConfidenceModifier.is_valid_level(level):
            level = ConfidenceModifier.NEUTRAL_LEVEL
        multiplier, label, description = ConfidenceConstants.LEVELS[level]
        return ConfidenceConfig(level, multiplier, label, description)

    @staticmethod
    def apply(base_points: int, level: Optional[int] = None) -> int:
        """Base points scaled by the level's multiplier, rounded half-up"""
        return scale_points(base_points, ConfidenceModifier.multiplier_for(level))

    @staticmethod
    def points_range(base_points: int) -> Dict[str, int]:
        """Lowest, neutral and highest outcome for the same base points"""
        return {
            'min': ConfidenceModifier.apply(base_points, 1),
            'standard': base_points,
            'max': ConfidenceModifier.apply(base_points, 5),
        }

    @staticmethod
    def format_level(level: Optional[int]) -> str:
        if level is None:
            return 'Standard'
        config = ConfidenceModifier.config_for(level)
        return f"{config.label} ({config.multiplier}x)"
