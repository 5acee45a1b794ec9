from datetime import date, datetime
from typing import Optional, Union

from racepicks.constants import StreakConstants
from racepicks.data_models.profile import StreakReward, StreakUpdate

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    # datetime is a date subclass, check it first
    if isinstance(value, datetime):
        return value.date()
    return value


class StreakEngine:
    """Tracks consecutive-day activity streaks and their bonus tiers"""

    @staticmethod
    def advance(today: DateLike, last_activity_date: Optional[DateLike],
                current_streak: int, longest_streak: int) -> StreakUpdate:
        """
        Advance a day streak by one qualifying activity

        Args:
            today: Date of the new activity
            last_activity_date: Date of the previous activity, None if there was none
            current_streak: Streak before this activity
            longest_streak: Longest streak before this activity

        Returns:
            StreakUpdate with the new streak values
        """
        today = _as_date(today)
        previous = current_streak or 0
        current = previous
        broken = False

        if last_activity_date is None:
            current = 1
        else:
            days_diff = (today - _as_date(last_activity_date)).days
            if days_diff == 0:
                # Same day, no change
                pass
            elif days_diff == 1:
                current = previous + 1
            else:
                # Larger gap (or a clock that went backwards) breaks the streak
                broken = True
                current = 1

        return StreakUpdate(
            current_streak=current,
            longest_streak=max(longest_streak or 0, current),
            last_activity_date=today,
            streak_broken=broken,
            previous_streak=previous,
        )

    @staticmethod
    def reward_for(streak_days: int) -> Optional[StreakReward]:
        """Highest reward tier the streak qualifies for, None below the first tier"""
        reward = None
        for days, multiplier, title in StreakConstants.TIERS:
            if streak_days >= days:
                reward = StreakReward(days, multiplier, title)
        return reward

    @staticmethod
    def multiplier_for(streak_days: Optional[int]) -> float:
        """Step function: 3d 1.10x, 7d 1.25x, 14d 1.50x, 30d 2.00x, 60d 2.50x, 100d 3.00x"""
        if not streak_days:
            return StreakConstants.NO_BONUS_MULTIPLIER
        reward = StreakEngine.reward_for(streak_days)
        return reward.bonus_multiplier if reward else StreakConstants.NO_BONUS_MULTIPLIER

    @staticmethod
    def crossed_tier(previous_streak: int, current_streak: int) -> Optional[StreakReward]:
        """The tier newly reached by going from previous to current, if any"""
        before = StreakEngine.reward_for(previous_streak)
        after = StreakEngine.reward_for(current_streak)
        if after is None or after == before or current_streak <= previous_streak:
            return None
        return after
