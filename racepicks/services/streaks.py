"""
Day-streak tracking on user profiles.

The profile streak is a cache that feeds the streak multiplier at scoring
time. Leaderboard streaks are derived from score history instead and never
read it.
"""

import logging
from datetime import date
from typing import Optional

from racepicks.constants import StreakConstants
from racepicks.data_models.profile import StreakState, StreakUpdate
from racepicks.database.models import UserProfile
from racepicks.services.base import BaseService
from racepicks.utils.exceptions import UserNotFoundError
from racepicks.utils.streaks import StreakEngine
from racepicks.utils.time_filters import utc_now

logger = logging.getLogger(__name__)


class StreakService(BaseService):
    """Advances profile streaks and sends streak notifications."""

    def __init__(self, session_factory, notification_service=None):
        super().__init__(session_factory)
        self.notification_service = notification_service

    async def get_streak(self, user_id: str) -> StreakState:
        async with self.get_session() as session:
            profile = await session.get(UserProfile, user_id)
            if profile is None:
                raise UserNotFoundError(user_id)
            return profile.streak_state()

    async def record_activity(self, user_id: str, today: Optional[date] = None) -> StreakUpdate:
        """
        Count a qualifying activity (a submitted prediction) for today.

        Sends a reminder when a streak of at least three days was broken and
        a milestone notification when the streak reaches a new reward tier.

        Raises:
            UserNotFoundError: If the profile does not exist
        """
        today = today or utc_now().date()

        async with self.get_session() as session:
            profile = await session.get(UserProfile, user_id)
            if profile is None:
                raise UserNotFoundError(user_id)

            update = StreakEngine.advance(
                today,
                profile.last_activity_date,
                profile.current_streak,
                profile.longest_streak,
            )
            profile.current_streak = update.current_streak
            profile.longest_streak = update.longest_streak
            profile.last_activity_date = update.last_activity_date

        if update.streak_broken:
            logger.info(f"User {user_id} broke a {update.previous_streak}-day streak")

        if self.notification_service:
            if update.streak_broken and update.previous_streak >= StreakConstants.REMINDER_THRESHOLD:
                self.notification_service.send_streak_reminder(user_id, update.previous_streak)

            reward = StreakEngine.crossed_tier(update.previous_streak, update.current_streak)
            if reward:
                logger.info(f"User {user_id} reached streak tier '{reward.badge_title}'")
                self.notification_service.send_streak_milestone(user_id, reward, update.current_streak)

        return update
