"""
Milestone rewards.

Milestones are claimed once per (type, value) and recorded as
AchievementGrant rows, a ledger kept apart from race scores so that claiming
a reward never changes a leaderboard.
"""

import logging
from typing import Iterable, List, Set

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from racepicks.constants import MilestoneConstants
from racepicks.data_models.leaderboard import LeaderboardFilter, MemberStats
from racepicks.data_models.profile import Milestone, MilestoneType
from racepicks.database.models import AchievementGrant
from racepicks.services.base import BaseService
from racepicks.utils.ranking import LeaderboardAggregator
from racepicks.utils.rounding import round_half_up

logger = logging.getLogger(__name__)


class MilestoneService(BaseService):
    """Computes reachable milestones and records claims."""

    def __init__(self, session_factory, score_ops, notification_service=None):
        super().__init__(session_factory)
        self.score_ops = score_ops
        self.notification_service = notification_service

    @staticmethod
    def milestones_for(stats: MemberStats, claimed: Iterable[str] = ()) -> List[Milestone]:
        """
        Every milestone the stats have reached, claimed or not.

        Rewards: predictions value x 10, points 10% of value, accuracy
        value x 5.
        """
        claimed = set(claimed)
        milestones: List[Milestone] = []

        def add(milestone_type: MilestoneType, value: int, reward: int, title: str):
            is_claimed = f"{milestone_type.value}_{value}" in claimed
            milestones.append(Milestone(milestone_type, value, reward, title, is_claimed))

        for value in MilestoneConstants.PREDICTION_MILESTONES:
            if stats.total_predictions >= value:
                add(MilestoneType.PREDICTIONS, value,
                    value * MilestoneConstants.PREDICTION_REWARD_FACTOR, f"{value} Predictions Made")

        for value in MilestoneConstants.POINTS_MILESTONES:
            if stats.points >= value:
                add(MilestoneType.POINTS, value,
                    round_half_up(value * MilestoneConstants.POINTS_REWARD_FACTOR), f"{value} Points Earned")

        for value in MilestoneConstants.ACCURACY_MILESTONES:
            if stats.accuracy >= value:
                add(MilestoneType.ACCURACY, value,
                    value * MilestoneConstants.ACCURACY_REWARD_FACTOR, f"{value}% Accuracy Achieved")

        return milestones

    async def _claimed_keys(self, session, user_id: str) -> Set[str]:
        result = await session.execute(
            select(AchievementGrant.grant_type, AchievementGrant.grant_value)
            .where(AchievementGrant.user_id == user_id)
        )
        return {f"{grant_type}_{value}" for grant_type, value in result.all()}

    async def eligible_milestones(self, user_id: str) -> List[Milestone]:
        """Milestones reached over the user's all-time scored predictions"""
        async with self.get_session() as session:
            history = await self.score_ops.load_user_history(user_id, session=session)
            claimed = await self._claimed_keys(session, user_id)

        stats = LeaderboardAggregator.member_stats(history, LeaderboardFilter(), (None, None))
        return self.milestones_for(stats, claimed)

    async def claim(self, user_id: str, milestone: Milestone) -> bool:
        """
        Record a milestone claim and notify the user.

        Returns:
            False when the milestone is not reached or already claimed
        """
        reached = {m.key: m for m in await self.eligible_milestones(user_id)}
        current = reached.get(milestone.key)
        if current is None:
            logger.warning(f"User {user_id} tried to claim unreached milestone {milestone.key}")
            return False
        if current.is_claimed:
            logger.debug(f"Milestone {milestone.key} already claimed by user {user_id}")
            return False

        try:
            async with self.get_session() as session:
                session.add(AchievementGrant(
                    user_id=user_id,
                    grant_type=current.milestone_type.value,
                    grant_value=current.milestone_value,
                    title=current.reward_title,
                    points_awarded=current.reward_points,
                ))
        except IntegrityError:
            # A concurrent claim won the unique constraint
            logger.info(f"Milestone {milestone.key} was claimed concurrently by user {user_id}")
            return False

        logger.info(f"User {user_id} claimed milestone '{current.reward_title}' (+{current.reward_points})")
        if self.notification_service:
            self.notification_service.send_award(user_id, current.reward_title, current.reward_points)
        return True

    async def total_awarded(self, user_id: str) -> int:
        """Sum of every achievement grant for a user"""
        async with self.get_session() as session:
            total = await session.scalar(
                select(func.coalesce(func.sum(AchievementGrant.points_awarded), 0))
                .where(AchievementGrant.user_id == user_id)
            )
        return int(total or 0)
