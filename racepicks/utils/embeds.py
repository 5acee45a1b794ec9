"""
Embed builders for notifications.

Every notification carries a title and the points awarded so that the
delivery side can render it without knowing the scoring rules.
"""

from typing import List, Optional

import discord

from racepicks.constants import UIConstants
from racepicks.data_models.leaderboard import MemberStats
from racepicks.data_models.profile import StreakReward


def build_award_embed(title: str, points_awarded: int, description: Optional[str] = None,
                      color: int = UIConstants.ACHIEVEMENT_COLOR) -> discord.Embed:
    """Generic (title, points) notification"""
    embed = discord.Embed(
        title=f"{UIConstants.TROPHY_EMOJI} {title}",
        description=description,
        color=color
    )
    embed.add_field(name="Points Awarded", value=f"+{points_awarded:,} pts", inline=True)
    return embed


def build_streak_milestone_embed(reward: StreakReward, streak_days: int) -> discord.Embed:
    embed = discord.Embed(
        title=f"{UIConstants.FIRE_EMOJI} {reward.badge_title}!",
        description=f"{streak_days}-day prediction streak",
        color=UIConstants.STREAK_COLOR
    )
    embed.add_field(name="Streak Multiplier", value=f"{reward.bonus_multiplier:.2f}x", inline=True)
    return embed


def build_streak_reminder_embed(previous_streak: int) -> discord.Embed:
    return discord.Embed(
        title=f"{UIConstants.FIRE_EMOJI} Your {previous_streak}-day streak ended",
        description="Make a prediction today to start a new one!",
        color=UIConstants.STREAK_COLOR
    )


def build_results_embed(race_id: str, top_members: List[MemberStats]) -> discord.Embed:
    """Race results are in, with the top of the race standings"""
    embed = discord.Embed(
        title=f"{UIConstants.CHART_EMOJI} Results are in for race {race_id}!",
        description="See how your predictions stacked up!",
        color=UIConstants.RESULTS_COLOR
    )
    if top_members:
        standings = "\n".join(
            f"{member.rank}. {member.display_name or member.user_id}: {member.points:,} pts"
            for member in top_members
        )
        embed.add_field(name="Top Predictors", value=standings, inline=False)
    return embed
