"""
Notification collaborator.

Sends (title, points awarded) notifications as Discord webhook embeds.
Delivery is fire-and-forget: callers schedule a send and continue, and a
failed delivery is logged but never reaches the scoring path.
"""

import asyncio
import logging
from typing import List, Optional

import aiohttp
import discord

from racepicks.config import Config
from racepicks.data_models.leaderboard import MemberStats
from racepicks.data_models.profile import StreakReward
from racepicks.utils.embeds import (
    build_award_embed, build_results_embed, build_streak_milestone_embed,
    build_streak_reminder_embed
)

logger = logging.getLogger(__name__)


class NotificationService:
    """Posts notification embeds to one webhook."""

    def __init__(self, webhook_url: Optional[str] = None, username: str = None,
                 session: Optional[aiohttp.ClientSession] = None, webhook=None):
        """
        Args:
            webhook_url: Discord webhook URL; notifications are dropped when
                neither a URL nor a webhook is given
            username: Display name used for the webhook posts
            session: aiohttp session to reuse; one is created (and owned)
                on first send otherwise
            webhook: Pre-built webhook object exposing an async send()
        """
        self.webhook_url = webhook_url
        self.username = username or Config.NOTIFY_USERNAME
        self._session = session
        self._owns_session = session is None
        self._webhook = webhook
        # Background task tracking for proper lifecycle management
        self._background_tasks: set = set()

    @property
    def enabled(self) -> bool:
        return bool(self._webhook is not None or self.webhook_url)

    def _get_webhook(self):
        if self._webhook is None:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession()
                self._owns_session = True
            self._webhook = discord.Webhook.from_url(self.webhook_url, session=self._session)
        return self._webhook

    async def deliver(self, embed: discord.Embed) -> bool:
        """Send one embed now; False when delivery failed or is disabled"""
        if not self.enabled:
            logger.debug(f"Notifications disabled, dropping '{embed.title}'")
            return False
        try:
            await self._get_webhook().send(embed=embed, username=self.username)
            return True
        except (discord.HTTPException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to deliver notification '{embed.title}': {e}")
            return False

    def notify(self, embed: discord.Embed) -> Optional[asyncio.Task]:
        """Schedule delivery in the background and return immediately"""
        if not self.enabled:
            logger.debug(f"Notifications disabled, dropping '{embed.title}'")
            return None
        task = asyncio.create_task(self.deliver(embed))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    def send_award(self, user_id: str, title: str, points_awarded: int,
                   description: str = None) -> Optional[asyncio.Task]:
        embed = build_award_embed(title, points_awarded, description)
        embed.set_footer(text=f"User {user_id}")
        return self.notify(embed)

    def send_streak_milestone(self, user_id: str, reward: StreakReward,
                              streak_days: int) -> Optional[asyncio.Task]:
        embed = build_streak_milestone_embed(reward, streak_days)
        embed.set_footer(text=f"User {user_id}")
        return self.notify(embed)

    def send_streak_reminder(self, user_id: str, previous_streak: int) -> Optional[asyncio.Task]:
        embed = build_streak_reminder_embed(previous_streak)
        embed.set_footer(text=f"User {user_id}")
        return self.notify(embed)

    def send_results_available(self, race_id: str,
                               top_members: List[MemberStats]) -> Optional[asyncio.Task]:
        return self.notify(build_results_embed(race_id, top_members))

    async def flush(self):
        """Wait for every scheduled delivery to finish"""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def close(self):
        """Finish pending deliveries and release the HTTP session if we own it"""
        if self._background_tasks:
            logger.info(f"Waiting for {len(self._background_tasks)} notifications to complete...")
            await self.flush()
            self._background_tasks.clear()
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            self._session = None
