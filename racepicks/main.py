import asyncio
import logging
import traceback
from typing import Iterable, List, Optional

from racepicks.config import Config
from racepicks.data_models.leaderboard import LiveUserScore
from racepicks.data_models.prediction import Prediction, ResultPosition
from racepicks.data_models.score import RecomputeSummary
from racepicks.database.database import Database
from racepicks.database.models import PredictionRecord
from racepicks.operations.score_operations import ScoreOperations
from racepicks.services.configuration import ConfigurationService
from racepicks.services.leaderboard import LeaderboardService
from racepicks.services.live_race import LiveRaceService
from racepicks.services.milestones import MilestoneService
from racepicks.services.notifications import NotificationService
from racepicks.services.race_scoring import RaceScoringService
from racepicks.services.streaks import StreakService
from racepicks.utils.logger import setup_logger
from racepicks.utils.redis_utils import RedisUtils

class RacePicksEngine:
    """Wires the database, services and collaborators together"""

    def __init__(self, database_url: Optional[str] = None, webhook_url: Optional[str] = None,
                 notification_service: Optional[NotificationService] = None,
                 redis_client=None, use_redis: bool = True):
        self.logger = setup_logger(__name__)
        self.database_url = database_url
        self.webhook_url = webhook_url if webhook_url is not None else Config.NOTIFY_WEBHOOK_URL
        self.use_redis = use_redis

        self.db: Optional[Database] = None
        self.redis_client = redis_client
        self._owns_redis = False
        self.notifications = notification_service
        self.config_service: Optional[ConfigurationService] = None
        self.score_ops: Optional[ScoreOperations] = None
        self.leaderboards: Optional[LeaderboardService] = None
        self.scoring: Optional[RaceScoringService] = None
        self.live: Optional[LiveRaceService] = None
        self.streaks: Optional[StreakService] = None
        self.milestones: Optional[MilestoneService] = None

    async def start(self):
        """Initialize the database and every service"""
        self.logger.info("Starting racepicks engine...")

        self.db = Database(self.database_url)
        await self.db.initialize()

        self.config_service = ConfigurationService(self.db.session_factory)
        await self.config_service.load_all()

        if self.redis_client is None and self.use_redis:
            self.redis_client = await RedisUtils.create_redis_client()
            self._owns_redis = self.redis_client is not None

        if self.notifications is None:
            self.notifications = NotificationService(self.webhook_url)

        session_factory = self.db.session_factory
        self.score_ops = ScoreOperations(self.db)
        self.leaderboards = LeaderboardService(session_factory, self.config_service, self.score_ops)
        self.scoring = RaceScoringService(
            session_factory,
            self.config_service,
            self.score_ops,
            leaderboard_service=self.leaderboards,
            notification_service=self.notifications,
            redis_client=self.redis_client,
        )
        self.live = LiveRaceService(session_factory, self.score_ops)
        self.streaks = StreakService(session_factory, self.notifications)
        self.milestones = MilestoneService(session_factory, self.score_ops, self.notifications)

        self.logger.info("racepicks engine ready")

    async def submit_prediction(self, prediction: Prediction) -> PredictionRecord:
        """Store a validated prediction and count it towards the user's day streak"""
        record = await self.scoring.submit_prediction(prediction)
        await self.streaks.record_activity(prediction.user_id)
        return record

    async def handle_result_event(self, race_id: str) -> RecomputeSummary:
        """Official results were entered or corrected for a race"""
        summary = await self.scoring.recompute_race(race_id)
        self.live.end_race(race_id)
        return summary

    async def handle_live_event(self, race_id: str, positions: Iterable[ResultPosition],
                                sequence: Optional[int] = None) -> List[LiveUserScore]:
        """A live timing update with every position known so far"""
        return await self.live.apply_event(race_id, positions, sequence)

    async def close(self):
        """Cleanup when the engine is shutting down"""
        self.logger.info("Shutting down racepicks engine...")

        if self.notifications:
            await self.notifications.close()

        if self._owns_redis and self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None

        if self.db:
            await self.db.close()

async def main():
    """Create the schema and check that every collaborator is reachable"""
    Config.validate()

    engine = RacePicksEngine()

    try:
        await engine.start()
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        traceback.print_exc()
    finally:
        await engine.close()

if __name__ == "__main__":
    asyncio.run(main())
