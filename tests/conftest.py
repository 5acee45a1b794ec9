"""Shared fixtures: a temporary SQLite database, services and a mocked webhook."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from racepicks.data_models.leaderboard import SeriesType
from racepicks.database.database import Database
from racepicks.main import RacePicksEngine
from racepicks.operations.score_operations import ScoreOperations
from racepicks.services.configuration import ConfigurationService
from racepicks.services.leaderboard import LeaderboardService
from racepicks.services.notifications import NotificationService
from racepicks.services.race_scoring import RaceScoringService


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'racepicks_test.db'}"


@pytest_asyncio.fixture
async def database(database_url):
    db = Database(database_url)
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def webhook():
    """Stands in for discord.Webhook; send() is awaited with embed= and username="""
    return AsyncMock()


@pytest.fixture
def notifier(webhook):
    return NotificationService(username="RacePicks", webhook=webhook)


@pytest_asyncio.fixture
async def services(database, notifier):
    config_service = ConfigurationService(database.session_factory)
    await config_service.load_all()
    score_ops = ScoreOperations(database)
    leaderboards = LeaderboardService(database.session_factory, config_service, score_ops)
    scoring = RaceScoringService(
        database.session_factory, config_service, score_ops,
        leaderboard_service=leaderboards, notification_service=notifier,
    )
    return {
        'config': config_service,
        'score_ops': score_ops,
        'leaderboards': leaderboards,
        'scoring': scoring,
    }


@pytest_asyncio.fixture
async def seeded(database):
    """Two races and three users in two regions, one group"""
    await database.create_race('sx-1', 'Anaheim 1', datetime(2025, 1, 11, 20), SeriesType.SX)
    await database.create_race('mx-1', 'Fox Raceway', datetime(2025, 5, 24, 14), SeriesType.MX)
    await database.create_user('alice', 'alice', 'Alice', region='west')
    await database.create_user('bob', 'bob', 'Bob', region='west')
    await database.create_user('carol', 'carol', 'Carol', region='east')
    await database.add_group_member('crew', 'alice')
    await database.add_group_member('crew', 'carol')
    return database


@pytest_asyncio.fixture
async def engine(database_url, notifier):
    racepicks = RacePicksEngine(database_url=database_url, notification_service=notifier, use_redis=False)
    await racepicks.start()
    yield racepicks
    await racepicks.close()
