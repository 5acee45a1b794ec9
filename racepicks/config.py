import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Engine configuration settings"""

    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///racepicks.db')

    # Runtime settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'

    # Logging; an empty LOG_DIR disables the daily log file
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_DIR = os.getenv('LOG_DIR', 'logs')

    # Distributed locking (optional, in-process locks are always used)
    REDIS_URL = os.getenv('REDIS_URL', '')
    SCORE_LOCK_TIMEOUT = int(os.getenv('SCORE_LOCK_TIMEOUT', 30))  # seconds

    # Notification collaborator
    NOTIFY_WEBHOOK_URL = os.getenv('NOTIFY_WEBHOOK_URL', '')
    NOTIFY_USERNAME = os.getenv('NOTIFY_USERNAME', 'RacePicks')

    # Leaderboard settings
    LEADERBOARD_CACHE_TTL = int(os.getenv('LEADERBOARD_CACHE_TTL', 180))  # 3 minutes
    LEADERBOARD_PAGE_SIZE = int(os.getenv('LEADERBOARD_PAGE_SIZE', 10))
    LIVE_LEADERBOARD_LIMIT = int(os.getenv('LIVE_LEADERBOARD_LIMIT', 10))

    @classmethod
    def get_async_database_url(cls) -> str:
        """Get the database URL with an async driver"""
        database_url = cls.DATABASE_URL
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        return database_url

    @classmethod
    def validate(cls):
        """Validate that configuration values are usable"""
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL is required")
        if cls.LOG_LEVEL not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f"LOG_LEVEL must be a standard logging level, got {cls.LOG_LEVEL}")
        if cls.SCORE_LOCK_TIMEOUT <= 0:
            raise ValueError("SCORE_LOCK_TIMEOUT must be a positive number of seconds")
        if cls.LEADERBOARD_CACHE_TTL < 0:
            raise ValueError("LEADERBOARD_CACHE_TTL cannot be negative")
        if not 1 <= cls.LEADERBOARD_PAGE_SIZE <= 50:
            raise ValueError("LEADERBOARD_PAGE_SIZE must be between 1 and 50")
        if cls.LIVE_LEADERBOARD_LIMIT < 1:
            raise ValueError("LIVE_LEADERBOARD_LIMIT must be at least 1")
        if cls.NOTIFY_WEBHOOK_URL and not cls.NOTIFY_WEBHOOK_URL.startswith('https://'):
            raise ValueError("NOTIFY_WEBHOOK_URL must be an https:// URL")
