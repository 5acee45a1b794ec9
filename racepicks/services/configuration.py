"""
Runtime configuration overrides stored in the database.

Environment settings in Config are the defaults; keys stored here (for
example 'leaderboard.cache_ttl' or 'scoring.lock_timeout') override them
without a restart. Every change is written to the audit log.
"""

import json
import logging
from typing import Any, Dict

from sqlalchemy import select

from racepicks.database.models import AuditLog, Configuration
from racepicks.services.base import BaseService

logger = logging.getLogger(__name__)


class ConfigurationService(BaseService):
    """Key/value JSON settings with an in-memory cache and audit trail."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self._cache: Dict[str, Any] = {}

    async def load_all(self):
        """Reload every stored key, skipping rows whose JSON is unreadable"""
        new_cache = {}
        async with self.get_session() as session:
            result = await session.execute(select(Configuration))
            for row in result.scalars().all():
                try:
                    new_cache[row.key] = json.loads(row.value)
                except json.JSONDecodeError:
                    logger.warning(f"Invalid JSON for config key '{row.key}', skipping")

        self._cache = new_cache
        logger.info(f"Loaded {len(self._cache)} configuration overrides")

    def get(self, key: str, default: Any = None) -> Any:
        return self._cache.get(key, default)

    def get_int(self, key: str, default: int) -> int:
        """Integer override, falling back to default when missing or malformed"""
        value = self._cache.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.warning(f"Config key '{key}' is not numeric ({value!r}), using {default}")
            return default
        return int(value)

    async def set(self, key: str, value: Any, user_id: str):
        """
        Persist a value and record the change.

        Args:
            key: Dotted configuration key
            value: Any JSON-encodable value
            user_id: Who made the change, for the audit trail
        """
        async with self.get_session() as session:
            result = await session.execute(
                select(Configuration).where(Configuration.key == key)
            )
            row = result.scalar_one_or_none()

            old_value = None
            if row:
                try:
                    old_value = json.loads(row.value)
                except json.JSONDecodeError:
                    old_value = {"error": "invalid JSON", "raw": row.value}
                row.value = json.dumps(value)
            else:
                session.add(Configuration(key=key, value=json.dumps(value)))

            session.add(AuditLog(
                user_id=str(user_id),
                action='config_set',
                details=json.dumps({'key': key, 'old_value': old_value, 'new_value': value})
            ))

        # Reload after the write so the cache matches what was committed
        await self.load_all()

    def list_all(self) -> Dict[str, Any]:
        return self._cache.copy()

    def get_by_category(self, category: str) -> Dict[str, Any]:
        """All values under '<category>.' with the prefix stripped"""
        prefix = f"{category}."
        return {
            key[len(prefix):]: value
            for key, value in self._cache.items()
            if key.startswith(prefix)
        }
