"""
Leaderboard service.

Loads the candidates of a scope through ScoreOperations, ranks them with
LeaderboardAggregator and caches the ranked boards with a TTL. Scoring
invalidates the cache whenever a race batch is published.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from racepicks.config import Config
from racepicks.constants import CacheConstants, PaginationConstants
from racepicks.data_models.leaderboard import (
    Leaderboard, LeaderboardFilter, LeaderboardPage, LeaderboardScope, MemberStats,
    SeriesFilter, SeriesType, scope_key
)
from racepicks.services.base import BaseService
from racepicks.utils.ranking import LeaderboardAggregator

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, str, Optional[str]]


class LeaderboardService(BaseService):
    """Service for leaderboard queries and ranking with caching."""

    def __init__(self, session_factory, config_service, score_ops):
        super().__init__(session_factory)
        self.config_service = config_service
        self.score_ops = score_ops
        # TTL cache of fully ranked boards; pages are sliced from them
        self._cache: Dict[CacheKey, Leaderboard] = {}
        self._cache_timestamps: Dict[CacheKey, float] = {}
        self._cache_max_size = CacheConstants.DEFAULT_MAX_CACHE_SIZE
        self._cache_lock = asyncio.Lock()
        # Bumped by every invalidation; a board built from rows read before
        # an invalidation is never stored
        self._generation = 0

    @property
    def cache_ttl(self) -> int:
        return self.config_service.get_int('leaderboard.cache_ttl', Config.LEADERBOARD_CACHE_TTL)

    @staticmethod
    def _cache_key(scope: LeaderboardScope, filters: LeaderboardFilter,
                   now: Optional[datetime]) -> CacheKey:
        # An explicit reference time is part of the key; None means "now"
        return (
            scope_key(scope),
            filters.time_period.value,
            filters.series.value,
            now.isoformat() if now else None,
        )

    async def _get_cached(self, key: CacheKey) -> Optional[Leaderboard]:
        async with self._cache_lock:
            timestamp = self._cache_timestamps.get(key)
            if timestamp is None or time.time() - timestamp >= self.cache_ttl:
                return None
            return self._cache.get(key)

    async def _store(self, key: CacheKey, board: Leaderboard, generation: int):
        async with self._cache_lock:
            if generation != self._generation:
                logger.debug(f"Not caching leaderboard {key}, scores changed while it was built")
                return

            current_time = time.time()
            ttl = self.cache_ttl
            expired = [k for k, ts in self._cache_timestamps.items() if current_time - ts >= ttl]
            for k in expired:
                self._cache.pop(k, None)
                self._cache_timestamps.pop(k, None)

            self._cache[key] = board
            self._cache_timestamps[key] = current_time

            # Enforce size limit by removing oldest entries
            if len(self._cache) > self._cache_max_size:
                oldest = sorted(self._cache_timestamps.items(), key=lambda item: item[1])
                for k, _ in oldest[:len(self._cache) - self._cache_max_size]:
                    self._cache.pop(k, None)
                    self._cache_timestamps.pop(k, None)

    async def get_leaderboard(self, scope: LeaderboardScope,
                              filters: Optional[LeaderboardFilter] = None,
                              now: Optional[datetime] = None) -> Leaderboard:
        """Fully ranked leaderboard for a scope, served from cache when fresh"""
        filters = filters or LeaderboardFilter()
        key = self._cache_key(scope, filters, now)

        cached = await self._get_cached(key)
        if cached is not None:
            return cached

        generation = self._generation
        async with self.get_session() as session:
            candidates = await self.score_ops.load_candidates(scope, session=session)

        board = LeaderboardAggregator.aggregate(scope, candidates, filters, now)
        await self._store(key, board, generation)
        logger.debug(f"Built {scope_key(scope)} leaderboard with {len(board.entries)} ranked members")
        return board

    async def get_page(self, scope: LeaderboardScope, filters: Optional[LeaderboardFilter] = None,
                       page: int = 1, page_size: int = None,
                       now: Optional[datetime] = None) -> LeaderboardPage:
        """
        Get one page of a leaderboard.

        Args:
            scope: Leaderboard scope
            filters: Time period and series filter
            page: 1-based page number
            page_size: Rows per page, at most 50

        Raises:
            ValueError: On an invalid page or page size
        """
        if page_size is None:
            page_size = Config.LEADERBOARD_PAGE_SIZE or PaginationConstants.DEFAULT_PAGE_SIZE
        if not isinstance(page, int) or page < 1:
            raise ValueError("page must be a positive integer")
        if not isinstance(page_size, int) or page_size < 1 or page_size > PaginationConstants.MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {PaginationConstants.MAX_PAGE_SIZE}")

        board = await self.get_leaderboard(scope, filters, now)
        total = len(board.entries)
        offset = (page - 1) * page_size

        return LeaderboardPage(
            entries=board.entries[offset:offset + page_size],
            current_page=page,
            total_pages=(total + page_size - 1) // page_size if total > 0 else 1,
            total_members=total,
            scope=board.scope,
            filters=board.filters,
            status=board.status,
        )

    async def get_user_rank(self, user_id: str, scope: LeaderboardScope,
                            filters: Optional[LeaderboardFilter] = None,
                            now: Optional[datetime] = None) -> Optional[MemberStats]:
        """A user's row; rank 0 when they have no predictions in the filter"""
        board = await self.get_leaderboard(scope, filters, now)
        return board.lookup(user_id)

    async def compare_users(self, user_a: str, user_b: str, scope: LeaderboardScope,
                            filters: Optional[LeaderboardFilter] = None,
                            now: Optional[datetime] = None) -> Dict[str, Any]:
        """Head-to-head view of two users on the same board"""
        board = await self.get_leaderboard(scope, filters, now)
        stats_a = board.lookup(user_a)
        stats_b = board.lookup(user_b)

        leader = None
        point_gap = 0
        if stats_a and stats_b:
            order = LeaderboardAggregator.compare(stats_a, stats_b)
            if order > 0:
                leader = user_a
            elif order < 0:
                leader = user_b
            point_gap = abs(stats_a.points - stats_b.points)

        return {
            'user_a': stats_a,
            'user_b': stats_b,
            'leader': leader,
            'point_gap': point_gap,
        }

    async def invalidate_race(self, race_id: str, series: Optional[SeriesType] = None):
        """
        Drop cached boards a race's scores can appear in.

        Without a series every board is dropped; with one, boards filtered to
        a different series are kept.
        """
        async with self._cache_lock:
            self._generation += 1
            if series is None:
                keys = list(self._cache)
            else:
                keys = [
                    key for key in self._cache
                    if SeriesFilter(key[2]).matches(series)
                ]
            for key in keys:
                self._cache.pop(key, None)
                self._cache_timestamps.pop(key, None)
        logger.info(f"Invalidated {len(keys)} cached leaderboards after race {race_id}")

    async def invalidate_all(self):
        """Clears the entire leaderboard cache."""
        async with self._cache_lock:
            self._generation += 1
            self._cache.clear()
            self._cache_timestamps.clear()
        logger.info("Leaderboard cache cleared.")
