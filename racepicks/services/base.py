"""
Base service class for the racepicks engine.

Provides async database session management and retry logic for all
service layer operations.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from racepicks.utils.exceptions import TransactionError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class BaseService:
    """Base class for all services with async database session management."""

    def __init__(self, session_factory):
        """
        Initialize base service with session factory.

        Args:
            session_factory: Async session factory from the Database class
        """
        self.session_factory = session_factory

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for async database operations."""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def execute_with_retry(self, func: Callable[[], Awaitable[T]], max_retries: int = 3) -> T:
        """
        Execute a coroutine function, retrying transient database errors.

        Only OperationalError (locked database, dropped connection) is
        retried; anything else propagates immediately.

        Raises:
            TransactionError: When every attempt failed
        """
        name = getattr(func, '__name__', repr(func))
        for attempt in range(max_retries):
            try:
                return await func()
            except OperationalError as e:
                if attempt == max_retries - 1:
                    logger.error(f"{name} failed after {max_retries} attempts: {e}")
                    raise TransactionError(name, max_retries) from e
                logger.warning(f"Retry attempt {attempt + 1} for {name}: {e}")
                await asyncio.sleep(0.1 * (2 ** attempt))  # Exponential backoff
