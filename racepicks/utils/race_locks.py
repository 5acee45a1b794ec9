import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class RaceLocks:
    """
    One asyncio.Lock per race id.

    A lock exists only while some task holds it or waits for it, so the
    registry does not grow with every race ever seen.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, race_id: str):
        lock = self._locks.setdefault(race_id, asyncio.Lock())
        self._users[race_id] = self._users.get(race_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[race_id] -= 1
            if not self._users[race_id]:
                del self._users[race_id]
                del self._locks[race_id]

    def __contains__(self, race_id: str) -> bool:
        return race_id in self._locks

    def __len__(self) -> int:
        return len(self._locks)
