"""Per-user turn serialisation.

Conversations are looked up by user, so turns are serialised per user: a
second message waits for the first one to commit, up to a timeout, and is
rejected after that. Locks are dropped as soon as nobody holds or waits on
them.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional
import asyncio
import logging

from triage_assistant.config.settings import settings
from triage_assistant.engine.errors import ConversationBusy

logger = logging.getLogger(__name__)


class TurnLockRegistry:
    """Registry of asyncio locks keyed by user id."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = settings.turn_lock_timeout if timeout is None else timeout
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_held(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the turn lock for ``key``.

        Raises:
            ConversationBusy: the lock was not released within the timeout
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                logger.warning(f"Turn for {key} still in flight after {self.timeout}s")
                raise ConversationBusy(key) from e

            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]
