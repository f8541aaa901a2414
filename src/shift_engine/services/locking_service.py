"""Per-occurrence locking for capacity-mutating units of work."""

from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.database import try_advisory_xact_lock
from shift_engine.services.errors import ConcurrencyConflictError

logger = logging.getLogger(__name__)


def occurrence_lock_key(shift_id: object, occurrence_date: object) -> str:
    """Lock key for one (shift, date) pair."""
    iso = occurrence_date.isoformat() if hasattr(occurrence_date, "isoformat") else str(occurrence_date)
    return f"{shift_id}:{iso}"


class LockingService:
    """Serializes work on a shift occurrence.

    Two layers:
    1. An in-process asyncio.Lock per occurrence key, so coroutines in one
       worker process queue instead of racing.
    2. A transaction-scoped PostgreSQL advisory lock, so separate processes
       do not interleave. On other backends this layer is a no-op and the
       conditional counter updates remain the final guard.

    Waiting is bounded; a lock that cannot be taken in time surfaces as a
    ConcurrencyConflictError, which callers retry.
    """

    def __init__(self, timeout_seconds: float = 5.0):
        self.timeout_seconds = timeout_seconds
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, key: str) -> bool:
        """Whether a unit of work currently holds the key in this process."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the in-process lock for ``key``."""
        lock = self._lock_for(key)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for occurrence lock %s", key)
            raise ConcurrencyConflictError(f"Timed out waiting for lock on {key}", key=key)
        try:
            yield
        finally:
            lock.release()

    async def lock_in_transaction(self, session: AsyncSession, key: str) -> None:
        """Take the cross-process advisory lock inside the current transaction."""
        acquired = await try_advisory_xact_lock(session, key)
        if not acquired:
            raise ConcurrencyConflictError(f"Occurrence {key} is locked by another transaction", key=key)
