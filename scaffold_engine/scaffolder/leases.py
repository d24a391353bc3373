"""Per-target-path leases.

At most one scaffold operation may run against a given target root at a
time.  Inside a process this is an ``asyncio.Lock`` per resolved path;
across processes an advisory ``filelock.FileLock`` keyed by a hash of the
path is taken as well.  Lock files live in a dedicated directory so they
never appear in generated trees.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from filelock import FileLock, Timeout

from scaffold_engine.errors import LeaseTimeout

logger = logging.getLogger(__name__)


class TargetLeaseRegistry:
    """Hands out exclusive leases on target roots."""

    def __init__(self, lock_dir: Path, timeout: float = 30.0) -> None:
        self.lock_dir = Path(lock_dir)
        self.timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}
        self._active: set[str] = set()

    @staticmethod
    def key_for(target: Path) -> str:
        return str(Path(target).expanduser().resolve())

    def lock_file_for(self, target: Path) -> Path:
        digest = hashlib.sha256(self.key_for(target).encode("utf-8")).hexdigest()[:32]
        return self.lock_dir / f"{digest}.lock"

    def is_active(self, target: Path) -> bool:
        return self.key_for(target) in self._active

    @property
    def active_targets(self) -> list[str]:
        return sorted(self._active)

    @property
    def tracked_targets(self) -> int:
        """Number of targets with a live in-process lock."""
        return len(self._locks)

    @asynccontextmanager
    async def lease(self, target: Path, timeout: float | None = None) -> AsyncIterator[str]:
        """Hold *target* exclusively for the duration of the ``async with`` block.

        Raises:
            LeaseTimeout: The target stayed busy for longer than *timeout*.
        """
        key = self.key_for(target)
        wait = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + wait
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1

        try:
            await asyncio.wait_for(lock.acquire(), timeout=wait)
        except asyncio.TimeoutError:
            self._forget(key)
            raise LeaseTimeout(
                f"Target {key} is busy with another scaffold operation", target=key
            ) from None
        except BaseException:
            self._forget(key)
            raise

        file_lock: FileLock | None = None
        try:
            file_lock = await self._acquire_file_lock(target, max(0.0, deadline - time.monotonic()))
            self._active.add(key)
            logger.debug("Leased %s", key)
            yield key
        finally:
            self._active.discard(key)
            if file_lock is not None:
                await asyncio.to_thread(file_lock.release)
            lock.release()
            self._forget(key)
            logger.debug("Released %s", key)

    def _forget(self, key: str) -> None:
        """Drop the per-target lock once nobody holds or waits for it."""
        remaining = self._users.get(key, 1) - 1
        if remaining > 0:
            self._users[key] = remaining
            return
        self._users.pop(key, None)
        self._locks.pop(key, None)

    async def _acquire_file_lock(self, target: Path, timeout: float) -> FileLock:
        await asyncio.to_thread(self.lock_dir.mkdir, parents=True, exist_ok=True)
        file_lock = FileLock(str(self.lock_file_for(target)), thread_local=False)
        try:
            await asyncio.to_thread(file_lock.acquire, timeout=timeout)
        except Timeout:
            raise LeaseTimeout(
                f"Target {self.key_for(target)} is locked by another process",
                target=self.key_for(target),
                lock_file=str(self.lock_file_for(target)),
            ) from None
        return file_lock
