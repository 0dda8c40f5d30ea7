# Overview: Keyed mutual exclusion for read-modify-write cycles on shared documents.

from __future__ import annotations

import asyncio
import logging
import os
import threading
from contextlib import asynccontextmanager
from urllib.parse import quote

from filelock import FileLock, Timeout

from ..errors import LockTimeoutError

logger = logging.getLogger(__name__)


def stock_lock_name(product_id: str, warehouse_id: str) -> str:
    """Lock guarding the balance check, costing and lot updates for one pair."""
    return f"stock:{product_id}:{warehouse_id}"


class LockManager:
    """
    Mutual exclusion keyed by resource name ("balances", "stock:<p>:<w>", ...).

    Acquisition is non-blocking per attempt and retried with exponential
    backoff: attempt n sleeps min_timeout * factor**n. After `retries`
    failed retries the caller gets LockTimeoutError (retryable), never a hang.

    Lock order is fixed: "stock:*" before "balances" before "payables".
    Catalog locks ("products", "suppliers") are never held together with
    any other lock.
    """

    def __init__(self, *, retries: int = 5, min_timeout: float = 0.02, factor: float = 2):
        self.retries = retries
        self.min_timeout = min_timeout
        self.factor = factor
        self.timeouts = 0

    def _try_acquire(self, name: str) -> bool:
        raise NotImplementedError

    def _release(self, name: str) -> None:
        raise NotImplementedError

    async def acquire(self, name: str) -> None:
        for attempt in range(self.retries + 1):
            if self._try_acquire(name):
                return
            if attempt >= self.retries:
                break
            await asyncio.sleep(self.min_timeout * (self.factor ** attempt))

        self.timeouts += 1
        logger.warning("Lock %r not acquired after %d attempts", name, self.retries + 1)
        raise LockTimeoutError(
            f"Resource {name} is busy, retry later",
            resource=name,
            attempts=self.retries + 1,
        )

    @asynccontextmanager
    async def hold(self, name: str):
        await self.acquire(name)
        try:
            yield
        finally:
            self._release(name)


class MemoryLockManager(LockManager):
    """Process-local locks for the in-memory store."""

    def __init__(self, **options):
        super().__init__(**options)
        self._held: set[str] = set()
        self._mutex = threading.Lock()

    def _try_acquire(self, name: str) -> bool:
        with self._mutex:
            if name in self._held:
                return False
            self._held.add(name)
            return True

    def _release(self, name: str) -> None:
        with self._mutex:
            self._held.discard(name)

    def is_held(self, name: str) -> bool:
        with self._mutex:
            return name in self._held


class FileLockManager(LockManager):
    """
    OS-level advisory locks through filelock, one lock file per name.

    Each attempt is a non-blocking FileLock.acquire(); the backoff loop in
    LockManager does the waiting. The kernel drops a lock when its holder's
    process exits, so a crashed holder never leaves a stuck lock and a slow
    holder is never mistaken for a dead one.
    """

    def __init__(self, lock_dir: str, **options):
        super().__init__(**options)
        self.lock_dir = lock_dir
        os.makedirs(lock_dir, exist_ok=True)
        self._held: dict[str, FileLock] = {}
        self._mutex = threading.Lock()

    def _path(self, name: str) -> str:
        return os.path.join(self.lock_dir, quote(name, safe="") + ".lock")

    def _try_acquire(self, name: str) -> bool:
        # one FileLock per attempt: separate descriptors contend even inside
        # a single process, which is what keeps coroutines apart
        lock = FileLock(self._path(name), thread_local=False)
        try:
            lock.acquire(blocking=False)
        except Timeout:
            return False
        with self._mutex:
            self._held[name] = lock
        return True

    def _release(self, name: str) -> None:
        with self._mutex:
            lock = self._held.pop(name, None)
        if lock is None:
            logger.warning("Lock %r was not held", name)
            return
        lock.release()

    def is_held(self, name: str) -> bool:
        """Whether this manager currently holds `name`."""
        with self._mutex:
            return name in self._held
