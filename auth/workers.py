"""
auth/workers.py -- Dedicated thread pool for CPU-bound password hashing.

Argon2 takes tens to hundreds of milliseconds per call by design. Running it
on the event loop would stall every in-flight request, and running it on
Starlette's shared threadpool would let a burst of logins starve ordinary
store calls. HashingPool owns its own bounded ThreadPoolExecutor so hashing
concurrency is sized independently (HASH_WORKERS).

argon2-cffi and bcrypt release the GIL while hashing, so threads give real
parallelism here.

Cancellation: if the awaiting coroutine is cancelled, the submitted unit keeps
running on its worker thread and its result is discarded. Hashing units are
pure functions of their arguments, so nothing is left half-written.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

logger = logging.getLogger("bookapp.auth")

T = TypeVar("T")


class HashingPool:
    """Bounded worker pool that runs blocking callables for async callers.

    Usage:
        pool = HashingPool(max_workers=2)
        digest = await pool.run(expensive_fn, "arg")
        pool.shutdown()
    """

    def __init__(self, max_workers: int = 2) -> None:
        if max_workers < 1:
            raise ValueError("HashingPool needs at least one worker")
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pwhash")
        self._closed = False

    async def run(self, fn: Callable[..., T], *args: Any) -> T:
        """Run fn(*args) on a pool thread and await its result."""
        if self._closed:
            raise RuntimeError("HashingPool is shut down")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work. Queued units that have not started are dropped."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.info("Hashing pool shut down (%d workers)", self.max_workers)
