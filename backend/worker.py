import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable

import config

logger = logging.getLogger(__name__)


class RankWorker:
    """
    Runs rank resolutions on a private asyncio event loop in a daemon thread.

    The display thread hands work over with submit() and never waits on it.
    At most max_concurrent submitted jobs run at once; the rest queue on the
    semaphore inside the loop.
    """

    def __init__(self, max_concurrent: int = config.MAX_CONCURRENT_LOOKUPS, name: str = "rank-worker"):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._semaphore: asyncio.Semaphore | None = None
        self._ready = threading.Event()
        self._futures: set[concurrent.futures.Future] = set()
        self._futures_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._loop is not None

    def start(self) -> "RankWorker":
        if self.is_running:
            return self
        self._ready.clear()
        self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
        self._thread.start()
        self._ready.wait()
        logger.info(f"{self.name} started (max {self.max_concurrent} concurrent lookups).")
        return self

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            self._loop = None

    async def _bounded(self, coro_fn: Callable[..., Awaitable[Any]], args: tuple) -> Any:
        async with self._semaphore:
            return await coro_fn(*args)

    def submit(self, coro_fn: Callable[..., Awaitable[Any]], *args) -> concurrent.futures.Future:
        """Schedules coro_fn(*args) on the worker loop and returns immediately."""
        if not self.is_running:
            raise RuntimeError(f"{self.name} is not running.")
        future = asyncio.run_coroutine_threadsafe(self._bounded(coro_fn, args), self._loop)
        with self._futures_lock:
            self._futures.add(future)
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future: concurrent.futures.Future) -> None:
        with self._futures_lock:
            self._futures.discard(future)

    def pending_jobs(self) -> int:
        with self._futures_lock:
            return len(self._futures)

    def run(self, coro: Awaitable[Any], timeout: float | None = None) -> Any:
        """Runs a coroutine on the worker loop and blocks for its result. Not for the display thread."""
        if not self.is_running:
            raise RuntimeError(f"{self.name} is not running.")
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result(timeout)

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Blocks until every submitted job has finished. Returns False on timeout."""
        with self._futures_lock:
            snapshot = list(self._futures)
        if not snapshot:
            return True
        _, not_done = concurrent.futures.wait(snapshot, timeout=timeout)
        if not_done:
            return False
        # Jobs finishing may have been submitted while we waited.
        return self.wait_until_idle(timeout)

    def stop(self, timeout: float = 5.0) -> None:
        if not self.is_running:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self._thread = None
        logger.info(f"{self.name} stopped.")
