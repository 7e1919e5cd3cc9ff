import asyncio
from typing import Any, Awaitable, Callable, Hashable


class InFlightRequests:
    """
    Collapses concurrent calls for the same key into one upstream request.

    The first caller starts the request as a task; callers that arrive while it
    is running await the same task. The key is dropped once the task finishes,
    so the next call after completion starts a fresh request. Must only be used
    from a single event loop.
    """

    def __init__(self) -> None:
        self._active: dict[Hashable, asyncio.Task] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._active

    def __len__(self) -> int:
        return len(self._active)

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> Any:
        task = self._active.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._active[key] = task
            task.add_done_callback(lambda finished: self._forget(key, finished))
        # Shielded so one waiter being cancelled doesn't cancel the shared request.
        return await asyncio.shield(task)

    def _forget(self, key: Hashable, task: asyncio.Task) -> None:
        if self._active.get(key) is task:
            del self._active[key]
