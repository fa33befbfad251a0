import asyncio
from typing import Any, Awaitable, Callable


def _retrieve_exception(task: asyncio.Task) -> None:
    # Marks the outcome as retrieved even when every waiter has gone.
    if not task.cancelled():
        task.exception()


class InFlightRegistry:
    """Single-flight registry: at most one running task per request key.

    ``get_or_start`` does its lookup and insert without yielding to the event
    loop, so two callers on the same loop can never both start work for one
    key. Not safe to share across threads.
    """

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    def get_or_start(
        self, key: str, factory: Callable[[], Awaitable[Any]]
    ) -> tuple[asyncio.Task, bool]:
        """Return the pending task for ``key`` and whether this call started it."""
        existing = self._tasks.get(key)
        if existing is not None:
            return existing, False

        task: asyncio.Task | None = None

        async def run() -> Any:
            try:
                return await factory()
            finally:
                if self._tasks.get(key) is task:
                    del self._tasks[key]

        task = asyncio.ensure_future(run())
        task.add_done_callback(_retrieve_exception)
        self._tasks[key] = task
        return task, True

    def is_pending(self, key: str) -> bool:
        return key in self._tasks

    def cancel_all(self) -> int:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        return len(tasks)

    def __len__(self) -> int:
        return len(self._tasks)
