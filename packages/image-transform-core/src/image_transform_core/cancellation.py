import asyncio
from typing import Awaitable, TypeVar

from loguru import logger

from .types import ErrorKind, TransformError

T = TypeVar("T")


class CancellationToken:
    """Cancellation signal shared by every suspension point of one transform."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Transform was cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def error(self) -> TransformError:
        return TransformError(
            ErrorKind.CANCELLED, self.reason or "Transform was cancelled"
        )

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise self.error()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, raising CANCELLED as soon as cancelled."""
        self.raise_if_cancelled()
        if delay <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise self.error()

    async def run(self, awaitable: Awaitable[T], cancel_on_abort: bool = True) -> T:
        """Await ``awaitable`` unless the token fires first.

        With ``cancel_on_abort`` the underlying task is cancelled on abort;
        without it the task keeps running for whoever else awaits it.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise self.error()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            if cancel_on_abort:
                task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            if task.cancelled():
                raise TransformError(ErrorKind.CANCELLED, "Transform task was cancelled")
            return task.result()

        if cancel_on_abort:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Task raised while being cancelled: {e!r}")

        raise self.error()
