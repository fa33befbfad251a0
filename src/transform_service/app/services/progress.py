import asyncio

from .domain import TransformProgress

_CLOSED = object()


class ProgressSubscription:
    """Async iterator over the progress events of one transform."""

    def __init__(self, channel: "ProgressChannel"):
        self._channel = channel
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def _deliver(self, item) -> None:
        self._queue.put_nowait(item)

    def __aiter__(self) -> "ProgressSubscription":
        return self

    async def __anext__(self) -> TransformProgress:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            raise StopAsyncIteration
        return item

    def unsubscribe(self) -> None:
        self._channel._discard(self)
        if not self._closed:
            self._deliver(_CLOSED)

    async def __aenter__(self) -> "ProgressSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class ProgressChannel:
    """Fans progress events out to every subscriber.

    A subscription ends after the terminal event of the transform that was
    running, or of the next one to start, when it subscribed.
    """

    def __init__(self):
        self._subscribers: list[ProgressSubscription] = []

    def subscribe(self) -> ProgressSubscription:
        subscription = ProgressSubscription(self)
        self._subscribers.append(subscription)
        return subscription

    def publish(self, event: TransformProgress) -> None:
        for subscription in list(self._subscribers):
            subscription._deliver(event)

    def close(self) -> None:
        subscribers, self._subscribers = self._subscribers, []
        for subscription in subscribers:
            subscription._deliver(_CLOSED)

    def _discard(self, subscription: ProgressSubscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
