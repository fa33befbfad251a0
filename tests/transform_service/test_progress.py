import asyncio

import pytest

from transform_service.app.services.domain import TransformPhase, TransformProgress
from transform_service.app.services.progress import ProgressChannel


def event(progress, phase=TransformPhase.PROCESSING):
    return TransformProgress(phase=phase, progress=progress, message=f"{progress}%")


class TestProgressChannel:
    @pytest.mark.asyncio
    async def test_subscribers_receive_events_until_closed(self):
        channel = ProgressChannel()
        first = channel.subscribe()
        second = channel.subscribe()

        channel.publish(event(10))
        channel.publish(event(100, TransformPhase.COMPLETED))
        channel.close()

        assert [e.progress for e in [e async for e in first]] == [10, 100]
        assert [e.progress for e in [e async for e in second]] == [10, 100]
        assert channel.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_late_subscriber_misses_earlier_events(self):
        channel = ProgressChannel()
        channel.publish(event(10))

        subscription = channel.subscribe()
        channel.publish(event(20))
        channel.close()

        assert [e.progress async for e in subscription] == [20]

    @pytest.mark.asyncio
    async def test_unsubscribe_ends_iteration(self):
        channel = ProgressChannel()

        async with channel.subscribe() as subscription:
            channel.publish(event(30))
            assert (await subscription.__anext__()).progress == 30

        assert channel.subscriber_count == 0
        with pytest.raises(StopAsyncIteration):
            await subscription.__anext__()

    @pytest.mark.asyncio
    async def test_waiting_subscriber_wakes_on_publish(self):
        channel = ProgressChannel()
        subscription = channel.subscribe()

        waiter = asyncio.ensure_future(subscription.__anext__())
        await asyncio.sleep(0)
        assert not waiter.done()

        channel.publish(event(40))

        assert (await asyncio.wait_for(waiter, timeout=1)).progress == 40

    def test_event_serialization(self):
        payload = event(55.5).to_dict()

        assert payload == {
            "phase": "processing",
            "progress": 55.5,
            "message": "55.5%",
            "estimated_time_remaining_ms": None,
            "attempt": None,
        }
