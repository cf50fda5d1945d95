"""
Unit Tests for the Update Publisher

Run with:
    pytest tests/unit/test_update_publisher.py -v
"""

import asyncio

import pytest

from services.update_publisher import UpdatePublisher
from tests.factories import rate_row


@pytest.fixture
def snapshot():
    return [rate_row("BTCUSDT", "0.0001", row_id=1), rate_row("ETHUSDT", "-0.0002", row_id=2)]


class TestCallbacks:

    @pytest.mark.asyncio
    async def test_sync_and_async_callbacks_receive_event(self, snapshot):
        publisher = UpdatePublisher()
        received = []

        def sync_cb(event):
            received.append(("sync", event))

        async def async_cb(event):
            received.append(("async", event))

        publisher.subscribe(sync_cb)
        publisher.subscribe(async_cb)

        delivered = await publisher.publish(snapshot)

        assert delivered == 2
        assert [kind for kind, _ in received] == ["sync", "async"]
        event = received[0][1]
        assert event["type"] == "funding-rates-update"
        assert [row["symbol"] for row in event["data"]] == ["BTCUSDT", "ETHUSDT"]

    @pytest.mark.asyncio
    async def test_async_callback_completes_before_publish_returns(self, snapshot):
        publisher = UpdatePublisher()
        finished = []

        async def slow_cb(event):
            await asyncio.sleep(0.01)
            finished.append(event["type"])

        publisher.subscribe(slow_cb)
        await publisher.publish(snapshot)

        assert finished == ["funding-rates-update"]

    @pytest.mark.asyncio
    async def test_event_is_json_ready(self, snapshot):
        publisher = UpdatePublisher()
        received = []
        publisher.subscribe(received.append)

        await publisher.publish(snapshot)

        row = received[0]["data"][0]
        assert row["funding_rate"] == "0.0001"
        assert isinstance(row["next_funding_time"], str)
        assert row["exchange"]["display_name"] == "Bybit"

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_block_others(self, snapshot):
        publisher = UpdatePublisher()
        received = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        publisher.subscribe(broken)
        publisher.subscribe(received.append)

        delivered = await publisher.publish(snapshot)

        assert delivered == 1
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self, snapshot):
        publisher = UpdatePublisher()
        received = []
        unsubscribe = publisher.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        await publisher.publish(snapshot)

        assert received == []
        assert publisher.subscriber_count == 0


class TestQueues:

    @pytest.mark.asyncio
    async def test_queue_subscriber_receives_event(self, snapshot):
        publisher = UpdatePublisher()
        queue = publisher.subscribe_queue()

        await publisher.publish(snapshot)

        event = queue.get_nowait()
        assert event["type"] == "funding-rates-update"

    @pytest.mark.asyncio
    async def test_full_queue_drops_instead_of_blocking(self, snapshot):
        publisher = UpdatePublisher(max_queue_size=1)
        queue = publisher.subscribe_queue()

        await publisher.publish(snapshot)
        delivered = await publisher.publish(snapshot)

        assert delivered == 0
        assert queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_queue_drains_it(self, snapshot):
        publisher = UpdatePublisher()
        queue = publisher.subscribe_queue()
        await publisher.publish(snapshot)

        publisher.unsubscribe_queue(queue)
        await publisher.publish(snapshot)

        assert queue.empty()
        assert publisher.subscriber_count == 0
