"""
Tests for the analytics queue, sinks and worker.
"""
import asyncio
from unittest.mock import MagicMock

import fakeredis
import pytest
import requests

from toolbox_app.analytics.factory import AnalyticsSinkBackend, AnalyticsSinkFactory
from toolbox_app.analytics.sinks import AnalyticsSink, LogSink, PostHogSink
from toolbox_app.analytics.worker import AnalyticsWorker
from toolbox_app.queue.factory import QueueBackend, QueueFactory
from toolbox_app.queue.models import AFFILIATE_CLICKED, AnalyticsEvent
from toolbox_app.queue.strategies import InMemoryQueue, RedisStreamQueue

QUEUE = "analytics_events"


def click_event(slug="chatgpt"):
    return AnalyticsEvent(event=AFFILIATE_CLICKED, properties={"slug": slug})


class RecordingSink(AnalyticsSink):
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.batches = []

    async def send_batch(self, events):
        self.batches.append(list(events))
        return self.succeed


@pytest.fixture
def redis_queue():
    return RedisStreamQueue(fakeredis.FakeStrictRedis(), consumer_group="test_workers")


class TestQueues:
    def test_in_memory_fifo(self):
        async def scenario():
            queue = InMemoryQueue()
            for slug in ("a", "b", "c"):
                await queue.publish(QUEUE, click_event(slug))
            first = await queue.consume(QUEUE, batch_size=2)
            rest = await queue.consume_batch(QUEUE)
            return first, rest, await queue.get_queue_length(QUEUE)

        first, rest, remaining = asyncio.run(scenario())
        assert [e.properties["slug"] for e in first] == ["a", "b"]
        assert [e.properties["slug"] for e in rest] == ["c"]
        assert remaining == 0

    def test_redis_stream_publish_consume_ack(self, redis_queue):
        async def scenario():
            assert await redis_queue.publish(QUEUE, click_event("chatgpt")) is True
            events = await redis_queue.consume(QUEUE, batch_size=10, block_time=10)
            acked = await redis_queue.ack(QUEUE, [e.message_id for e in events])
            return events, acked

        events, acked = asyncio.run(scenario())
        assert len(events) == 1
        assert events[0].event == AFFILIATE_CLICKED
        assert events[0].properties == {"slug": "chatgpt"}
        assert events[0].message_id
        assert acked is True

    def test_redis_publish_failure_returns_false(self):
        broken = MagicMock()
        broken.xgroup_create.side_effect = ConnectionError("redis down")
        queue = RedisStreamQueue(broken)

        assert asyncio.run(queue.publish(QUEUE, click_event())) is False

    def test_factory_memory_backend(self):
        QueueFactory.clear_instance()
        try:
            assert isinstance(QueueFactory.create(QueueBackend.MEMORY), InMemoryQueue)
        finally:
            QueueFactory.clear_instance()


class TestSinks:
    def test_posthog_batch_payload(self):
        session = MagicMock()
        session.post.return_value = MagicMock(status_code=200)
        sink = PostHogSink(host="https://eu.posthog.com/", api_key="phc_test", session=session)

        event = AnalyticsEvent(event=AFFILIATE_CLICKED, distinct_id="user-1", properties={"slug": "chatgpt"})
        assert asyncio.run(sink.send(event)) is True

        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs["json"]
        assert url == "https://eu.posthog.com/batch/"
        assert payload["api_key"] == "phc_test"
        assert payload["batch"][0]["event"] == AFFILIATE_CLICKED
        assert payload["batch"][0]["distinct_id"] == "user-1"
        assert payload["batch"][0]["properties"] == {"slug": "chatgpt"}

    def test_posthog_errors_are_reported_not_raised(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("no route")
        sink = PostHogSink(host="https://app.posthog.com", api_key="phc_test", session=session)
        assert asyncio.run(sink.send(click_event())) is False

        session.post.side_effect = None
        session.post.return_value = MagicMock(status_code=503)
        assert asyncio.run(sink.send(click_event())) is False

    def test_posthog_requires_key(self):
        with pytest.raises(ValueError):
            PostHogSink(host="https://app.posthog.com", api_key="")

    def test_factory_without_key_falls_back_to_log(self, monkeypatch):
        monkeypatch.setattr("toolbox_app.analytics.factory.settings.posthog_api_key", None)
        AnalyticsSinkFactory.clear_instance()
        try:
            assert isinstance(AnalyticsSinkFactory.create(AnalyticsSinkBackend.POSTHOG), LogSink)
        finally:
            AnalyticsSinkFactory.clear_instance()


class TestWorker:
    def test_delivers_and_acks(self, redis_queue):
        sink = RecordingSink()
        worker = AnalyticsWorker(redis_queue, sink, queue_name=QUEUE, batch_size=10, idle_interval=0)

        async def scenario():
            for slug in ("chatgpt", "copilot"):
                await redis_queue.publish(QUEUE, click_event(slug))
            delivered = await worker.run_once(block_time=10)
            pending = redis_queue.redis.xpending(QUEUE, "test_workers")["pending"]
            return delivered, pending

        delivered, pending = asyncio.run(scenario())
        assert delivered == 2
        assert pending == 0
        assert [e.properties["slug"] for e in sink.batches[0]] == ["chatgpt", "copilot"]
        assert worker.processed_count == 2

    def test_failed_delivery_leaves_messages_pending(self, redis_queue):
        worker = AnalyticsWorker(redis_queue, RecordingSink(succeed=False), queue_name=QUEUE, idle_interval=0)

        async def scenario():
            await redis_queue.publish(QUEUE, click_event())
            delivered = await worker.run_once(block_time=10)
            pending = redis_queue.redis.xpending(QUEUE, "test_workers")["pending"]
            return delivered, pending

        delivered, pending = asyncio.run(scenario())
        assert delivered == 0
        assert pending == 1
        assert worker.processed_count == 0

    def test_sink_exception_is_contained(self):
        class ExplodingSink(AnalyticsSink):
            async def send_batch(self, events):
                raise RuntimeError("sink exploded")

        queue = InMemoryQueue()
        worker = AnalyticsWorker(queue, ExplodingSink(), queue_name=QUEUE, idle_interval=0)

        async def scenario():
            await queue.publish(QUEUE, click_event())
            return await worker.run_once()

        assert asyncio.run(scenario()) == 0

    def test_start_and_stop(self):
        queue = InMemoryQueue()
        sink = RecordingSink()
        worker = AnalyticsWorker(queue, sink, queue_name=QUEUE, idle_interval=0.01)

        async def scenario():
            await queue.publish(QUEUE, click_event())
            task = asyncio.create_task(worker.start())
            while not sink.batches:
                await asyncio.sleep(0.01)
            worker.stop()
            await asyncio.wait_for(task, timeout=1)

        asyncio.run(scenario())
        assert worker.running is False
        assert len(sink.batches) == 1
