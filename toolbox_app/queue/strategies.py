"""
Queue strategies using Strategy Pattern.
Allows switching between different queue backends (Redis Streams, In-Memory).
"""

from abc import ABC, abstractmethod
from typing import List, Dict
from collections import deque
import asyncio
import json
import socket

from toolbox_app.logging_config import get_logger
from .models import AnalyticsEvent

logger = get_logger("queue")


class QueueStrategy(ABC):
    """
    Abstract base class for queue strategies.

    Producers (the click tracker, catalogue views) publish; the analytics
    worker consumes, forwards to the sink, then acknowledges.
    """

    @abstractmethod
    async def publish(self, queue_name: str, message: AnalyticsEvent) -> bool:
        """
        Publish a message to the queue.

        Returns:
            True if successful, False otherwise. Never raises.
        """
        pass

    @abstractmethod
    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: int = 1000
    ) -> List[AnalyticsEvent]:
        """
        Consume messages from the queue.

        Args:
            queue_name: Name of the queue
            batch_size: Maximum number of messages to retrieve
            block_time: Time to wait for messages (milliseconds)
        """
        pass

    @abstractmethod
    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        """Acknowledge messages (mark as processed)."""
        pass

    @abstractmethod
    async def get_queue_length(self, queue_name: str) -> int:
        """Get the number of pending messages in queue."""
        pass

    async def consume_batch(self, queue_name: str, batch_size: int = 100, block_time: int = 1000) -> List[AnalyticsEvent]:
        """Consume a batch of messages (consume with a larger default batch size)."""
        return await self.consume(queue_name, batch_size, block_time)


class RedisStreamQueue(QueueStrategy):
    """
    Redis Streams implementation for message queue.

    1. Producer publishes messages using XADD
    2. Consumer reads messages using XREADGROUP
    3. Consumer acknowledges messages using XACK
    4. Unacknowledged messages stay pending and can be reclaimed

    The client is synchronous; calls run in a thread so a slow Redis never
    stalls the event loop serving redirects.
    """

    def __init__(self, redis_client, consumer_group: str = "analytics_workers"):
        self.redis = redis_client
        self.consumer_group = consumer_group
        self.consumer_name = f"worker-{socket.gethostname()}-{id(self)}"
        self._initialized_streams = set()

    def _ensure_stream_exists(self, queue_name: str):
        """Create stream and consumer group if they don't exist."""
        if queue_name in self._initialized_streams:
            return

        try:
            self.redis.xgroup_create(
                name=queue_name,
                groupname=self.consumer_group,
                id='0',
                mkstream=True
            )
            logger.info(f"Created Redis stream: {queue_name}")
        except Exception as e:
            # Group might already exist, that's OK
            if "BUSYGROUP" not in str(e):
                raise

        self._initialized_streams.add(queue_name)

    def _publish_sync(self, queue_name: str, message: AnalyticsEvent):
        self._ensure_stream_exists(queue_name)
        self.redis.xadd(queue_name, {'data': message.model_dump_json()})

    async def publish(self, queue_name: str, message: AnalyticsEvent) -> bool:
        try:
            await asyncio.to_thread(self._publish_sync, queue_name, message)
            return True
        except Exception as e:
            logger.warning(f"Redis publish error: {e}")
            return False

    def _consume_sync(self, queue_name: str, batch_size: int, block_time: int) -> List[AnalyticsEvent]:
        self._ensure_stream_exists(queue_name)

        # '>' means "messages never delivered to other consumers"
        messages = self.redis.xreadgroup(
            groupname=self.consumer_group,
            consumername=self.consumer_name,
            streams={queue_name: '>'},
            count=batch_size,
            block=block_time
        )

        if not messages:
            return []

        events = []
        for stream_name, stream_messages in messages:
            for message_id, message_data in stream_messages:
                if isinstance(message_id, bytes):
                    message_id = message_id.decode('utf-8')
                try:
                    raw = message_data.get(b'data') or message_data.get('data')
                    if isinstance(raw, bytes):
                        raw = raw.decode('utf-8')
                    event = AnalyticsEvent(**json.loads(raw))
                except Exception as e:
                    # Poison message: ack it so it doesn't block the group forever
                    logger.warning(f"Dropping unparseable message {message_id}: {e}")
                    self.redis.xack(queue_name, self.consumer_group, message_id)
                    continue
                event.message_id = message_id
                events.append(event)

        return events

    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: int = 1000
    ) -> List[AnalyticsEvent]:
        try:
            return await asyncio.to_thread(self._consume_sync, queue_name, batch_size, block_time)
        except Exception as e:
            logger.warning(f"Redis consume error: {e}")
            return []

    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        if not message_ids:
            return True
        try:
            await asyncio.to_thread(self.redis.xack, queue_name, self.consumer_group, *message_ids)
            return True
        except Exception as e:
            logger.warning(f"Redis ack error: {e}")
            return False

    async def get_queue_length(self, queue_name: str) -> int:
        """Get approximate queue length"""
        try:
            info = await asyncio.to_thread(self.redis.xinfo_stream, queue_name)
            return info['length']
        except Exception:
            return 0


class InMemoryQueue(QueueStrategy):
    """
    In-memory queue implementation using Python deque.

    Not persistent and not shared between processes; for development,
    tests, and single-process deployments running the embedded worker.
    Messages are removed on consume, so ack is a no-op.
    """

    def __init__(self):
        self._queues: Dict[str, deque] = {}

    def _get_queue(self, queue_name: str) -> deque:
        if queue_name not in self._queues:
            self._queues[queue_name] = deque()
        return self._queues[queue_name]

    async def publish(self, queue_name: str, message: AnalyticsEvent) -> bool:
        self._get_queue(queue_name).append(message)
        return True

    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: int = 1000
    ) -> List[AnalyticsEvent]:
        """block_time is ignored (no blocking in this simple implementation)"""
        queue = self._get_queue(queue_name)
        messages = []
        while queue and len(messages) < batch_size:
            messages.append(queue.popleft())
        return messages

    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        return True

    async def get_queue_length(self, queue_name: str) -> int:
        return len(self._get_queue(queue_name))
