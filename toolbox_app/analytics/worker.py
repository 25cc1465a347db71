"""
Analytics worker.

Drains analytics events (affiliate_clicked, project_viewed, ...) from the
queue and forwards them to the configured sink.

- Consumes messages from the queue in batches
- Acknowledges a batch only after the sink accepted it
- Runs embedded in the API process (see main.lifespan) or standalone:

    python -m toolbox_app.analytics.worker
"""

import asyncio
import signal
import sys
from typing import List

from toolbox_app.analytics.sinks import AnalyticsSink
from toolbox_app.config import settings
from toolbox_app.logging_config import get_logger, setup_logging
from toolbox_app.queue.models import AnalyticsEvent
from toolbox_app.queue.strategies import QueueStrategy

logger = get_logger("analytics.worker")


class AnalyticsWorker:
    """Queue consumer that forwards batches to an AnalyticsSink."""

    def __init__(
        self,
        queue: QueueStrategy,
        sink: AnalyticsSink,
        queue_name: str = None,
        batch_size: int = None,
        idle_interval: float = None,
    ):
        self.queue = queue
        self.sink = sink
        self.queue_name = queue_name or settings.queue_name
        self.batch_size = batch_size or settings.queue_batch_size
        self.idle_interval = settings.queue_worker_interval if idle_interval is None else idle_interval
        self.running = False
        self.processed_count = 0

    async def run_once(self, block_time: int = 1000) -> int:
        """
        Process one batch.

        Returns:
            Number of events delivered (0 when the queue was empty or the sink failed)
        """
        messages = await self.queue.consume_batch(
            queue_name=self.queue_name,
            batch_size=self.batch_size,
            block_time=block_time,
        )
        if not messages:
            return 0

        delivered = await self._deliver(messages)
        if not delivered:
            # Messages stay pending for retry
            return 0

        message_ids = [msg.message_id for msg in messages if msg.message_id]
        if message_ids:
            await self.queue.ack(self.queue_name, message_ids)

        self.processed_count += len(messages)
        logger.debug(f"Delivered {len(messages)} events. Total: {self.processed_count}")
        return len(messages)

    async def _deliver(self, messages: List[AnalyticsEvent]) -> bool:
        try:
            return await self.sink.send_batch(messages)
        except Exception:
            logger.exception(f"Sink raised while delivering {len(messages)} events")
            return False

    async def start(self):
        """Run until stop() is called or the task is cancelled."""
        self.running = True
        logger.info(f"Analytics worker started (queue={self.queue_name}, batch size={self.batch_size})")

        while self.running:
            try:
                delivered = await self.run_once()
                if not delivered:
                    await asyncio.sleep(self.idle_interval)
            except asyncio.CancelledError:
                logger.info("Analytics worker cancelled")
                raise
            except Exception:
                logger.exception("Error processing analytics batch")
                await asyncio.sleep(1)

        logger.info("Analytics worker stopped")

    def stop(self):
        self.running = False


async def main():
    """Standalone entry point."""
    setup_logging(settings.log_level, settings.log_file, settings.log_json)
    logger.info(
        f"Environment: {settings.environment}, queue backend: {settings.queue_backend}, "
        f"sink: {settings.analytics_sink}"
    )

    from toolbox_app.dependencies import get_queue, get_analytics_sink

    worker = AnalyticsWorker(queue=get_queue(), sink=get_analytics_sink())

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    try:
        await worker.start()
    except Exception:
        logger.exception("Fatal error in analytics worker")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
