"""
Analytics sink strategies using Strategy Pattern.

A sink is where analytics events end up:
- PostHog: production, via the HTTP batch capture endpoint
- Log: development/testing, events are written to the application log
"""

from abc import ABC, abstractmethod
from typing import List
import asyncio

import requests

from toolbox_app.logging_config import get_logger
from toolbox_app.queue.models import AnalyticsEvent

logger = get_logger("analytics")


class AnalyticsSink(ABC):
    """
    Abstract base class for analytics sinks.

    ``send_batch`` reports failure by returning False; the worker then leaves
    the messages unacknowledged so they are retried.
    """

    @abstractmethod
    async def send_batch(self, events: List[AnalyticsEvent]) -> bool:
        """
        Deliver a batch of events.

        Returns:
            True if the sink accepted every event
        """
        pass

    async def send(self, event: AnalyticsEvent) -> bool:
        """Deliver a single event"""
        return await self.send_batch([event])


class PostHogSink(AnalyticsSink):
    """
    PostHog implementation using the public ``/batch/`` capture endpoint.

    Payload:
        {"api_key": ..., "batch": [{"event", "distinct_id", "properties", "timestamp"}]}
    """

    def __init__(self, host: str, api_key: str, timeout: float = 5.0, session: requests.Session = None):
        if not api_key:
            raise ValueError("PostHog sink requires an API key")
        self.url = f"{host.rstrip('/')}/batch/"
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _payload(self, events: List[AnalyticsEvent]) -> dict:
        return {
            "api_key": self.api_key,
            "batch": [
                {
                    "event": event.event,
                    "distinct_id": event.distinct_id,
                    "properties": event.properties,
                    "timestamp": event.timestamp.isoformat(),
                }
                for event in events
            ],
        }

    def _post(self, payload: dict) -> requests.Response:
        return self.session.post(self.url, json=payload, timeout=self.timeout)

    async def send_batch(self, events: List[AnalyticsEvent]) -> bool:
        if not events:
            return True
        try:
            response = await asyncio.to_thread(self._post, self._payload(events))
        except requests.RequestException as e:
            logger.warning(f"PostHog request failed: {e}")
            return False

        if response.status_code >= 400:
            logger.warning(f"PostHog rejected batch of {len(events)}: HTTP {response.status_code}")
            return False
        return True


class LogSink(AnalyticsSink):
    """Writes events to the log. Always succeeds."""

    async def send_batch(self, events: List[AnalyticsEvent]) -> bool:
        for event in events:
            logger.info(
                f"analytics event={event.event} distinct_id={event.distinct_id} "
                f"properties={event.properties}"
            )
        return True
