"""
Best-effort click tracking, detached from the redirect response.

The redirect handler calls ``submit`` and returns immediately. The click is
recorded on a background task:

1. LinkRegistry.record_click in a worker thread, on its own session
2. affiliate_clicked published to the analytics queue, only once the click
   was counted

Catalogue views go through ``track``, which publishes on the same kind of
tracked background task.

Failures in either step are logged and dropped; they never reach the caller.
"""

import asyncio
from typing import Callable, Optional, Set

from pydantic import BaseModel
from sqlalchemy.orm import Session

from toolbox_app.config import settings
from toolbox_app.logging_config import get_logger
from toolbox_app.queue.models import AFFILIATE_CLICKED, AnalyticsEvent
from toolbox_app.queue.strategies import QueueStrategy
from toolbox_app.services.link_registry import LinkRegistry

logger = get_logger("clicks")


class Click(BaseModel):
    """Everything the tracker needs, copied out of the request."""

    slug: str
    destination_url: str
    owner_project_id: Optional[int] = None
    distinct_id: str = "anonymous"
    referrer: Optional[str] = None
    user_agent: Optional[str] = None


class ClickTracker:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        queue: Optional[QueueStrategy] = None,
        queue_name: str = None,
    ):
        self.session_factory = session_factory
        self.queue = queue
        self.queue_name = queue_name or settings.queue_name
        # Strong references; the loop only keeps weak ones to tasks
        self._pending: Set[asyncio.Task] = set()

    def _schedule(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def submit(self, click: Click) -> asyncio.Task:
        """Schedule recording and return without waiting for it."""
        return self._schedule(self.record(click), f"record-click-{click.slug}")

    def track(self, event: AnalyticsEvent) -> asyncio.Task:
        """Schedule publishing an analytics event and return without waiting for it."""
        return self._schedule(self._publish(event), f"track-{event.event}")

    async def record(self, click: Click) -> bool:
        """
        Record one click. Returns True if the counter was incremented.

        affiliate_clicked is published only for counted clicks, so a link
        deleted between resolve and record produces no event.
        """
        try:
            recorded = await asyncio.to_thread(self._record_sync, click)
        except Exception:
            logger.exception(f"Click recording failed for {click.slug!r}")
            recorded = False

        if recorded:
            await self._emit(click)
        return recorded

    def _record_sync(self, click: Click) -> bool:
        db = self.session_factory()
        try:
            return LinkRegistry(db).record_click(
                click.slug,
                referrer=click.referrer,
                user_agent=click.user_agent,
            )
        finally:
            db.close()

    async def _emit(self, click: Click):
        event = AnalyticsEvent(
            event=AFFILIATE_CLICKED,
            distinct_id=click.distinct_id,
            properties={
                "slug": click.slug,
                "destination_url": click.destination_url,
                "project_id": click.owner_project_id,
                "referrer": click.referrer,
            },
        )
        await self._publish(event)

    async def _publish(self, event: AnalyticsEvent):
        if self.queue is None:
            return
        slug = event.properties.get("slug")
        try:
            published = await self.queue.publish(self.queue_name, event)
        except Exception:
            logger.exception(f"Publishing {event.event} failed for {slug!r}")
            return
        if not published:
            logger.warning(f"{event.event} for {slug!r} was not published")

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self):
        """Wait for every scheduled recording to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
