"""
Data models for queue messages.
"""

from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


AFFILIATE_CLICKED = "affiliate_clicked"
PROJECT_VIEWED = "project_viewed"
TOOL_VIEWED = "tool_viewed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalyticsEvent(BaseModel):
    """
    Analytics event published to the queue.

    Shaped after the PostHog capture payload so the worker can forward it
    without translation.
    """

    event: str = Field(..., description="Event name, e.g. affiliate_clicked")
    distinct_id: str = Field("anonymous", description="User id, or 'anonymous' for guests")
    properties: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow, description="When the event occurred")

    # Set by the queue on consume, used for acknowledgment
    message_id: Optional[str] = Field(None, exclude=True)

    model_config = {
        "json_schema_extra": {
            "example": {
                "event": "affiliate_clicked",
                "distinct_id": "anonymous",
                "properties": {
                    "slug": "chatgpt",
                    "destination_url": "https://chat.openai.com?ref=tonystoolbox",
                    "referrer": "https://twitter.com",
                },
                "timestamp": "2025-10-29T10:30:00Z",
            }
        }
    }
