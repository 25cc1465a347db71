"""
Factory for creating analytics sink instances.
Simple factory with singleton caching.
"""

from enum import Enum
from .sinks import AnalyticsSink, PostHogSink, LogSink
from toolbox_app.config import settings
from toolbox_app.logging_config import get_logger

logger = get_logger("analytics")


class AnalyticsSinkBackend(Enum):
    """Available analytics sinks"""
    POSTHOG = "posthog"
    LOG = "log"


class AnalyticsSinkFactory:
    """Gets configuration from settings (not passed as parameters)."""

    _instance: AnalyticsSink = None  # Single cached instance

    @classmethod
    def create(cls, backend: AnalyticsSinkBackend) -> AnalyticsSink:
        """Create or return cached sink instance."""
        if cls._instance is not None:
            return cls._instance

        if backend == AnalyticsSinkBackend.POSTHOG:
            if settings.posthog_api_key:
                cls._instance = PostHogSink(
                    host=settings.posthog_host,
                    api_key=settings.posthog_api_key,
                    timeout=settings.posthog_timeout,
                )
                logger.info(f"PostHog sink initialized ({settings.posthog_host})")
            else:
                logger.warning("POSTHOG_API_KEY not set; analytics events will only be logged")
                cls._instance = LogSink()

        elif backend == AnalyticsSinkBackend.LOG:
            cls._instance = LogSink()
            logger.info("Log analytics sink initialized")

        else:
            raise ValueError(f"Unknown analytics sink: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
