"""
Analytics delivery.

Events are produced onto the queue by the request path and delivered to an
external sink (PostHog) by the worker, off the request/response lifecycle.
"""

from .sinks import AnalyticsSink, PostHogSink, LogSink
from .factory import AnalyticsSinkFactory, AnalyticsSinkBackend
from .worker import AnalyticsWorker

__all__ = [
    "AnalyticsSink",
    "PostHogSink",
    "LogSink",
    "AnalyticsSinkFactory",
    "AnalyticsSinkBackend",
    "AnalyticsWorker",
]
