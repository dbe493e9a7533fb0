"""
Middleware wrapped around the request Dispatcher.

    pipeline = MiddlewarePipeline()
    pipeline.add(LoggingMiddleware(log_format="json"))
    handler = pipeline.wrap(dispatcher)
"""

from .base import Middleware, MiddlewarePipeline
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "LoggingMiddleware",
    "RequestLog",
]
