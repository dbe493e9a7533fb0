"""
Request handlers.

A handler takes an HTTPRequest (with path_params, query and data already
filled in by the Dispatcher) and returns an HTTPResponse.
"""

from .tasks import TaskHandler

__all__ = ["TaskHandler"]
