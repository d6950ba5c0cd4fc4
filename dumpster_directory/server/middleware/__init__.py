"""
Middleware modules for the directory server.

This package contains custom middleware for request/response logging and
timing.
"""

from .request_logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]
