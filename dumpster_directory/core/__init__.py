"""
Core utilities and domain services for Dumpster Directory.

This package provides core functionality including logging configuration,
database setup, the business cache and billing integration.
"""

from dumpster_directory.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
