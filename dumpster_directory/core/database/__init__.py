"""
Centralized database layer for Dumpster Directory.

Structure:
- entities/: SQLModel table definitions grouped by business domain
- repositories/: Data access layer, one repository per aggregate
- session.py: Global engine and session factory management
- utils.py: Engine, session factory and schema helpers
"""

from .base import Base, new_id, utc_now
from .utils import (
    create_all,
    create_engine,
    create_sessionmaker,
)

__all__ = [
    "Base",
    "create_all",
    "create_engine",
    "create_sessionmaker",
    "new_id",
    "utc_now",
]
