"""
In-process business cache.

The directory is read far more often than it is written, so every listing
and the aggregate counts (categories, states, cities, global stats) are kept
in memory as an immutable snapshot. The cache is constructed explicitly with
a session factory, started from the application lifespan and injected into
handlers; nothing happens at import time.

Concurrency contract:
- ``refresh()`` is single-flight: concurrent callers await the same load.
- A failed load is logged and the previous snapshot stays in place.
- Readers always see a complete snapshot; a new one replaces the old in a
  single assignment.
- ``upsert()``/``remove()`` patch the current snapshot for writes made by
  this process, so readers see them before the next timed refresh.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.businesses import Business
from dumpster_directory.core.database.repositories.businesses import BusinessRepository
from dumpster_directory.core.models.domain import BusinessFilters

logger = logging.getLogger(__name__)

TOP_CITIES = 100

EMPTY_STATS: Dict[str, Any] = {
    "total_businesses": 0,
    "total_categories": 0,
    "total_states": 0,
    "total_cities": 0,
    "featured_count": 0,
    "verified_count": 0,
    "average_rating": 0.0,
    "total_reviews": 0,
}


@dataclass(frozen=True)
class CacheSnapshot:
    """A consistent view of the directory at ``last_updated``."""

    businesses: List[Dict[str, Any]]
    categories: List[Dict[str, Any]] = field(default_factory=list)
    states: List[Dict[str, Any]] = field(default_factory=list)
    cities: List[Dict[str, Any]] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=lambda: dict(EMPTY_STATS))
    last_updated: datetime = field(default_factory=utc_now)


def _directory_order(business: Dict[str, Any]):
    return (
        not business.get("is_featured"),
        -(business.get("rating") or 0),
        -(business.get("reviews") or 0),
        business.get("name") or "",
    )


def build_snapshot(businesses: List[Dict[str, Any]]) -> CacheSnapshot:
    """Sort listings into directory order and compute every aggregate."""
    ordered = sorted(businesses, key=_directory_order)

    category_counts = Counter(b.get("category") for b in ordered)
    state_counts = Counter(b.get("state") for b in ordered)
    city_counts = Counter((b.get("city"), b.get("state")) for b in ordered)
    cities_per_state = Counter(state for (_, state) in city_counts)

    categories = [{"category": c, "count": n} for c, n in category_counts.most_common()]
    states = [
        {"state": s, "count": n, "city_count": cities_per_state[s]} for s, n in state_counts.most_common()
    ]
    cities = [{"city": c, "state": s, "count": n} for (c, s), n in city_counts.most_common(TOP_CITIES)]

    ratings = [b.get("rating") for b in ordered if b.get("rating") is not None]
    stats = {
        "total_businesses": len(ordered),
        "total_categories": len([c for c in category_counts if c is not None]),
        "total_states": len([s for s in state_counts if s is not None]),
        "total_cities": len({b.get("city") for b in ordered if b.get("city") is not None}),
        "featured_count": sum(1 for b in ordered if b.get("is_featured")),
        "verified_count": sum(1 for b in ordered if b.get("is_verified")),
        "average_rating": round(sum(ratings) / len(ratings), 2) if ratings else 0.0,
        "total_reviews": sum(b.get("reviews") or 0 for b in ordered),
    }
    return CacheSnapshot(businesses=ordered, categories=categories, states=states, cities=cities, stats=stats)


def _matches(business: Dict[str, Any], filters: BusinessFilters) -> bool:
    def same(value: Optional[str], wanted: str) -> bool:
        return (value or "").lower() == wanted.lower()

    if filters.category and not same(business.get("category"), filters.category):
        return False
    if filters.state and not same(business.get("state"), filters.state):
        return False
    if filters.city and not same(business.get("city"), filters.city):
        return False
    if filters.zipcode and business.get("zipcode") != filters.zipcode:
        return False
    if filters.featured is not None and bool(business.get("is_featured")) != filters.featured:
        return False
    if filters.verified is not None and bool(business.get("is_verified")) != filters.verified:
        return False
    if filters.search:
        needle = filters.search.lower()
        haystack = ("name", "description", "category", "city", "state")
        if not any(needle in (business.get(key) or "").lower() for key in haystack):
            return False
    return True


class BusinessCache:
    """Process-wide directory snapshot with a timed background refresh."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        refresh_seconds: float = 300,
    ) -> None:
        self._session_factory = session_factory
        self._refresh_seconds = refresh_seconds
        self._snapshot: Optional[CacheSnapshot] = None
        self._lock = asyncio.Lock()
        self._inflight: Optional[asyncio.Task] = None
        self._loop_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load the first snapshot and schedule periodic refreshes."""
        await self.refresh()
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self._refresh_loop(), name="business-cache-refresh")

    async def stop(self) -> None:
        for task in (self._loop_task, self._inflight):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._loop_task = None
        self._inflight = None

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self._refresh_seconds)
            await self.refresh()

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self, force: bool = False) -> bool:
        """Reload the snapshot from the database.

        Concurrent callers share one in-flight load. With ``force`` a load
        that was already running is awaited and then a new one is started,
        so the result reflects every write committed before the call.

        Returns:
            True if the snapshot was replaced, False if the load failed
        """
        async with self._lock:
            pending = self._inflight
            if pending is not None and not pending.done() and not force:
                task = pending
            else:
                if pending is not None and not pending.done():
                    await asyncio.shield(pending)
                task = asyncio.create_task(self._load())
                self._inflight = task
        return await asyncio.shield(task)

    async def invalidate(self) -> bool:
        """Discard what is cached by forcing a fresh load."""
        logger.info("Business cache invalidated, reloading")
        return await self.refresh(force=True)

    async def _load(self) -> bool:
        try:
            async with self._session_factory() as session:
                businesses = await BusinessRepository(session).list_for_cache()
            snapshot = build_snapshot([b.model_dump() for b in businesses])
        except Exception as e:
            logger.error(f"Business cache refresh failed, keeping previous snapshot: {e}", exc_info=True)
            return False
        self._snapshot = snapshot
        logger.info(
            f"Business cache loaded: {len(snapshot.businesses)} businesses, {len(snapshot.categories)} categories, "
            f"{len(snapshot.states)} states, {len(snapshot.cities)} cities"
        )
        return True

    # ------------------------------------------------------------------
    # Write-through
    # ------------------------------------------------------------------

    def upsert(self, business: Business | Dict[str, Any]) -> None:
        """Insert or replace one listing in the current snapshot."""
        if self._snapshot is None:
            return
        row = business if isinstance(business, dict) else business.model_dump()
        rows = [b for b in self._snapshot.businesses if b.get("id") != row.get("id")]
        rows.append(dict(row))
        self._snapshot = build_snapshot(rows)

    def remove(self, business_id: str) -> None:
        if self._snapshot is None:
            return
        rows = [b for b in self._snapshot.businesses if b.get("id") != business_id]
        if len(rows) != len(self._snapshot.businesses):
            self._snapshot = build_snapshot(rows)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> Optional[CacheSnapshot]:
        return self._snapshot

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._snapshot.last_updated if self._snapshot else None

    def _filtered(self, filters: Optional[BusinessFilters]) -> List[Dict[str, Any]]:
        if self._snapshot is None:
            return []
        if filters is None:
            return list(self._snapshot.businesses)
        return [b for b in self._snapshot.businesses if _matches(b, filters)]

    def get_businesses(self, filters: Optional[BusinessFilters] = None) -> List[Dict[str, Any]]:
        """Listings in directory order; one page of them when filters are given."""
        if filters is None:
            return self._filtered(None)
        return self._filtered(filters)[filters.offset : filters.offset + filters.limit]

    def count_businesses(self, filters: Optional[BusinessFilters] = None) -> int:
        return len(self._filtered(filters))

    def get_business(self, business_id: str) -> Optional[Dict[str, Any]]:
        if self._snapshot is None:
            return None
        return next((b for b in self._snapshot.businesses if b.get("id") == business_id), None)

    def get_categories(self) -> List[Dict[str, Any]]:
        return list(self._snapshot.categories) if self._snapshot else []

    def get_states(self) -> List[Dict[str, Any]]:
        return list(self._snapshot.states) if self._snapshot else []

    def get_cities(self) -> List[Dict[str, Any]]:
        return list(self._snapshot.cities) if self._snapshot else []

    def get_cities_by_state(self, state: str) -> List[Dict[str, Any]]:
        return [c for c in self.get_cities() if (c.get("state") or "").lower() == state.lower()]

    def get_stats(self) -> Dict[str, Any]:
        return dict(self._snapshot.stats) if self._snapshot else dict(EMPTY_STATS)

    def info(self) -> Dict[str, Any]:
        """Cache status for the admin stats endpoint."""
        return {
            "initialized": self.is_initialized,
            "last_updated": self.last_updated,
            "refresh_seconds": self._refresh_seconds,
            "refreshing": self._inflight is not None and not self._inflight.done(),
            "businesses": len(self._snapshot.businesses) if self._snapshot else 0,
            "categories": len(self._snapshot.categories) if self._snapshot else 0,
            "states": len(self._snapshot.states) if self._snapshot else 0,
            "cities": len(self._snapshot.cities) if self._snapshot else 0,
        }
