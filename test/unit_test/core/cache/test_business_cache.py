"""
Unit tests for the in-process business cache.

Tests cover snapshot ordering and aggregates, filtered reads, single-flight
refreshes, failure handling and the write-through helpers.
"""

import asyncio

import pytest

from dumpster_directory.core.cache import BusinessCache, build_snapshot
from dumpster_directory.core.models.domain import BusinessFilters
from test.unit_test.fixtures import make_business

pytestmark = pytest.mark.asyncio


def _row(business_id, name, **fields):
    row = {
        "id": business_id,
        "name": name,
        "category": "Dumpster Rental",
        "city": "Austin",
        "state": "TX",
        "rating": 4.0,
        "reviews": 10,
        "is_featured": False,
        "is_verified": False,
    }
    row.update(fields)
    return row


class TestBuildSnapshot:
    async def test_orders_featured_then_rating_then_reviews_then_name(self):
        snapshot = build_snapshot(
            [
                _row("1", "Zeta", rating=5.0, reviews=1),
                _row("2", "Alpha", rating=4.0, reviews=50),
                _row("3", "Beta", rating=4.0, reviews=50),
                _row("4", "Featured Low", rating=2.0, is_featured=True),
                _row("5", "Gamma", rating=4.0, reviews=80),
            ]
        )
        assert [b["id"] for b in snapshot.businesses] == ["4", "1", "5", "2", "3"]

    async def test_aggregates(self):
        snapshot = build_snapshot(
            [
                _row("1", "A", rating=4.0, reviews=10, is_featured=True),
                _row("2", "B", rating=5.0, reviews=30, is_verified=True),
                _row("3", "C", city="Dallas", rating=3.0, reviews=5, category="Junk Removal"),
                _row("4", "D", city="Denver", state="CO", rating=None, reviews=0),
            ]
        )
        stats = snapshot.stats
        assert stats["total_businesses"] == 4
        assert stats["total_categories"] == 2
        assert stats["total_states"] == 2
        assert stats["total_cities"] == 3
        assert stats["featured_count"] == 1
        assert stats["verified_count"] == 1
        assert stats["average_rating"] == 4.0
        assert stats["total_reviews"] == 45

        assert snapshot.categories[0] == {"category": "Dumpster Rental", "count": 3}
        texas = next(s for s in snapshot.states if s["state"] == "TX")
        assert texas == {"state": "TX", "count": 3, "city_count": 2}
        assert {"city": "Austin", "state": "TX", "count": 2} in snapshot.cities

    async def test_empty_directory(self):
        snapshot = build_snapshot([])
        assert snapshot.businesses == []
        assert snapshot.stats["total_businesses"] == 0
        assert snapshot.stats["average_rating"] == 0.0


class TestBusinessCache:
    async def test_reads_before_first_load_are_empty(self, session_factory):
        cache = BusinessCache(session_factory)
        assert cache.is_initialized is False
        assert cache.get_businesses() == []
        assert cache.count_businesses() == 0
        assert cache.get_business("missing") is None
        assert cache.get_stats()["total_businesses"] == 0
        assert cache.info()["initialized"] is False

    async def test_refresh_loads_from_database(self, repos, session_factory):
        first = await make_business(repos, "Acme Dumpsters", rating=4.9)
        await make_business(repos, "Budget Bins", city="Dallas", rating=3.5)

        cache = BusinessCache(session_factory)
        assert await cache.refresh() is True

        assert cache.is_initialized
        assert cache.count_businesses() == 2
        assert cache.get_business(first.id)["name"] == "Acme Dumpsters"
        assert cache.get_stats()["total_cities"] == 2
        assert cache.info()["businesses"] == 2
        assert cache.last_updated is not None

    async def test_filters_and_pagination(self, repos, session_factory):
        await make_business(repos, "Acme Dumpsters", rating=5.0)
        await make_business(repos, "Roll Off Pros", rating=4.0, is_featured=True)
        await make_business(repos, "Dallas Haulers", city="Dallas", description="Roll-off dumpsters", rating=4.2)
        await make_business(repos, "Junk Kings", category="Junk Removal", rating=3.0)

        cache = BusinessCache(session_factory)
        await cache.refresh()

        austin = BusinessFilters(city="austin")
        assert cache.count_businesses(austin) == 3
        assert [b["name"] for b in cache.get_businesses(austin)] == ["Roll Off Pros", "Acme Dumpsters", "Junk Kings"]

        assert [b["name"] for b in cache.get_businesses(BusinessFilters(city="Austin", limit=1, offset=1))] == [
            "Acme Dumpsters"
        ]
        assert cache.count_businesses(BusinessFilters(category="junk removal")) == 1
        assert cache.count_businesses(BusinessFilters(featured=True)) == 1
        assert cache.count_businesses(BusinessFilters(search="roll")) == 2

    async def test_cities_by_state(self, repos, session_factory):
        await make_business(repos, "Acme Dumpsters")
        await make_business(repos, "Mile High Bins", city="Denver", state="CO")

        cache = BusinessCache(session_factory)
        await cache.refresh()

        assert cache.get_cities_by_state("co") == [{"city": "Denver", "state": "CO", "count": 1}]

    async def test_concurrent_refreshes_share_one_load(self, repos, session_factory):
        await make_business(repos)
        cache = BusinessCache(session_factory)
        loads = 0
        original = cache._load

        async def counting_load():
            nonlocal loads
            loads += 1
            await asyncio.sleep(0.01)
            return await original()

        cache._load = counting_load
        results = await asyncio.gather(cache.refresh(), cache.refresh(), cache.refresh())

        assert results == [True, True, True]
        assert loads == 1

    async def test_failed_refresh_keeps_previous_snapshot(self, repos, session_factory):
        await make_business(repos)
        cache = BusinessCache(session_factory)
        await cache.refresh()
        before = cache.snapshot

        def broken_factory():
            raise RuntimeError("database down")

        cache._session_factory = broken_factory
        assert await cache.refresh() is False
        assert cache.snapshot is before
        assert cache.count_businesses() == 1

    async def test_invalidate_sees_committed_writes(self, repos, session_factory):
        cache = BusinessCache(session_factory)
        await cache.refresh()
        assert cache.count_businesses() == 0

        await make_business(repos)
        assert await cache.invalidate() is True
        assert cache.count_businesses() == 1

    async def test_upsert_and_remove_patch_snapshot(self, repos, session_factory):
        business = await make_business(repos, rating=3.0)
        cache = BusinessCache(session_factory)
        await cache.refresh()

        business.name = "Acme Renamed"
        cache.upsert(business)
        assert cache.get_business(business.id)["name"] == "Acme Renamed"
        assert cache.count_businesses() == 1

        cache.upsert({"id": "extra", "name": "Extra Bins", "city": "Austin", "state": "TX", "rating": 5.0})
        assert cache.get_businesses()[0]["id"] == "extra"

        cache.remove(business.id)
        assert cache.get_business(business.id) is None
        assert cache.count_businesses() == 1

    async def test_write_through_is_noop_before_load(self, session_factory):
        cache = BusinessCache(session_factory)
        cache.upsert({"id": "x", "name": "X"})
        cache.remove("x")
        assert cache.snapshot is None

    async def test_start_and_stop(self, session_factory):
        cache = BusinessCache(session_factory, refresh_seconds=3600)
        await cache.start()
        assert cache.is_initialized
        assert cache._loop_task is not None

        await cache.stop()
        assert cache._loop_task is None
