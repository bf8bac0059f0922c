import asyncio
import pytest
from unittest.mock import AsyncMock

from salon_app.models.dashboard_models import DashboardStats, RevenuePoint
from salon_app.services.admin_data import AdminDataService, has_data
from salon_app.services.cache import CacheCategory, TTLCache, make_key
from salon_app.services.dashboard_service import DashboardService


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_get_or_fetch_memoizes_until_expiry():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=300, clock=clock)
    fetch = AsyncMock(side_effect=["first", "second"])
    key = make_key(CacheCategory.STATS)

    assert await cache.get_or_fetch(key, fetch) == "first"
    clock.now += 299
    assert await cache.get_or_fetch(key, fetch) == "first"
    clock.now += 1
    assert await cache.get_or_fetch(key, fetch) == "second"
    assert fetch.await_count == 2


@pytest.mark.asyncio
async def test_keys_include_parameters():
    cache = TTLCache(ttl_seconds=300, clock=FakeClock())
    fetch = AsyncMock(side_effect=["shop-1", "shop-2"])

    await cache.get_or_fetch(make_key(CacheCategory.STATS, shop_id="shop-1"), fetch)
    await cache.get_or_fetch(make_key(CacheCategory.STATS, shop_id="shop-2"), fetch)

    assert cache.get(make_key(CacheCategory.STATS, shop_id="shop-1")) == "shop-1"
    assert cache.get(make_key(CacheCategory.STATS, shop_id="shop-2")) == "shop-2"


@pytest.mark.asyncio
async def test_invalidate_single_key_and_all():
    cache = TTLCache(ttl_seconds=300, clock=FakeClock())
    stats, staff = make_key(CacheCategory.STATS), make_key(CacheCategory.STAFF)
    await cache.get_or_fetch(stats, AsyncMock(return_value=1))
    await cache.get_or_fetch(staff, AsyncMock(return_value=2))

    cache.invalidate(stats)
    assert cache.get(stats) is None
    assert cache.get(staff) == 2

    cache.invalidate()
    assert cache.get(staff) is None


@pytest.mark.asyncio
async def test_force_bypasses_fresh_entry():
    cache = TTLCache(ttl_seconds=300, clock=FakeClock())
    key = make_key(CacheCategory.CLIENTS)
    fetch = AsyncMock(side_effect=["old", "new"])

    await cache.get_or_fetch(key, fetch)
    assert await cache.get_or_fetch(key, fetch, force=True) == "new"
    assert cache.get(key) == "new"


@pytest.mark.asyncio
async def test_superseded_fetch_does_not_overwrite_newer_result():
    cache = TTLCache(ttl_seconds=300, clock=FakeClock())
    key = make_key(CacheCategory.APPOINTMENTS)
    slow_started = asyncio.Event()
    release_slow = asyncio.Event()

    async def slow_fetch():
        slow_started.set()
        await release_slow.wait()
        return "stale"

    async def fast_fetch():
        return "fresh"

    slow = asyncio.create_task(cache.get_or_fetch(key, slow_fetch))
    await slow_started.wait()
    assert await cache.get_or_fetch(key, fast_fetch, force=True) == "fresh"

    release_slow.set()
    assert await slow == "stale"
    assert cache.get(key) == "fresh"


@pytest.mark.asyncio
async def test_fetch_started_before_invalidation_is_dropped():
    cache = TTLCache(ttl_seconds=300, clock=FakeClock())
    key = make_key(CacheCategory.REVENUE)
    release = asyncio.Event()

    async def fetch():
        await release.wait()
        return "before-refresh"

    pending = asyncio.create_task(cache.get_or_fetch(key, fetch))
    await asyncio.sleep(0)
    cache.invalidate()
    release.set()
    await pending

    assert cache.get(key) is None


@pytest.mark.asyncio
async def test_admin_data_uses_cache_and_refresh_all():
    dashboard = AsyncMock()
    dashboard.get_dashboard_stats.return_value = DashboardStats(total_appointments=3)
    data = AdminDataService(dashboard=dashboard, cache=TTLCache(ttl_seconds=300, clock=FakeClock()))

    first = await data.fetch_dashboard_stats()
    second = await data.fetch_dashboard_stats()

    assert first is second
    assert dashboard.get_dashboard_stats.await_count == 1

    await data.refresh_all()
    assert dashboard.get_dashboard_stats.await_count == 2
    dashboard.get_staff_members.assert_awaited_once()
    dashboard.get_weekly_revenue.assert_awaited_once()


@pytest.mark.asyncio
async def test_rejected_results_are_not_stored():
    cache = TTLCache(ttl_seconds=300, clock=FakeClock())
    key = make_key(CacheCategory.STAFF)
    fetch = AsyncMock(side_effect=[[], ["anna"]])

    assert await cache.get_or_fetch(key, fetch, cache_if=bool) == []
    assert cache.get(key) is None
    assert await cache.get_or_fetch(key, fetch, cache_if=bool) == ["anna"]
    assert cache.get(key) == ["anna"]


def test_has_data():
    assert not has_data([])
    assert not has_data(DashboardStats())
    assert not has_data([RevenuePoint(date="2024-06-01", amount=0, day_label="Sat")])
    assert has_data([RevenuePoint(date="2024-06-01", amount=300, day_label="Sat")])
    assert has_data(DashboardStats(total_appointments=1))


@pytest.mark.asyncio
async def test_dashboard_recovers_after_outage(gateway, broken_gateway):
    dashboard = DashboardService(broken_gateway, tz="UTC")
    data = AdminDataService(dashboard=dashboard, cache=TTLCache(ttl_seconds=300, clock=FakeClock()))

    assert await data.fetch_all_appointments() == []
    assert await data.fetch_dashboard_stats() == DashboardStats()

    gateway.add_booking(client_id="client-1", service_id="svc-cut", shop_id="shop-1",
                        start_at="2024-06-01T10:00:00Z", status="completed")
    dashboard.gateway = gateway

    appointments = await data.fetch_all_appointments()
    stats = await data.fetch_dashboard_stats()

    assert len(appointments) == 1
    assert stats.total_revenue == 300
