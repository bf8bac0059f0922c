import asyncio
from typing import Optional

from salon_app.core.logger import logger
from salon_app.models.dashboard_models import AnalyticsData, DashboardStats, RevenuePoint
from salon_app.services.cache import CacheCategory, TTLCache, make_key
from salon_app.services.dashboard_service import DashboardService


def has_data(value) -> bool:
    """
    False for the empty or zeroed results the dashboard returns when a load fails.
    Those are not cached, so the next read tries the database again.
    """
    if isinstance(value, list):
        if all(isinstance(v, RevenuePoint) for v in value):
            return any(v.amount for v in value)
        return True
    if isinstance(value, (DashboardStats, AnalyticsData)):
        return value != type(value)()
    return value is not None

class AdminDataService:
    """
    Cached access to the admin dashboard data.
    Entries expire after the cache TTL (5 minutes by default) and `refresh_all`
    invalidates everything before reloading.
    """

    def __init__(self, dashboard: Optional[DashboardService] = None, cache: Optional[TTLCache] = None):
        self.dashboard = dashboard or DashboardService()
        self.cache = cache or TTLCache()

    async def fetch_dashboard_stats(self, shop_id=None, force_refresh: bool = False):
        return await self.cache.get_or_fetch(
            make_key(CacheCategory.STATS, shop_id=shop_id),
            lambda: self.dashboard.get_dashboard_stats(shop_id=shop_id),
            force=force_refresh,
            cache_if=has_data,
        )

    async def fetch_today_appointments(self, shop_id=None, force_refresh: bool = False):
        return await self.cache.get_or_fetch(
            make_key(CacheCategory.APPOINTMENTS, scope="today", shop_id=shop_id),
            lambda: self.dashboard.get_today_appointments(shop_id=shop_id),
            force=force_refresh,
            cache_if=has_data,
        )

    async def fetch_all_appointments(self, shop_id=None, limit: int = 100, force_refresh: bool = False):
        return await self.cache.get_or_fetch(
            make_key(CacheCategory.APPOINTMENTS, scope="all", shop_id=shop_id, limit=limit),
            lambda: self.dashboard.get_all_appointments(shop_id=shop_id, limit=limit),
            force=force_refresh,
            cache_if=has_data,
        )

    async def fetch_staff_members(self, force_refresh: bool = False):
        return await self.cache.get_or_fetch(
            make_key(CacheCategory.STAFF),
            self.dashboard.get_staff_members,
            force=force_refresh,
            cache_if=has_data,
        )

    async def fetch_top_clients(self, limit: int = 4, force_refresh: bool = False):
        return await self.cache.get_or_fetch(
            make_key(CacheCategory.CLIENTS, scope="top", limit=limit),
            lambda: self.dashboard.get_top_clients(limit=limit),
            force=force_refresh,
            cache_if=has_data,
        )

    async def fetch_all_clients(self, force_refresh: bool = False):
        return await self.cache.get_or_fetch(
            make_key(CacheCategory.CLIENTS, scope="all"),
            self.dashboard.get_all_clients,
            force=force_refresh,
            cache_if=has_data,
        )

    async def fetch_revenue_data(self, shop_id=None, force_refresh: bool = False):
        return await self.cache.get_or_fetch(
            make_key(CacheCategory.REVENUE, shop_id=shop_id),
            lambda: self.dashboard.get_weekly_revenue(shop_id=shop_id),
            force=force_refresh,
            cache_if=has_data,
        )

    async def fetch_analytics_data(self, shop_id=None, force_refresh: bool = False):
        return await self.cache.get_or_fetch(
            make_key(CacheCategory.ANALYTICS, shop_id=shop_id),
            lambda: self.dashboard.get_analytics(shop_id=shop_id),
            force=force_refresh,
            cache_if=has_data,
        )

    def clear_cache(self):
        self.cache.invalidate()

    async def refresh_all(self):
        logger.info("🔄 Refreshing all dashboard data")
        self.clear_cache()
        await asyncio.gather(
            self.fetch_dashboard_stats(force_refresh=True),
            self.fetch_today_appointments(force_refresh=True),
            self.fetch_all_appointments(force_refresh=True),
            self.fetch_staff_members(force_refresh=True),
            self.fetch_top_clients(force_refresh=True),
            self.fetch_all_clients(force_refresh=True),
            self.fetch_revenue_data(force_refresh=True),
            self.fetch_analytics_data(force_refresh=True),
        )
