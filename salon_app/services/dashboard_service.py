from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from salon_app.core.config import settings
from salon_app.core.logger import logger
from salon_app.models.db_models import AppointmentWithDetails, Booking, BookingStatus, Profile, StaffMember
from salon_app.models.dashboard_models import AnalyticsData, ClientSummary, DashboardStats, RevenuePoint
from salon_app.services import metrics
from salon_app.services.booking_service import attach_details
from salon_app.services.db_service import db_service


class DashboardService:
    """
    Read-only dashboard figures for admins and managers.
    Never raises: on any failure the error is logged and an empty result is returned.
    """

    def __init__(self, gateway=None, tz: Optional[str] = None):
        self.gateway = gateway or db_service
        self.tz = ZoneInfo(tz or settings.TIMEZONE)

    def _day_bounds(self, now: Optional[datetime]) -> Tuple[datetime, datetime]:
        local_now = (now or datetime.now(self.tz)).astimezone(self.tz)
        today = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        return local_now, today

    def _between(self, bookings: List[Booking], start: datetime, end: datetime) -> List[Booking]:
        return [b for b in bookings if start <= metrics.to_local(b.start_at, self.tz) < end]

    async def _load_bookings(self, **filters) -> List[Booking]:
        rows = await self.gateway.list_bookings(**filters)
        return [Booking.model_validate(row) for row in rows]

    async def _load_services(self, bookings: List[Booking]) -> Dict[object, dict]:
        services = await self.gateway.get_services(b.service_id for b in bookings)
        return {s["id"]: s for s in services}

    @staticmethod
    def _prices(services: Dict[object, dict]) -> Dict[object, Optional[float]]:
        return {service_id: s.get("price") for service_id, s in services.items()}

    async def get_dashboard_stats(self, shop_id=None, now: Optional[datetime] = None) -> DashboardStats:
        try:
            now, today = self._day_bounds(now)
            tomorrow = today + timedelta(days=1)
            yesterday = today - timedelta(days=1)

            bookings = await self._load_bookings(shop_id=shop_id)
            prices = self._prices(await self._load_services(bookings))

            today_bookings = self._between(bookings, today, tomorrow)
            yesterday_bookings = self._between(bookings, yesterday, today)

            # Trailing 30 days vs the 30 days before
            this_period = self._between(bookings, today - timedelta(days=30), tomorrow)
            last_period = self._between(bookings, today - timedelta(days=60), today - timedelta(days=30))

            active_clients = metrics.count_active_clients(bookings, now)
            previous_clients = metrics.clients_created_between(bookings, now - timedelta(days=60), now - timedelta(days=30))

            staff = await self.gateway.get_profiles(roles=["staff"])
            utilization = metrics.staff_utilization(today_bookings, len(staff))
            previous_utilization = metrics.staff_utilization(yesterday_bookings, len(staff))

            return DashboardStats(
                today_revenue=metrics.calculate_revenue(today_bookings, prices),
                total_revenue=metrics.calculate_revenue(bookings, prices),
                revenue_change=metrics.revenue_change(
                    metrics.calculate_revenue(this_period, prices),
                    metrics.calculate_revenue(last_period, prices),
                ),
                total_appointments=len(today_bookings),
                appointments_change=metrics.percent_change(len(today_bookings), len(yesterday_bookings)),
                active_clients=active_clients,
                clients_change=metrics.percent_change(active_clients, previous_clients),
                staff_utilization=utilization,
                utilization_change=metrics.percent_change(utilization, previous_utilization),
            )
        except Exception:
            logger.exception("❌ Error computing dashboard stats")
            return DashboardStats()

    async def get_analytics(self, shop_id=None) -> AnalyticsData:
        try:
            bookings = await self._load_bookings(shop_id=shop_id, order_by="created_at")
            services = await self._load_services(bookings)
            prices = self._prices(services)

            return AnalyticsData(
                total_revenue=metrics.calculate_revenue(bookings, prices),
                total_bookings=len(bookings),
                average_booking_value=metrics.average_booking_value(bookings, prices),
                client_retention_rate=metrics.client_retention_rate(bookings),
                popular_services=metrics.popular_services(bookings, services),
                peak_hours=metrics.peak_hours(bookings, self.tz),
                monthly_trend=metrics.monthly_trend(bookings, prices, self.tz),
            )
        except Exception:
            logger.exception("❌ Error computing analytics")
            return AnalyticsData()

    async def get_weekly_revenue(self, shop_id=None, now: Optional[datetime] = None) -> List[RevenuePoint]:
        try:
            _, today = self._day_bounds(now)
            bookings = await self._load_bookings(
                shop_id=shop_id,
                statuses=[BookingStatus.COMPLETED.value],
                start_from=today - timedelta(days=6),
                start_before=today + timedelta(days=1),
            )
            prices = self._prices(await self._load_services(bookings))
            return metrics.weekly_revenue(bookings, prices, today.date(), self.tz)
        except Exception:
            logger.exception("❌ Error computing weekly revenue")
            return []

    async def get_top_clients(self, limit: int = 10) -> List[ClientSummary]:
        try:
            bookings = await self._load_bookings(statuses=[BookingStatus.COMPLETED.value], order_by="created_at")
            if not bookings:
                return []
            prices = self._prices(await self._load_services(bookings))
            profiles = await self.gateway.get_profiles(ids=[b.client_id for b in bookings])
            emails = {p["id"]: p.get("email") for p in profiles}
            return metrics.top_clients(bookings, prices, emails, limit=limit)
        except Exception:
            logger.exception("❌ Error computing top clients")
            return []

    async def get_all_clients(self) -> List[ClientSummary]:
        try:
            profiles = [Profile.model_validate(p) for p in await self.gateway.get_profiles(roles=["client"])]
            bookings = await self._load_bookings(statuses=[BookingStatus.COMPLETED.value])
            prices = self._prices(await self._load_services(bookings))
            return metrics.summarize_clients(profiles, bookings, prices)
        except Exception:
            logger.exception("❌ Error summarizing clients")
            return []

    async def get_today_appointments(self, shop_id=None, now: Optional[datetime] = None, limit: int = 10) -> List[AppointmentWithDetails]:
        try:
            _, today = self._day_bounds(now)
            rows = await self.gateway.list_bookings(
                shop_id=shop_id,
                start_from=today,
                start_before=today + timedelta(days=1),
                desc=False,
                limit=limit,
            )
            return await attach_details(self.gateway, rows)
        except Exception:
            logger.exception("❌ Error fetching today appointments")
            return []

    async def get_all_appointments(self, shop_id=None, limit: int = 50) -> List[AppointmentWithDetails]:
        try:
            rows = await self.gateway.list_bookings(shop_id=shop_id, desc=True, limit=limit)
            return await attach_details(self.gateway, rows)
        except Exception:
            logger.exception("❌ Error fetching appointments")
            return []

    async def get_staff_members(self) -> List[StaffMember]:
        try:
            profiles = await self.gateway.get_profiles(roles=["staff", "manager"])
            return metrics.build_staff_roster(Profile.model_validate(p) for p in profiles)
        except Exception:
            logger.exception("❌ Error fetching staff")
            return []
