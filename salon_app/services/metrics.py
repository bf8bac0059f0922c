"""
Dashboard aggregations.

All functions are pure: they take already-fetched rows and recompute from scratch
on every call. Only `completed` bookings produce revenue.
"""
import math
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Mapping, Optional

from salon_app.core.config import settings
from salon_app.models.db_models import Booking, BookingStatus, ClientTier, Profile, StaffMember
from salon_app.models.dashboard_models import ClientSummary, MonthlyTrendPoint, PeakHour, PopularService, RevenuePoint

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
DAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
STAFF_STATUS_ROTATION = ["available", "busy", "available", "break"]

# (minimum completed visits, tier), checked top-down
TIER_THRESHOLDS = [
    (26, ClientTier.PLATINUM),
    (11, ClientTier.GOLD),
    (6, ClientTier.SILVER),
]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def to_local(value: datetime, tz: tzinfo) -> datetime:
    # Naive timestamps from the database are UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz)


def completed(bookings: Iterable[Booking]) -> List[Booking]:
    return [b for b in bookings if b.status == BookingStatus.COMPLETED]


def resolve_price(price: Optional[float], default: Optional[float] = None) -> float:
    """A missing price falls back to the default; 0 is a real price."""
    if price is None:
        return settings.DEFAULT_SERVICE_PRICE if default is None else default
    return price


def price_of(booking: Booking, prices: Mapping, default: Optional[float] = None) -> float:
    return resolve_price(prices.get(booking.service_id), default)


# --- Revenue ---

def calculate_revenue(bookings: Iterable[Booking], prices: Mapping) -> float:
    return sum(price_of(b, prices) for b in completed(bookings))


def percent_change(current: float, previous: float) -> int:
    """
    Percentage change rounded half-up to an integer.
    With no previous value the change is 0 when current is 0 too, and 100 otherwise.
    """
    if previous == 0:
        return 100 if current > 0 else 0
    return round_half_up((current - previous) / previous * 100)


def revenue_change(current: float, previous: float) -> int:
    return percent_change(current, previous)


def average_booking_value(bookings: Iterable[Booking], prices: Mapping) -> float:
    done = completed(bookings)
    if not done:
        return 0
    return calculate_revenue(done, prices) / len(done)


def weekly_revenue(bookings: Iterable[Booking], prices: Mapping, today: date, tz: tzinfo) -> List[RevenuePoint]:
    days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
    amounts = {day: 0 for day in days}

    for booking in completed(bookings):
        day = to_local(booking.start_at, tz).date()
        if day in amounts:
            amounts[day] += price_of(booking, prices)

    return [
        RevenuePoint(date=day.isoformat(), amount=amounts[day], day_label=DAY_LABELS[day.weekday()])
        for day in days
    ]


# --- Clients ---

def clients_created_between(bookings: Iterable[Booking], start: datetime, end: Optional[datetime] = None) -> int:
    start = to_local(start, timezone.utc)
    end = to_local(end, timezone.utc) if end is not None else None
    clients = set()
    for booking in bookings:
        created = booking.created_at
        if created is None:
            continue
        created = to_local(created, timezone.utc)
        if created >= start and (end is None or created < end):
            clients.add(booking.client_id)
    return len(clients)


def count_active_clients(bookings: Iterable[Booking], now: datetime, days: int = 30) -> int:
    """Distinct clients with at least one booking created in the trailing window."""
    return clients_created_between(bookings, now - timedelta(days=days))


def classify_tier(visits: int) -> ClientTier:
    for minimum, tier in TIER_THRESHOLDS:
        if visits >= minimum:
            return tier
    return ClientTier.BRONZE


def client_retention_rate(bookings: Iterable[Booking]) -> int:
    counts: Dict[str, int] = defaultdict(int)
    for booking in bookings:
        counts[booking.client_id] += 1
    if not counts:
        return 0
    returning = sum(1 for count in counts.values() if count >= 2)
    return round_half_up(returning / len(counts) * 100)


def _client_stats(bookings: Iterable[Booking], prices: Mapping) -> Dict[str, dict]:
    stats: Dict[str, dict] = {}
    for booking in completed(bookings):
        entry = stats.setdefault(booking.client_id, {"visits": 0, "total_spent": 0, "last_visit": None})
        entry["visits"] += 1
        entry["total_spent"] += price_of(booking, prices)
        start = to_local(booking.start_at, timezone.utc)
        if entry["last_visit"] is None or start > entry["last_visit"]:
            entry["last_visit"] = start
    return stats


def summarize_clients(profiles: Iterable[Profile], bookings: Iterable[Booking], prices: Mapping) -> List[ClientSummary]:
    stats = _client_stats(bookings, prices)
    summaries = []
    for profile in profiles:
        entry = stats.get(profile.id, {})
        visits = entry.get("visits", 0)
        last_visit = entry.get("last_visit")
        summaries.append(ClientSummary(
            id=profile.id,
            email=profile.email or "",
            name=profile.display_name,
            total_visits=visits,
            total_spent=entry.get("total_spent", 0),
            last_visit=last_visit.isoformat() if last_visit else None,
            tier=classify_tier(visits),
            created_at=profile.created_at.isoformat() if profile.created_at else None,
        ))
    return summaries


def top_clients(bookings: Iterable[Booking], prices: Mapping, emails: Mapping[str, str], limit: int = 10) -> List[ClientSummary]:
    stats = _client_stats(bookings, prices)
    clients = []
    for client_id, entry in stats.items():
        email = emails.get(client_id) or "unknown@example.com"
        clients.append(ClientSummary(
            id=client_id,
            email=email,
            name=email.split("@")[0],
            total_visits=entry["visits"],
            total_spent=entry["total_spent"],
            last_visit=entry["last_visit"].isoformat(),
            tier=classify_tier(entry["visits"]),
        ))
    clients.sort(key=lambda c: c.total_spent, reverse=True)
    return clients[:limit]


# --- Services, hours, trend ---

def popular_services(bookings: Iterable[Booking], services: Mapping[object, dict], limit: int = 5) -> List[PopularService]:
    prices = {sid: s.get("price") for sid, s in services.items()}
    counts: Dict[object, int] = defaultdict(int)
    revenue: Dict[object, float] = defaultdict(float)

    for booking in completed(bookings):
        counts[booking.service_id] += 1
        revenue[booking.service_id] += price_of(booking, prices)

    ranked = [
        PopularService(
            name=(services.get(service_id) or {}).get("name") or f"Service #{service_id}",
            count=count,
            revenue=revenue[service_id],
        )
        for service_id, count in counts.items()
    ]
    ranked.sort(key=lambda s: s.count, reverse=True)
    return ranked[:limit]


def hour_label(hour: int) -> str:
    return f"{hour % 12 or 12}{'PM' if hour >= 12 else 'AM'}"


def peak_hours(bookings: Iterable[Booking], tz: tzinfo, limit: int = 5) -> List[PeakHour]:
    counts: Dict[str, int] = defaultdict(int)
    for booking in completed(bookings):
        counts[hour_label(to_local(booking.start_at, tz).hour)] += 1

    ranked = [PeakHour(hour=hour, count=count) for hour, count in counts.items()]
    ranked.sort(key=lambda h: h.count, reverse=True)
    return ranked[:limit]


def monthly_trend(bookings: Iterable[Booking], prices: Mapping, tz: tzinfo, months: int = 6) -> List[MonthlyTrendPoint]:
    buckets: Dict[tuple, dict] = {}
    for booking in completed(bookings):
        local = to_local(booking.start_at, tz)
        bucket = buckets.setdefault((local.year, local.month), {"revenue": 0, "bookings": 0})
        bucket["revenue"] += price_of(booking, prices)
        bucket["bookings"] += 1

    trend = [
        MonthlyTrendPoint(month=f"{MONTH_NAMES[month - 1]} {year}", revenue=data["revenue"], bookings=data["bookings"])
        for (year, month), data in sorted(buckets.items())
    ]
    return trend[-months:] if months else trend


# --- Staff ---

def staff_utilization(bookings: Iterable[Booking], staff_count: int) -> int:
    if staff_count <= 0:
        return 0
    busy = {
        b.staff_id for b in bookings
        if b.staff_id and b.status in (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)
    }
    return min(round_half_up(len(busy) / staff_count * 100), 100)


def build_staff_roster(profiles: Iterable[Profile]) -> List[StaffMember]:
    # Availability is a display rotation, not derived from schedules
    return [
        StaffMember(
            id=profile.id,
            name=profile.display_name if profile.full_name or profile.email else "Staff Member",
            email=profile.email or "",
            role="Manager" if profile.role == "manager" else "Specialist",
            status=STAFF_STATUS_ROTATION[index % len(STAFF_STATUS_ROTATION)],
        )
        for index, profile in enumerate(profiles)
    ]
