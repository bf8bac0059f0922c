import itertools
from datetime import datetime, timezone

import pytest

from salon_app.core.exceptions import DailyLimitReached, ReferentialError
from salon_app.services.db_service import SchemaCapabilities


class InMemoryGateway:
    """
    Stand-in for the Supabase gateway.
    Mirrors the database trigger that caps bookings per shop per calendar day.
    """

    def __init__(self, daily_limit: int = 100, updated_at: bool = True):
        self.daily_limit = daily_limit
        self.capabilities = SchemaCapabilities(version=2 if updated_at else 1, bookings_updated_at=updated_at)
        self.bookings = {}
        self.services = {}
        self.shops = {}
        self.profiles = {}
        self.insert_calls = 0
        self.update_calls = []
        self._ids = itertools.count(1)

    # --- seeding helpers ---

    def add_service(self, service_id, name, price):
        self.services[service_id] = {"id": service_id, "name": name, "price": price, "duration": 60}

    def add_shop(self, shop_id, name, address=""):
        self.shops[shop_id] = {"id": shop_id, "name": name, "address": address}

    def add_profile(self, profile_id, email, role="client", created_at="2024-01-01T00:00:00+00:00"):
        self.profiles[profile_id] = {"id": profile_id, "email": email, "role": role, "created_at": created_at}

    def add_booking(self, **row):
        booking_id = next(self._ids)
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self.bookings[booking_id] = {"id": booking_id, **row}
        return self.bookings[booking_id]

    # --- gateway interface ---

    async def insert_booking(self, row):
        self.insert_calls += 1
        if self.services and row["service_id"] not in self.services:
            raise ReferentialError(code="23503")
        day = str(row["start_at"])[:10]
        same_day = [
            b for b in self.bookings.values()
            if b["shop_id"] == row["shop_id"] and str(b["start_at"])[:10] == day
        ]
        if len(same_day) >= self.daily_limit:
            raise DailyLimitReached(self.daily_limit)
        return self.add_booking(**row)

    async def get_booking(self, booking_id):
        return self.bookings.get(int(booking_id))

    async def update_booking_status(self, booking_id, status, now=None):
        row = self.bookings.get(int(booking_id))
        if not row:
            return None
        values = {"status": status}
        if self.capabilities.bookings_updated_at:
            values["updated_at"] = (now or datetime.now(timezone.utc)).isoformat()
        self.update_calls.append(values)
        row.update(values)
        return row

    async def list_bookings(self, shop_id=None, client_id=None, statuses=None, start_from=None,
                            start_before=None, columns="*", order_by="start_at", desc=True, limit=None):
        rows = list(self.bookings.values())
        if shop_id is not None:
            rows = [r for r in rows if r["shop_id"] == shop_id]
        if client_id is not None:
            rows = [r for r in rows if r["client_id"] == client_id]
        if statuses:
            rows = [r for r in rows if r.get("status") in statuses]
        if start_from is not None:
            rows = [r for r in rows if _ts(r["start_at"]) >= start_from]
        if start_before is not None:
            rows = [r for r in rows if _ts(r["start_at"]) < start_before]
        rows.sort(key=lambda r: _ts(r.get(order_by) or r["start_at"]), reverse=desc)
        return rows[:limit] if limit else rows

    async def get_services(self, ids):
        return [self.services[i] for i in set(ids) if i in self.services]

    async def get_shops(self, ids):
        return [self.shops[i] for i in set(ids) if i in self.shops]

    async def get_profiles(self, ids=None, roles=None):
        rows = list(self.profiles.values())
        if ids is not None:
            wanted = set(ids)
            rows = [p for p in rows if p["id"] in wanted]
        if roles:
            rows = [p for p in rows if p["role"] in roles]
        return rows


def _ts(value):
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class BrokenGateway:
    """Every call fails like an unreachable database."""

    capabilities = SchemaCapabilities.for_version(2)

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise ConnectionError("database unreachable")
        return fail


@pytest.fixture
def gateway():
    gw = InMemoryGateway()
    gw.add_service("svc-cut", "Haircut", 300)
    gw.add_service("svc-color", "Coloring", 800)
    gw.add_shop("shop-1", "Downtown", "1 Main St")
    gw.add_profile("client-1", "anna@example.com")
    gw.add_profile("client-2", "ben@example.com")
    return gw


@pytest.fixture
def legacy_gateway():
    # Schema v1: bookings table has no updated_at column
    return InMemoryGateway(updated_at=False)


@pytest.fixture
def broken_gateway():
    return BrokenGateway()
