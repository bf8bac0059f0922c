import pytest
import httpx
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from postgrest.exceptions import APIError

from salon_app.core.exceptions import (
    DailyLimitReached,
    PermissionDeniedError,
    ReferentialError,
    SlotConflictError,
    TransientGatewayError,
)
from salon_app.services.db_service import DBService, SchemaCapabilities, translate_api_error


def make_client(execute):
    """Supabase client whose query chain ends in the given execute mock."""
    query = MagicMock()
    for method in ("select", "insert", "update", "eq", "in_", "gte", "lt", "order", "limit"):
        getattr(query, method).return_value = query
    query.execute = execute
    client = MagicMock()
    client.table.return_value = query
    return client, query


@pytest.mark.parametrize("code, message, expected", [
    ("P0001", "DAILY_APPOINTMENT_LIMIT_REACHED", DailyLimitReached),
    ("23503", "insert violates foreign key constraint", ReferentialError),
    ("23505", "duplicate key value", SlotConflictError),
    ("42501", "new row violates row-level security policy", PermissionDeniedError),
    ("P0001", "some other trigger error", TransientGatewayError),
    ("08006", "connection failure", TransientGatewayError),
])
def test_translate_api_error(code, message, expected):
    error = APIError({"code": code, "message": message, "details": None, "hint": None})

    translated = translate_api_error(error, "create booking")

    assert type(translated) is expected
    assert translated.code == code


def test_daily_limit_message():
    error = APIError({"code": "P0001", "message": "DAILY_APPOINTMENT_LIMIT_REACHED", "details": None, "hint": None})

    translated = translate_api_error(error, "create booking")

    assert translated.message == "Daily booking limit reached (100 appointments). Please select another date."


@pytest.mark.asyncio
async def test_insert_booking_translates_daily_limit():
    error = APIError({"code": "P0001", "message": "DAILY_APPOINTMENT_LIMIT_REACHED", "details": None, "hint": None})
    client, _ = make_client(AsyncMock(side_effect=error))
    db = DBService(client=client)

    with pytest.raises(DailyLimitReached) as exc:
        await db.insert_booking({"client_id": "c", "service_id": "s", "shop_id": "b", "start_at": "2024-06-01T10:00:00Z"})

    assert exc.value.__cause__ is error


@pytest.mark.asyncio
async def test_transport_errors_become_transient():
    client, _ = make_client(AsyncMock(side_effect=httpx.ConnectError("boom")))
    db = DBService(client=client)

    with pytest.raises(TransientGatewayError):
        await db.list_bookings()


@pytest.mark.asyncio
async def test_insert_booking_returns_stored_row():
    stored = {"id": 7, "status": "pending"}
    client, query = make_client(AsyncMock(return_value=MagicMock(data=[stored])))
    db = DBService(client=client)

    row = await db.insert_booking({"status": "pending"})

    assert row == stored
    client.table.assert_called_with("bookings")
    query.insert.assert_called_once_with({"status": "pending"})


@pytest.mark.asyncio
async def test_status_update_includes_updated_at_when_supported():
    client, query = make_client(AsyncMock(return_value=MagicMock(data=[{"id": 1}])))
    db = DBService(client=client, capabilities=SchemaCapabilities.for_version(2))
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    await db.update_booking_status(1, "confirmed", now)

    query.update.assert_called_once_with({"status": "confirmed", "updated_at": now.isoformat()})


@pytest.mark.asyncio
async def test_status_update_skips_updated_at_on_old_schema():
    client, query = make_client(AsyncMock(return_value=MagicMock(data=[{"id": 1}])))
    db = DBService(client=client, capabilities=SchemaCapabilities.for_version(1))

    await db.update_booking_status(1, "confirmed")

    query.update.assert_called_once_with({"status": "confirmed"})
    assert query.execute.await_count == 1


@pytest.mark.asyncio
async def test_list_bookings_applies_filters():
    client, query = make_client(AsyncMock(return_value=MagicMock(data=[])))
    db = DBService(client=client)
    start = datetime(2024, 6, 1, tzinfo=timezone.utc)

    rows = await db.list_bookings(shop_id="shop-1", statuses=["completed"], start_from=start, limit=5)

    assert rows == []
    query.eq.assert_called_once_with("shop_id", "shop-1")
    query.in_.assert_called_once_with("status", ["completed"])
    query.gte.assert_called_once_with("start_at", start.isoformat())
    query.limit.assert_called_once_with(5)


@pytest.mark.asyncio
async def test_lookups_skip_query_for_empty_ids():
    client, query = make_client(AsyncMock())
    db = DBService(client=client)

    assert await db.get_services([None]) == []
    assert await db.get_profiles(ids=[]) == []
    query.execute.assert_not_called()


@pytest.mark.asyncio
async def test_missing_credentials(monkeypatch):
    from salon_app.core.config import settings

    monkeypatch.setattr(settings, "SUPABASE_URL", "")
    db = DBService()

    with pytest.raises(TransientGatewayError):
        await db.get_client()
