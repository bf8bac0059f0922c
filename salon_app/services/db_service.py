from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import create_async_client, AsyncClient

from salon_app.core.config import settings
from salon_app.core.exceptions import (
    DailyLimitReached,
    GatewayError,
    PermissionDeniedError,
    ReferentialError,
    SlotConflictError,
    TransientGatewayError,
)
from salon_app.core.logger import logger

DAILY_LIMIT_MARKER = "DAILY_APPOINTMENT_LIMIT_REACHED"


@dataclass(frozen=True)
class SchemaCapabilities:
    """Optional columns available in the deployed schema, resolved once per process."""

    version: int
    bookings_updated_at: bool

    @classmethod
    def for_version(cls, version: int) -> "SchemaCapabilities":
        return cls(version=version, bookings_updated_at=version >= 2)


def translate_api_error(error: APIError, operation: str) -> GatewayError:
    """
    Maps a PostgREST error onto the service error taxonomy.
    P0001 is raised by the booking trigger when the per-branch daily cap is hit.
    """
    code = getattr(error, "code", None)
    message = getattr(error, "message", None) or ""

    if code == "P0001" and DAILY_LIMIT_MARKER in message:
        return DailyLimitReached(settings.DAILY_BOOKING_LIMIT, code=code)
    if code == "23503":
        return ReferentialError(code=code)
    if code == "23505":
        return SlotConflictError(code=code)
    if code == "42501":
        return PermissionDeniedError(code=code)
    return TransientGatewayError(f"Failed to {operation}: {message or code}", code=code)


class DBService:
    def __init__(self, client: Optional[AsyncClient] = None, capabilities: Optional[SchemaCapabilities] = None):
        self._client = client
        self.capabilities = capabilities or SchemaCapabilities.for_version(settings.BOOKINGS_SCHEMA_VERSION)

    async def get_client(self) -> AsyncClient:
        if not self._client:
            if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
                logger.warning("⚠️ Supabase credentials missing")
                raise TransientGatewayError("Database is not configured")
            try:
                self._client = await create_async_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
                logger.info("✅ Supabase Async client initialized")
            except Exception as e:
                logger.error(f"❌ Failed to initialize Supabase Async: {e}")
                raise TransientGatewayError("Database is not reachable") from e
        return self._client

    async def _execute(self, query, operation: str) -> List[Dict[str, Any]]:
        try:
            response = await query.execute()
        except APIError as e:
            logger.error(f"❌ DB Error ({operation}): [{e.code}] {e.message}")
            raise translate_api_error(e, operation) from e
        except httpx.HTTPError as e:
            logger.error(f"❌ DB transport error ({operation}): {e}")
            raise TransientGatewayError(f"Failed to {operation}") from e
        return response.data or []

    async def _table(self, name: str):
        client = await self.get_client()
        return client.table(name)

    # --- Bookings ---

    async def insert_booking(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """
        Inserts a booking row and returns it as stored.
        The database enforces the daily cap and referential integrity.
        """
        table = await self._table("bookings")
        data = await self._execute(table.insert(row), "create booking")
        if not data:
            raise TransientGatewayError("Failed to create booking: empty response")
        logger.info(f"✅ Booking {data[0].get('id')} stored for client {row.get('client_id')}")
        return data[0]

    async def get_booking(self, booking_id) -> Optional[Dict[str, Any]]:
        table = await self._table("bookings")
        data = await self._execute(table.select("*").eq("id", booking_id).limit(1), "load booking")
        return data[0] if data else None

    async def update_booking_status(self, booking_id, status: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        values: Dict[str, Any] = {"status": status}
        if self.capabilities.bookings_updated_at:
            values["updated_at"] = (now or datetime.now(timezone.utc)).isoformat()

        table = await self._table("bookings")
        data = await self._execute(table.update(values).eq("id", booking_id), "update booking status")
        return data[0] if data else None

    async def list_bookings(
        self,
        shop_id=None,
        client_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        start_from: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
        columns: str = "*",
        order_by: str = "start_at",
        desc: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        table = await self._table("bookings")
        query = table.select(columns)
        if shop_id is not None:
            query = query.eq("shop_id", shop_id)
        if client_id is not None:
            query = query.eq("client_id", client_id)
        if statuses:
            query = query.in_("status", list(statuses))
        if start_from is not None:
            query = query.gte("start_at", start_from.isoformat())
        if start_before is not None:
            query = query.lt("start_at", start_before.isoformat())
        query = query.order(order_by, desc=desc)
        if limit:
            query = query.limit(limit)
        return await self._execute(query, "list bookings")

    # --- Lookups ---

    async def get_services(self, ids: Iterable) -> List[Dict[str, Any]]:
        ids = [i for i in set(ids) if i is not None]
        if not ids:
            return []
        table = await self._table("services")
        return await self._execute(table.select("*").in_("id", ids), "load services")

    async def get_shops(self, ids: Iterable) -> List[Dict[str, Any]]:
        ids = [i for i in set(ids) if i is not None]
        if not ids:
            return []
        table = await self._table("shops")
        return await self._execute(table.select("*").in_("id", ids), "load shops")

    async def get_profiles(self, ids: Optional[Iterable] = None, roles: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        table = await self._table("profiles")
        query = table.select("*")
        if ids is not None:
            ids = [i for i in set(ids) if i is not None]
            if not ids:
                return []
            query = query.in_("id", ids)
        if roles:
            query = query.in_("role", list(roles))
        return await self._execute(query.order("created_at", desc=True), "load profiles")


db_service = DBService()
