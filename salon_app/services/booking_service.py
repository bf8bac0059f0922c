from typing import Any, Dict, List, Optional, Union
from datetime import datetime, timezone

from salon_app.core.config import settings
from salon_app.core.exceptions import DailyLimitReached, InvalidTransition, NotFoundError, ValidationError
from salon_app.core.logger import logger
from salon_app.models.db_models import AppointmentWithDetails, Booking, BookingStatus, Branch, Service, can_transition
from salon_app.services.db_service import db_service
from salon_app.services.metrics import resolve_price


def _parse_start(start_at: Union[str, datetime]) -> str:
    """Validates the start timestamp and returns it in the form it will be stored."""
    if isinstance(start_at, datetime):
        return start_at.isoformat()
    try:
        datetime.fromisoformat(str(start_at).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid start_at '{start_at}'. Expected an ISO-8601 timestamp.", fields=["start_at"])
    return start_at


async def attach_details(gateway, rows: List[Dict[str, Any]], include_shops: bool = False) -> List[AppointmentWithDetails]:
    """
    Joins booking rows with client email, service name/price and (optionally) shop details.
    Unknown references fall back to placeholders instead of failing.
    """
    if not rows:
        return []

    services = await gateway.get_services(r.get("service_id") for r in rows)
    profiles = await gateway.get_profiles(ids=[r.get("client_id") for r in rows])
    shops = []
    if include_shops:
        shops = await gateway.get_shops(r.get("shop_id") or r.get("salon_id") for r in rows)

    service_map = {s["id"]: Service.model_validate(s) for s in services}
    email_map = {p["id"]: p.get("email") for p in profiles}
    shop_map = {s["id"]: Branch.model_validate(s) for s in shops}

    result = []
    for row in rows:
        service = service_map.get(row.get("service_id"))
        email = email_map.get(row.get("client_id"))
        shop_id = row.get("shop_id") or row.get("salon_id")
        shop = shop_map.get(shop_id)

        details = {
            **row,
            "client_email": email or "Unknown",
            "client_name": email.split("@")[0] if email else "Client",
            "service_name": service.name if service else f"Service #{row.get('service_id')}",
            "service_price": resolve_price(service.price if service else None),
        }
        if include_shops:
            details["shop_name"] = shop.name if shop else (f"Salon #{shop_id}" if shop_id else "Unknown Location")
            details["shop_address"] = (shop.address if shop else None) or ""
        result.append(AppointmentWithDetails.model_validate(details))
    return result


class BookingService:
    def __init__(self, gateway=None):
        self.gateway = gateway or db_service

    async def create_booking(
        self,
        client_id: str,
        service_id,
        shop_id,
        start_at: Union[str, datetime],
        notes: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Booking:
        """
        Creates a new booking. Status is always `pending`, whatever the caller passes.
        Raises DailyLimitReached when the branch is fully booked for that day.
        """
        required = {"client_id": client_id, "service_id": service_id, "shop_id": shop_id, "start_at": start_at}
        missing = [name for name, value in required.items() if value is None or (isinstance(value, str) and not value.strip())]
        if missing:
            logger.info(f"📥 Booking Request rejected, missing: {missing}")
            raise ValidationError(f"Missing required booking fields: {', '.join(missing)}", fields=missing)

        start_value = _parse_start(start_at)

        if status and status != BookingStatus.PENDING:
            logger.warning(f"⚠️ Ignoring requested status '{status}', new bookings start as pending")

        row = {
            "client_id": client_id,
            "service_id": service_id,
            "shop_id": shop_id,
            "start_at": start_value,
            "status": BookingStatus.PENDING.value,
            "notes": notes or settings.WALK_IN_NOTE,
        }

        logger.info(f"📥 Booking Request - client {client_id}, service {service_id}, shop {shop_id}, start {start_value}")
        try:
            stored = await self.gateway.insert_booking(row)
        except DailyLimitReached:
            logger.warning(f"🚫 Daily limit reached for shop {shop_id} on {start_value[:10]}")
            raise

        return Booking.model_validate(stored)

    async def get_booking(self, booking_id) -> Booking:
        row = await self.gateway.get_booking(booking_id)
        if not row:
            raise NotFoundError(f"Booking {booking_id} not found")
        return Booking.model_validate(row)

    async def update_status(self, booking_id, status: Union[str, BookingStatus], now: Optional[datetime] = None) -> Booking:
        try:
            target = BookingStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown booking status '{status}'", fields=["status"])

        booking = await self.get_booking(booking_id)
        if not can_transition(booking.status, target):
            logger.warning(f"🚫 Rejected transition {booking.status.value} -> {target.value} for booking {booking_id}")
            raise InvalidTransition(booking.status.value, target.value)

        if booking.status == target:
            return booking

        updated = await self.gateway.update_booking_status(booking_id, target.value, now or datetime.now(timezone.utc))
        if not updated:
            raise NotFoundError(f"Booking {booking_id} not found")

        logger.info(f"🔄 Booking {booking_id}: {booking.status.value} -> {target.value}")
        return Booking.model_validate(updated)

    async def cancel_booking(self, booking_id) -> Booking:
        return await self.update_status(booking_id, BookingStatus.CANCELLED)

    async def list_client_bookings(self, client_id: str) -> List[AppointmentWithDetails]:
        rows = await self.gateway.list_bookings(client_id=client_id, order_by="start_at", desc=True)
        return await attach_details(self.gateway, rows, include_shops=True)

    async def list_upcoming_bookings(self, client_id: str, now: Optional[datetime] = None) -> List[AppointmentWithDetails]:
        rows = await self.gateway.list_bookings(
            client_id=client_id,
            statuses=[BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value],
            start_from=now or datetime.now(timezone.utc),
            order_by="start_at",
            desc=False,
        )
        return await attach_details(self.gateway, rows, include_shops=True)
