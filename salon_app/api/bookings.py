from datetime import datetime
from typing import Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from salon_app.api.deps import get_booking_service
from salon_app.models.db_models import RecordId
from salon_app.services.booking_service import BookingService
from salon_app.services.slots import generate_time_slots

router = APIRouter()

class CreateBookingRequest(BaseModel):
    client_id: Optional[str] = None
    service_id: Optional[RecordId] = None
    shop_id: Optional[RecordId] = None
    start_at: Optional[Union[datetime, str]] = None
    notes: Optional[str] = None
    status: Optional[str] = None

class UpdateStatusRequest(BaseModel):
    status: str

@router.post("/bookings", status_code=201)
async def create_booking(req: CreateBookingRequest, service: BookingService = Depends(get_booking_service)):
    # Missing fields are reported by the service as a ValidationError
    return await service.create_booking(
        req.client_id, req.service_id, req.shop_id, req.start_at, notes=req.notes, status=req.status
    )

@router.get("/bookings/{booking_id}")
async def get_booking(booking_id: str, service: BookingService = Depends(get_booking_service)):
    return await service.get_booking(booking_id)

@router.patch("/bookings/{booking_id}/status")
async def update_booking_status(booking_id: str, req: UpdateStatusRequest, service: BookingService = Depends(get_booking_service)):
    return await service.update_status(booking_id, req.status)

@router.post("/bookings/{booking_id}/cancel")
async def cancel_booking(booking_id: str, service: BookingService = Depends(get_booking_service)):
    return await service.cancel_booking(booking_id)

@router.get("/clients/{client_id}/bookings")
async def client_bookings(client_id: str, upcoming: bool = False, service: BookingService = Depends(get_booking_service)):
    if upcoming:
        return await service.list_upcoming_bookings(client_id)
    return await service.list_client_bookings(client_id)

@router.get("/slots")
async def time_slots():
    return {"slots": generate_time_slots()}
