from enum import Enum
from typing import Optional, Union
from datetime import datetime
from pydantic import BaseModel, Field, AliasChoices, ConfigDict, field_validator

# Rows use bigint ids in older tables and UUIDs in newer ones
RecordId = Union[int, str]


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Forward-only lifecycle. Completed and cancelled are terminal.
ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS[current]


class ClientTier(str, Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"

    @property
    def rank(self) -> int:
        return list(ClientTier).index(self)


class Booking(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: RecordId
    client_id: str
    service_id: RecordId
    shop_id: Optional[RecordId] = Field(default=None, validation_alias=AliasChoices("shop_id", "salon_id"))
    start_at: datetime
    end_at: Optional[datetime] = None
    status: BookingStatus = BookingStatus.PENDING
    notes: Optional[str] = None
    staff_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _default_missing_status(cls, value):
        # Legacy rows may carry NULL status
        return value or BookingStatus.PENDING


class Service(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: RecordId
    name: str
    price: Optional[float] = None
    duration: Optional[int] = None
    category: Optional[str] = None
    shop_id: Optional[RecordId] = None
    is_active: bool = True


class Profile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    email: Optional[str] = None
    role: str = "client"
    full_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        if self.email:
            return self.email.split("@")[0]
        return "Client"


class Branch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: RecordId
    name: str
    address: Optional[str] = None
    is_open: bool = True
    rating: Optional[float] = None


class StaffMember(BaseModel):
    id: str
    name: str
    email: str = ""
    role: str
    status: str
    rating: Optional[float] = None
    next_appointment: Optional[str] = None


class AppointmentWithDetails(Booking):
    client_email: str = "Unknown"
    client_name: str = "Client"
    service_name: str
    service_price: float
    shop_name: Optional[str] = None
    shop_address: Optional[str] = None
