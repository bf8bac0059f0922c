from typing import List, Optional
from pydantic import BaseModel, Field

from salon_app.models.db_models import ClientTier

# --- Dashboard results ---
# Every field has an empty/zero default so a failed aggregation can still be rendered.

class DashboardStats(BaseModel):
    today_revenue: float = 0
    total_revenue: float = 0
    revenue_change: int = 0
    total_appointments: int = 0
    appointments_change: int = 0
    active_clients: int = 0
    clients_change: int = 0
    staff_utilization: int = 0
    utilization_change: int = 0


class PopularService(BaseModel):
    name: str
    count: int
    revenue: float


class PeakHour(BaseModel):
    hour: str
    count: int


class MonthlyTrendPoint(BaseModel):
    month: str
    revenue: float
    bookings: int


class AnalyticsData(BaseModel):
    total_revenue: float = 0
    total_bookings: int = 0
    average_booking_value: float = 0
    client_retention_rate: int = 0
    popular_services: List[PopularService] = Field(default_factory=list)
    peak_hours: List[PeakHour] = Field(default_factory=list)
    monthly_trend: List[MonthlyTrendPoint] = Field(default_factory=list)


class RevenuePoint(BaseModel):
    date: str
    amount: float
    day_label: str


class ClientSummary(BaseModel):
    id: str
    email: str
    name: str
    total_visits: int = 0
    total_spent: float = 0
    last_visit: Optional[str] = None
    tier: ClientTier = ClientTier.BRONZE
    created_at: Optional[str] = None
