from typing import Optional

from fastapi import APIRouter, Depends

from salon_app.api.deps import get_admin_data
from salon_app.services.admin_data import AdminDataService

router = APIRouter(prefix="/dashboard")

@router.get("/stats")
async def dashboard_stats(shop_id: Optional[str] = None, refresh: bool = False, data: AdminDataService = Depends(get_admin_data)):
    return await data.fetch_dashboard_stats(shop_id=shop_id, force_refresh=refresh)

@router.get("/analytics")
async def analytics(shop_id: Optional[str] = None, refresh: bool = False, data: AdminDataService = Depends(get_admin_data)):
    return await data.fetch_analytics_data(shop_id=shop_id, force_refresh=refresh)

@router.get("/revenue")
async def weekly_revenue(shop_id: Optional[str] = None, refresh: bool = False, data: AdminDataService = Depends(get_admin_data)):
    return await data.fetch_revenue_data(shop_id=shop_id, force_refresh=refresh)

@router.get("/top-clients")
async def top_clients(limit: int = 4, refresh: bool = False, data: AdminDataService = Depends(get_admin_data)):
    return await data.fetch_top_clients(limit=limit, force_refresh=refresh)

@router.get("/clients")
async def all_clients(refresh: bool = False, data: AdminDataService = Depends(get_admin_data)):
    return await data.fetch_all_clients(force_refresh=refresh)

@router.get("/appointments/today")
async def today_appointments(shop_id: Optional[str] = None, refresh: bool = False, data: AdminDataService = Depends(get_admin_data)):
    return await data.fetch_today_appointments(shop_id=shop_id, force_refresh=refresh)

@router.get("/appointments")
async def all_appointments(shop_id: Optional[str] = None, limit: int = 100, refresh: bool = False, data: AdminDataService = Depends(get_admin_data)):
    return await data.fetch_all_appointments(shop_id=shop_id, limit=limit, force_refresh=refresh)

@router.get("/staff")
async def staff_members(refresh: bool = False, data: AdminDataService = Depends(get_admin_data)):
    return await data.fetch_staff_members(force_refresh=refresh)

@router.post("/refresh")
async def refresh_all(data: AdminDataService = Depends(get_admin_data)):
    await data.refresh_all()
    return {"status": "refreshed"}
