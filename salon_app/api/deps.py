from salon_app.services.admin_data import AdminDataService
from salon_app.services.booking_service import BookingService

booking_service = BookingService()
admin_data_service = AdminDataService()

def get_booking_service() -> BookingService:
    return booking_service

def get_admin_data() -> AdminDataService:
    return admin_data_service
