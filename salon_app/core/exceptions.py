from typing import Optional


class SalonError(Exception):
    """Base class for every error raised by the booking and dashboard services."""

    message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(SalonError):
    """Raised before any persistence call when required booking fields are missing."""

    message = "Missing required booking fields"

    def __init__(self, message: Optional[str] = None, fields: Optional[list] = None):
        super().__init__(message)
        self.fields = fields or []


class NotFoundError(SalonError):
    message = "Record not found"


class InvalidTransition(SalonError):
    message = "Invalid status transition"

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change booking status from '{current}' to '{target}'")
        self.current = current
        self.target = target


class GatewayError(SalonError):
    """
    Error reported by the hosted database.
    Keeps the PostgREST / Postgres error code so callers can log it.
    """

    message = "Database request failed"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class DailyLimitReached(GatewayError):
    message = "Daily booking limit reached. Please select another date."

    def __init__(self, limit: int, code: Optional[str] = "P0001"):
        super().__init__(
            f"Daily booking limit reached ({limit} appointments). Please select another date.",
            code=code,
        )
        self.limit = limit


class ReferentialError(GatewayError):
    message = "Invalid service or salon ID. Please try again."


class SlotConflictError(GatewayError):
    message = "A booking already exists for this time slot."


class PermissionDeniedError(GatewayError):
    message = "Permission denied. Please check your Row Level Security policies."


class TransientGatewayError(GatewayError):
    message = "Database request failed"
