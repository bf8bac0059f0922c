from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from salon_app.core.config import settings
from salon_app.core.exceptions import (
    DailyLimitReached,
    GatewayError,
    InvalidTransition,
    NotFoundError,
    PermissionDeniedError,
    ReferentialError,
    SalonError,
    SlotConflictError,
    ValidationError,
)
from salon_app.api import bookings, dashboard
from salon_app.api.deps import booking_service
from salon_app.core.logger import setup_logging, logger
from contextlib import asynccontextmanager
from datetime import datetime

setup_logging()

# Status codes for errors the caller can act on
ERROR_STATUS = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (InvalidTransition, 409),
    (DailyLimitReached, 409),
    (SlotConflictError, 409),
    (PermissionDeniedError, 403),
    (ReferentialError, 400),
]

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    capabilities = booking_service.gateway.capabilities
    logger.info(f"🚀 Starting {settings.PROJECT_NAME} (schema v{capabilities.version}, updated_at={capabilities.bookings_updated_at})")
    yield
    # Shutdown
    logger.info("🛑 Shutting down backend")

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan
)

@app.exception_handler(SalonError)
async def salon_error_handler(request: Request, exc: SalonError):
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            content = {"message": exc.message, "error": type(exc).__name__}
            if isinstance(exc, ValidationError):
                content["fields"] = exc.fields
            return JSONResponse(status_code=status_code, content=content)

    # Remaining gateway failures get a generic message
    logger.error(f"❌ {request.method} {request.url.path} failed: {exc.message}")
    status_code = 502 if isinstance(exc, GatewayError) else 500
    return JSONResponse(
        status_code=status_code,
        content={"message": f"Failed to process {request.method} {request.url.path}", "error": type(exc).__name__}
    )

# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"🔥 UNHANDLED ERROR: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"message": "Internal Server Error", "detail": "An unexpected error occurred. Please contact support."}
    )

# Include routers
app.include_router(bookings.router, prefix=settings.API_PREFIX, tags=["Bookings"])
app.include_router(dashboard.router, prefix=settings.API_PREFIX, tags=["Dashboard"])

@app.get("/health")
async def health_check():
    return {"status": "ok", "environment": settings.ENVIRONMENT, "timestamp": datetime.now().isoformat()}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("salon_app.main:app", host="0.0.0.0", port=settings.PORT, reload=True)
