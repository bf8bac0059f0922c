from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Salon Booking Backend"
    API_PREFIX: str = ""

    # Server
    PORT: int = 8000
    ENVIRONMENT: str = "development"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_ERROR_FILE: str = "logs/errors.log"

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""

    # Schema version of the hosted database (2 = bookings.updated_at exists)
    BOOKINGS_SCHEMA_VERSION: int = 2

    # Business rules
    TIMEZONE: str = "UTC"
    DAILY_BOOKING_LIMIT: int = 100
    DEFAULT_SERVICE_PRICE: float = 500
    WALK_IN_NOTE: str = "Walk-in booking"

    # Slot picker
    SLOT_START: str = "09:00"
    SLOT_END: str = "18:00"
    SLOT_INTERVAL_MINUTES: int = 30

    # Dashboard cache
    CACHE_TTL_SECONDS: int = 300

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

settings = Settings()
