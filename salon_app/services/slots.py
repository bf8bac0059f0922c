from datetime import datetime, timedelta
from typing import List, Optional

from salon_app.core.config import settings


def generate_time_slots(start: Optional[str] = None, end: Optional[str] = None, interval_minutes: Optional[int] = None) -> List[str]:
    """
    Returns bookable start times ("HH:MM") from `start` to `end` inclusive.
    Defaults to the configured business window (09:00 - 18:00, every 30 minutes).
    """
    start = start or settings.SLOT_START
    end = end or settings.SLOT_END
    interval_minutes = interval_minutes or settings.SLOT_INTERVAL_MINUTES

    if interval_minutes <= 0:
        raise ValueError("Slot interval must be positive")

    current = datetime.strptime(start, "%H:%M")
    last = datetime.strptime(end, "%H:%M")
    step = timedelta(minutes=interval_minutes)

    slots = []
    while current <= last:
        slots.append(current.strftime("%H:%M"))
        current += step
    return slots
