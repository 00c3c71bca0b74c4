from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from salon_scheduler.core.config import settings


def operating_tz() -> ZoneInfo:
    return ZoneInfo(settings.OPERATING_TIMEZONE)


def local_now() -> datetime:
    """Current wall-clock time in the salon's operating timezone."""
    return datetime.now(operating_tz())


def local_today() -> date:
    return local_now().date()


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps come back naive from SQLite; they are stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def resolve_now(now: Optional[datetime]) -> datetime:
    """Pin `now` to the operating timezone, defaulting to the real clock."""
    if now is None:
        return local_now()
    return ensure_aware(now).astimezone(operating_tz())
