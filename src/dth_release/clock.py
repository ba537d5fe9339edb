"""Time helpers shared by the state machine, documents and mail."""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to aware UTC. Naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _zone(tz_name: Optional[str]):
    try:
        return ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def format_display_time(value: Optional[datetime], tz_name: Optional[str] = "UTC") -> str:
    """Medium date, short time, e.g. 'Mar 4, 2026, 9:05 AM'."""
    if value is None:
        return "N/A"
    local = as_utc(value).astimezone(_zone(tz_name))
    hour = local.hour % 12 or 12
    return f"{local:%b} {local.day}, {local.year}, {hour}:{local:%M %p}"


def format_document_time(value: Optional[datetime], tz_name: Optional[str] = "UTC") -> str:
    """DD/MM/YYYY HH:MM in 24h clock, 'N/A' when unset."""
    if value is None:
        return "N/A"
    local = as_utc(value).astimezone(_zone(tz_name))
    return local.strftime("%d/%m/%Y %H:%M")
