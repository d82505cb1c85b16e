"""
Time helpers. Everything in the pipeline is timezone-aware UTC.
"""
import math
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def start_of_utc_day(moment: Optional[datetime] = None) -> datetime:
    moment = moment or utcnow()
    return moment.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def from_epoch_millis(value: float) -> Optional[datetime]:
    if not math.isfinite(value):
        return None
    try:
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_iso_datetime(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 string. Naive values are taken as UTC."""
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_flexible_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a scraped timestamp.

    Accepts epoch milliseconds (number or numeric string) or an ISO-8601
    string. Returns None when the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        return from_epoch_millis(float(value))

    if isinstance(value, str):
        stripped = value.strip()
        try:
            numeric = float(stripped)
        except ValueError:
            return parse_iso_datetime(stripped)
        return from_epoch_millis(numeric)

    return None
