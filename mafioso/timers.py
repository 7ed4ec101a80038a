# Jail, hospital, search, melt and per-action cooldown windows as absolute expiry timestamps
import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Union


def parse_utc(val: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a stored timestamp (ISO string with optional Z, or datetime). Naive values are treated as UTC."""
    if val is None or val == "":
        return None
    if isinstance(val, datetime):
        dt = val
    else:
        dt = datetime.fromisoformat(str(val).strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def expires_at(now: datetime, seconds: Union[int, float]) -> datetime:
    return now + timedelta(seconds=seconds)


def is_active(expiry: Union[str, datetime, None], now: datetime) -> bool:
    """True while the window has not elapsed. Absent means not restricted."""
    until = parse_utc(expiry)
    return until is not None and until > now


def is_on_cooldown(expiry: Union[str, datetime, None], now: datetime) -> bool:
    return is_active(expiry, now)


def remaining_ms(expiry: Union[str, datetime, None], now: datetime) -> int:
    until = parse_utc(expiry)
    if until is None or until <= now:
        return 0
    return int((until - now).total_seconds() * 1000)


def remaining_seconds(expiry: Union[str, datetime, None], now: datetime) -> int:
    """Whole seconds left, rounded up so an active window never reports 0."""
    ms = remaining_ms(expiry, now)
    return int(math.ceil(ms / 1000)) if ms else 0


def crime_cooldown_id(crime_id: int) -> str:
    return f"crime:{crime_id}"


def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None
