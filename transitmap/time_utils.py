from datetime import datetime
from typing import Optional


def seconds_since_midnight(now: Optional[datetime] = None) -> float:
    """Seconds elapsed since local midnight, with sub-second precision."""
    now = now or datetime.now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return (now - midnight).total_seconds()


def date_yyyymmdd(now: Optional[datetime] = None) -> str:
    """Service day key in the oracle's 8-digit YYYYMMDD format."""
    now = now or datetime.now()
    return now.strftime("%Y%m%d")
