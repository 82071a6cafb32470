from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

class Period(str, Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"

def period_start(period: Period, now: Optional[datetime] = None) -> Optional[datetime]:
    """Earliest creation time included by ``period``; None means unbounded."""
    now = now or datetime.utcnow()
    period = Period(period)
    if period == Period.TODAY:
        return datetime(now.year, now.month, now.day)
    if period == Period.WEEK:
        return now - timedelta(days=7)
    if period == Period.MONTH:
        return now - timedelta(days=30)
    return None

def apply_period(query, column, period: Period, now: Optional[datetime] = None):
    start = period_start(period, now)
    if start is None:
        return query
    return query.filter(column >= start)
