"""Analytics models: tracked events and reporting time ranges."""

import calendar
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AnalyticsEvent(BaseModel):
    """A discrete, best-effort telemetry event."""

    name: str
    properties: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)


def subtract_months(moment: datetime, months: int) -> datetime:
    """Move a datetime back by calendar months, clamping the day.

    Args:
        moment: Starting point
        months: Number of months to go back

    Returns:
        Same time of day, `months` calendar months earlier
    """
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


class TimeRange(str, Enum):
    """Lower-bound windows for analytics queries."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

    def start_date(self, now: datetime) -> datetime:
        """Get the inclusive lower bound of the range relative to now.

        Args:
            now: Reference instant (local time)

        Returns:
            Local midnight for day, otherwise now minus the range length
        """
        if self == TimeRange.DAY:
            return now.replace(hour=0, minute=0, second=0, microsecond=0)
        if self == TimeRange.WEEK:
            return now - timedelta(days=7)
        if self == TimeRange.MONTH:
            return subtract_months(now, 1)
        if self == TimeRange.QUARTER:
            return subtract_months(now, 3)
        return subtract_months(now, 12)
