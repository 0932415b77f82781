"""Analytics module: best-effort telemetry events and reporting windows."""

from trust_safety.modules.analytics.models import (
    AnalyticsEvent,
    TimeRange,
    subtract_months,
)
from trust_safety.modules.analytics.service import AnalyticsSink

__all__ = [
    "AnalyticsEvent",
    "AnalyticsSink",
    "TimeRange",
    "subtract_months",
]
