"""Analytics sink.

Records discrete events such as report_submitted and report_submit_failed.
Transport is owned by subscribers; failures never reach the caller.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from trust_safety.core.logging import log_error
from trust_safety.core.metrics import ANALYTICS_EVENTS_TOTAL
from trust_safety.modules.analytics.models import AnalyticsEvent

logger = logging.getLogger(__name__)

AnalyticsSubscriber = Callable[[AnalyticsEvent], None]


class AnalyticsSink:
    """Best-effort analytics event recorder."""

    def __init__(
        self,
        subscribers: Optional[list[AnalyticsSubscriber]] = None,
        clock: Callable[[], datetime] = datetime.now,
        max_events: int = 10000,
    ):
        self._subscribers = list(subscribers or [])
        self._events: list[AnalyticsEvent] = []
        self.clock = clock
        self.max_events = max_events

    def subscribe(self, subscriber: AnalyticsSubscriber) -> None:
        self._subscribers.append(subscriber)

    def track(self, event: str, properties: Optional[dict[str, Any]] = None) -> AnalyticsEvent:
        """Record an event and forward it to subscribers.

        Args:
            event: Event name
            properties: Event properties

        Returns:
            The recorded AnalyticsEvent
        """
        record = AnalyticsEvent(
            name=event,
            properties=properties or {},
            timestamp=self.clock(),
        )
        self._events.append(record)
        if len(self._events) > self.max_events:
            self._events = self._events[-self.max_events:]

        ANALYTICS_EVENTS_TOTAL.labels(event=event).inc()

        for subscriber in list(self._subscribers):
            try:
                subscriber(record)
            except Exception as e:
                log_error(logger, f"Analytics subscriber failed for {event}", exception=e)

        return record

    def events(self, name: Optional[str] = None) -> list[AnalyticsEvent]:
        """Get recorded events, optionally filtered by name."""
        if name is None:
            return list(self._events)
        return [record for record in self._events if record.name == name]
