"""Notification channel implementations.

Delivery (push, in-app, email) is owned by the embedding application; these
channels hand events to it.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

from trust_safety.modules.notification.models import NotificationEvent


@dataclass
class ChannelDeliveryResult:
    """Result of a channel delivery attempt."""
    success: bool
    channel: str
    event_type: str
    delivered_at: Optional[datetime] = None
    error: Optional[str] = None


class NotificationChannelBase(ABC):
    """Base class for notification channels."""

    channel_name: str = "base"

    @abstractmethod
    async def deliver(self, event: NotificationEvent) -> ChannelDeliveryResult:
        """Deliver an event.

        Args:
            event: Notification event

        Returns:
            ChannelDeliveryResult with delivery status
        """
        pass

    def _create_success_result(self, event: NotificationEvent) -> ChannelDeliveryResult:
        """Create a successful delivery result."""
        return ChannelDeliveryResult(
            success=True,
            channel=self.channel_name,
            event_type=event.event_type,
            delivered_at=datetime.now(),
        )

    def _create_failure_result(
        self,
        event: NotificationEvent,
        error: str,
    ) -> ChannelDeliveryResult:
        """Create a failed delivery result."""
        return ChannelDeliveryResult(
            success=False,
            channel=self.channel_name,
            event_type=event.event_type,
            error=error,
        )


class InMemoryChannel(NotificationChannelBase):
    """Channel that keeps delivered events in memory."""

    channel_name = "in_memory"

    def __init__(self):
        self.events: list[NotificationEvent] = []

    async def deliver(self, event: NotificationEvent) -> ChannelDeliveryResult:
        self.events.append(event)
        return self._create_success_result(event)

    def events_of_type(self, event_type: str) -> list[NotificationEvent]:
        return [event for event in self.events if event.event_type == event_type]


EventCallback = Callable[[NotificationEvent], Union[None, Awaitable[None]]]


class CallbackChannel(NotificationChannelBase):
    """Channel that forwards events to an application callback.

    The callback may be a plain function or a coroutine function.
    """

    channel_name = "callback"

    def __init__(self, callback: EventCallback, channel_name: Optional[str] = None):
        self.callback = callback
        if channel_name:
            self.channel_name = channel_name

    async def deliver(self, event: NotificationEvent) -> ChannelDeliveryResult:
        try:
            outcome = self.callback(event)
            if asyncio.iscoroutine(outcome):
                await outcome
            return self._create_success_result(event)
        except Exception as e:
            return self._create_failure_result(event, str(e))
