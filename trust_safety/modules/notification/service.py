"""Notification dispatcher.

Fans events out to subscribed channels. Delivery is best-effort: a failing
channel is logged and never fails the operation that produced the event.
"""

import logging
from typing import Optional

from trust_safety.core.logging import log_error, log_warning
from trust_safety.modules.notification.channels import (
    ChannelDeliveryResult,
    NotificationChannelBase,
)
from trust_safety.modules.notification.models import NotificationEvent

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Publishes notification events to subscribed channels."""

    def __init__(self, channels: Optional[list[NotificationChannelBase]] = None):
        self._channels: list[NotificationChannelBase] = list(channels or [])

    def subscribe(self, channel: NotificationChannelBase) -> None:
        """Add a channel to receive future events."""
        self._channels.append(channel)

    def unsubscribe(self, channel: NotificationChannelBase) -> bool:
        """Remove a channel. Returns False if it was not subscribed."""
        if channel in self._channels:
            self._channels.remove(channel)
            return True
        return False

    async def publish(self, event: NotificationEvent) -> list[ChannelDeliveryResult]:
        """Deliver an event to every subscribed channel.

        Args:
            event: Event to publish

        Returns:
            One delivery result per channel
        """
        results = []
        for channel in list(self._channels):
            try:
                result = await channel.deliver(event)
            except Exception as e:
                log_error(
                    logger,
                    f"Notification channel {channel.channel_name} raised",
                    exception=e,
                    event_type=event.event_type,
                )
                result = ChannelDeliveryResult(
                    success=False,
                    channel=channel.channel_name,
                    event_type=event.event_type,
                    error=str(e),
                )
            else:
                if not result.success:
                    log_warning(
                        logger,
                        f"Notification delivery failed on {channel.channel_name}: {result.error}",
                        event_type=event.event_type,
                    )
            results.append(result)
        return results
