"""Notification module: queue alerts, user notices and delivery channels."""

from trust_safety.modules.notification.models import (
    ModeratorNoticeEvent,
    NotificationEvent,
    QueueAlertEvent,
    UserNoticeEvent,
)
from trust_safety.modules.notification.channels import (
    CallbackChannel,
    ChannelDeliveryResult,
    InMemoryChannel,
    NotificationChannelBase,
)
from trust_safety.modules.notification.service import NotificationDispatcher

__all__ = [
    # Events
    "ModeratorNoticeEvent",
    "NotificationEvent",
    "QueueAlertEvent",
    "UserNoticeEvent",
    # Channels
    "CallbackChannel",
    "ChannelDeliveryResult",
    "InMemoryChannel",
    "NotificationChannelBase",
    # Service
    "NotificationDispatcher",
]
