"""Notification events emitted by the moderation pipeline."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class NotificationEvent(BaseModel):
    """Base class for notification events."""

    event_type: str = "notification"
    occurred_at: datetime = Field(default_factory=datetime.now)


class QueueAlertEvent(NotificationEvent):
    """A queue item reached high or critical priority."""

    event_type: str = "queue_alert"
    item_id: uuid.UUID
    content_id: uuid.UUID
    priority: str
    flags: list[str] = Field(default_factory=list)


class UserNoticeEvent(NotificationEvent):
    """Notice to a user about a penalty, report review or appeal outcome."""

    event_type: str = "user_notice"
    user_id: uuid.UUID
    kind: str
    outcome: str
    reason: Optional[str] = None
    content_id: Optional[uuid.UUID] = None


class ModeratorNoticeEvent(NotificationEvent):
    """Notice to the moderation team (e.g. a new appeal to review)."""

    event_type: str = "moderator_notice"
    kind: str
    subject_id: uuid.UUID
    message: str
