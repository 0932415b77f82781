"""Moderation queue models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from trust_safety.modules.classification.models import (
    ContentType,
    ImageInput,
    ModerationResult,
    ModerationSeverity,
    ModerationStatus,
)


class ModerationPriority(str, Enum):
    """Queue ordering class."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def sort_order(self) -> int:
        """Position in the queue (0 = reviewed first)."""
        return PRIORITY_SORT_ORDER[self]

    @property
    def rank(self) -> int:
        """Numeric rank for comparison (higher = more urgent)."""
        return 4 - PRIORITY_SORT_ORDER[self]

    @property
    def is_high(self) -> bool:
        return self in (ModerationPriority.CRITICAL, ModerationPriority.HIGH)


PRIORITY_SORT_ORDER = {
    ModerationPriority.CRITICAL: 0,
    ModerationPriority.HIGH: 1,
    ModerationPriority.MEDIUM: 2,
    ModerationPriority.LOW: 3,
}


def higher_priority(first: ModerationPriority, second: ModerationPriority) -> ModerationPriority:
    """Return the more urgent of two priorities."""
    return first if first.rank >= second.rank else second


class ModerationActionType(str, Enum):
    """Actions a moderator can apply to a queue item."""

    APPROVE = "approve"
    REJECT = "reject"
    EDIT = "edit"
    FLAG = "flag"
    BAN = "ban"
    WARN = "warn"
    DELETE = "delete"

    @property
    def resulting_status(self) -> ModerationStatus:
        """Status the moderated content moves to."""
        return ACTION_STATUS[self]

    @property
    def is_terminal(self) -> bool:
        """Whether the action removes the item from the queue."""
        return self in (
            ModerationActionType.APPROVE,
            ModerationActionType.REJECT,
            ModerationActionType.DELETE,
        )


ACTION_STATUS = {
    ModerationActionType.APPROVE: ModerationStatus.APPROVED,
    ModerationActionType.REJECT: ModerationStatus.REJECTED,
    ModerationActionType.DELETE: ModerationStatus.REJECTED,
    ModerationActionType.BAN: ModerationStatus.REJECTED,
    ModerationActionType.WARN: ModerationStatus.REJECTED,
    ModerationActionType.FLAG: ModerationStatus.FLAGGED,
    ModerationActionType.EDIT: ModerationStatus.UNDER_REVIEW,
}


@dataclass
class QueueItem:
    """A unit of pending review work wrapping one ModerationResult."""
    id: uuid.UUID
    content_id: uuid.UUID
    content_type: ContentType
    moderation_result: ModerationResult
    priority: ModerationPriority
    report_count: int = 0
    author_id: Optional[uuid.UUID] = None
    content: Optional[str] = None
    image_urls: list[str] = field(default_factory=list)
    assigned_to: Optional[uuid.UUID] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def status(self) -> ModerationStatus:
        return self.moderation_result.status

    @property
    def severity(self) -> ModerationSeverity:
        return self.moderation_result.severity

    @property
    def is_high_priority(self) -> bool:
        """High/critical priority or high/critical severity."""
        return self.priority.is_high or self.severity in (
            ModerationSeverity.HIGH,
            ModerationSeverity.CRITICAL,
        )

    def sort_key(self) -> tuple[int, datetime]:
        return (self.priority.sort_order, self.created_at)


@dataclass(frozen=True)
class ModerationActionLog:
    """Append-only record of one moderator action."""
    id: uuid.UUID
    item_id: uuid.UUID
    content_id: uuid.UUID
    moderator_id: uuid.UUID
    action: ModerationActionType
    previous_status: ModerationStatus
    new_status: ModerationStatus
    reason: str
    notes: Optional[str]
    created_at: datetime
    queued_at: Optional[datetime] = None

    @property
    def queue_seconds(self) -> Optional[int]:
        """Whole seconds the item waited before this action."""
        if self.queued_at is None:
            return None
        return int((self.created_at - self.queued_at).total_seconds())


@dataclass
class QueueStatistics:
    """Aggregate view over the live queue."""
    total_items: int = 0
    high_priority_count: int = 0
    pending_count: int = 0
    flagged_count: int = 0
    average_wait_minutes: int = 0


# ============================================
# Content intake
# ============================================


class IntakeOutcome(str, Enum):
    """What intake did with newly submitted content."""

    AUTO_APPROVED = "auto_approved"
    AUTO_REJECTED = "auto_rejected"
    AUTO_FLAGGED = "auto_flagged"
    HUMAN_REVIEW = "human_review"

    @classmethod
    def from_status(cls, status: ModerationStatus) -> "IntakeOutcome":
        return INTAKE_OUTCOMES.get(status, cls.HUMAN_REVIEW)


INTAKE_OUTCOMES = {
    ModerationStatus.APPROVED: IntakeOutcome.AUTO_APPROVED,
    ModerationStatus.REJECTED: IntakeOutcome.AUTO_REJECTED,
    ModerationStatus.FLAGGED: IntakeOutcome.AUTO_FLAGGED,
}


@dataclass
class ContentBatchItem:
    """One piece of content in a batch submitted to intake."""
    content_id: uuid.UUID
    content_type: ContentType
    author_id: Optional[uuid.UUID] = None
    text: Optional[str] = None
    images: list[ImageInput] = field(default_factory=list)


@dataclass(frozen=True)
class IntakeRecord:
    """Outcome of classifying one piece of content at intake."""
    content_id: uuid.UUID
    outcome: IntakeOutcome
    pii_detected: bool
    queued: bool
    processed_at: datetime


@dataclass
class FlaggingStatistics:
    """Counts of intake outcomes."""
    total_processed: int = 0
    auto_approved: int = 0
    auto_rejected: int = 0
    auto_flagged: int = 0
    sent_to_human_review: int = 0
    pii_detected: int = 0

    @property
    def auto_approval_rate(self) -> float:
        if self.total_processed == 0:
            return 0.0
        return self.auto_approved / self.total_processed

    @property
    def human_review_rate(self) -> float:
        if self.total_processed == 0:
            return 0.0
        return self.sent_to_human_review / self.total_processed

    @classmethod
    def from_records(cls, records) -> "FlaggingStatistics":
        stats = cls()
        for record in records:
            stats.total_processed += 1
            if record.outcome == IntakeOutcome.AUTO_APPROVED:
                stats.auto_approved += 1
            elif record.outcome == IntakeOutcome.AUTO_REJECTED:
                stats.auto_rejected += 1
            elif record.outcome == IntakeOutcome.AUTO_FLAGGED:
                stats.auto_flagged += 1
            else:
                stats.sent_to_human_review += 1
            if record.pii_detected:
                stats.pii_detected += 1
        return stats
