"""Reporting models: user reports, reasons and reporting analytics."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from trust_safety.modules.classification.models import (
    ContentType,
    ModerationFlag,
    ModerationSeverity,
)
from trust_safety.modules.queue.models import ModerationPriority


class ReportReason(str, Enum):
    """Closed set of reasons a user can report content for."""

    HARASSMENT = "harassment"
    SPAM = "spam"
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    HATE_SPEECH = "hate_speech"
    PERSONAL_INFORMATION = "personal_information"
    VIOLENT_CONTENT = "violent_content"
    SEXUAL_CONTENT = "sexual_content"
    MISINFORMATION = "misinformation"
    COPYRIGHT_VIOLATION = "copyright_violation"
    IMPERSONATION = "impersonation"
    OTHER = "other"

    @property
    def priority(self) -> ModerationPriority:
        return REASON_POLICY[self][0]

    @property
    def severity(self) -> ModerationSeverity:
        return REASON_POLICY[self][1]

    @property
    def moderation_flag(self) -> ModerationFlag:
        return REASON_FLAGS.get(self, ModerationFlag.OTHER)

    @property
    def description(self) -> str:
        return REASON_DESCRIPTIONS[self]

    @property
    def routes_to_queue(self) -> bool:
        """Whether a single report is enough to queue the content."""
        return self.priority.is_high


# (priority, severity) per reason
REASON_POLICY = {
    ReportReason.HARASSMENT: (ModerationPriority.CRITICAL, ModerationSeverity.CRITICAL),
    ReportReason.HATE_SPEECH: (ModerationPriority.CRITICAL, ModerationSeverity.CRITICAL),
    ReportReason.VIOLENT_CONTENT: (ModerationPriority.CRITICAL, ModerationSeverity.CRITICAL),
    ReportReason.PERSONAL_INFORMATION: (ModerationPriority.HIGH, ModerationSeverity.HIGH),
    ReportReason.SEXUAL_CONTENT: (ModerationPriority.HIGH, ModerationSeverity.HIGH),
    ReportReason.INAPPROPRIATE_CONTENT: (ModerationPriority.MEDIUM, ModerationSeverity.MEDIUM),
    ReportReason.MISINFORMATION: (ModerationPriority.MEDIUM, ModerationSeverity.MEDIUM),
    ReportReason.IMPERSONATION: (ModerationPriority.MEDIUM, ModerationSeverity.LOW),
    ReportReason.SPAM: (ModerationPriority.LOW, ModerationSeverity.LOW),
    ReportReason.COPYRIGHT_VIOLATION: (ModerationPriority.LOW, ModerationSeverity.LOW),
    ReportReason.OTHER: (ModerationPriority.LOW, ModerationSeverity.LOW),
}

REASON_FLAGS = {
    ReportReason.HARASSMENT: ModerationFlag.HARASSMENT,
    ReportReason.SPAM: ModerationFlag.SPAM,
    ReportReason.INAPPROPRIATE_CONTENT: ModerationFlag.INAPPROPRIATE_CONTENT,
    ReportReason.HATE_SPEECH: ModerationFlag.HATE_SPEECH,
    ReportReason.PERSONAL_INFORMATION: ModerationFlag.PERSONAL_INFORMATION,
    ReportReason.VIOLENT_CONTENT: ModerationFlag.VIOLENT_CONTENT,
    ReportReason.SEXUAL_CONTENT: ModerationFlag.SEXUAL_CONTENT,
    ReportReason.MISINFORMATION: ModerationFlag.MISINFORMATION,
    ReportReason.COPYRIGHT_VIOLATION: ModerationFlag.COPYRIGHT_VIOLATION,
}

REASON_DESCRIPTIONS = {
    ReportReason.HARASSMENT: "Harassment or Bullying",
    ReportReason.SPAM: "Spam",
    ReportReason.INAPPROPRIATE_CONTENT: "Inappropriate Content",
    ReportReason.HATE_SPEECH: "Hate Speech",
    ReportReason.PERSONAL_INFORMATION: "Personal Information",
    ReportReason.VIOLENT_CONTENT: "Violent Content",
    ReportReason.SEXUAL_CONTENT: "Sexual Content",
    ReportReason.MISINFORMATION: "Misinformation",
    ReportReason.COPYRIGHT_VIOLATION: "Copyright Violation",
    ReportReason.IMPERSONATION: "Impersonation",
    ReportReason.OTHER: "Other",
}

# Reasons that count toward the automatic author restriction
RESTRICTION_REASONS = frozenset({ReportReason.HARASSMENT, ReportReason.HATE_SPEECH})


class ReportStatus(str, Enum):
    """Report lifecycle status."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    DISMISSED = "dismissed"


class ReportResolution(str, Enum):
    """Moderator resolution of a report."""

    ACTION_TAKEN = "action_taken"
    NO_ACTION_NEEDED = "no_action_needed"
    FALSE_REPORT = "false_report"
    DUPLICATE = "duplicate"


@dataclass
class ContentReport:
    """One user's complaint about a content item."""
    id: uuid.UUID
    content_id: uuid.UUID
    content_type: ContentType
    reporter_id: Optional[uuid.UUID]
    reason: ReportReason
    additional_details: Optional[str] = None
    is_anonymous: bool = True
    status: ReportStatus = ReportStatus.PENDING
    submitted_at: datetime = field(default_factory=datetime.now)
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[uuid.UUID] = None
    resolution: Optional[ReportResolution] = None
    resolution_notes: Optional[str] = None
    # Reporter as validated at submission, kept even for anonymous reports
    submitted_by: Optional[uuid.UUID] = field(default=None, repr=False)

    @property
    def is_resolved(self) -> bool:
        return self.resolution is not None


@dataclass
class ReportSubmissionResult:
    """Outcome of a report submission."""
    success: bool
    report: Optional[ContentReport] = None
    error: Optional[str] = None


@dataclass
class ReportingLimitStatus:
    """A user's current ability to submit reports."""
    can_report: bool
    remaining_reports: int
    daily_limit: int
    is_abusive: bool
    false_report_rate: float


@dataclass
class AutomaticActionOutcome:
    """Automatic protective actions evaluated for one content item."""
    content_id: uuid.UUID
    report_count: int
    content_hidden: bool = False
    escalated: bool = False
    restriction_attempted: bool = False
    restriction_applied: bool = False


@dataclass
class MultipleReportedContent:
    """Content reported at least a threshold number of times."""
    content_id: uuid.UUID
    content_type: ContentType
    total_reports: int
    pending_reports: int
    most_common_reason: ReportReason
    first_reported_at: datetime
    last_reported_at: datetime


@dataclass
class ReportStatistics:
    """Aggregate counts over all reports."""
    total_reports: int = 0
    pending_reports: int = 0
    reviewed_reports: int = 0
    dismissed_reports: int = 0
    false_reports: int = 0
    reports_by_reason: dict[ReportReason, int] = field(default_factory=dict)


@dataclass
class ReportingAnalytics:
    """Reporting activity within a time range."""
    time_range: str
    total_reports: int = 0
    unique_content: int = 0
    unique_reporters: int = 0
    anonymous_ratio: float = 0.0
    reason_breakdown: dict[ReportReason, int] = field(default_factory=dict)
    resolution_breakdown: dict[ReportResolution, int] = field(default_factory=dict)
    average_resolution_hours: float = 0.0
    false_report_rate: float = 0.0
