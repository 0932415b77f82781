"""Enforcement models: moderators, user penalties and appeals."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from trust_safety.core.exceptions import InvalidPenaltyError
from trust_safety.modules.queue.models import ModerationActionType


class ModeratorRole(str, Enum):
    """Moderator role. Senior and admin moderators may ban and delete."""

    STANDARD = "standard"
    SENIOR = "senior"
    ADMIN = "admin"


# Actions that require an elevated role
ELEVATED_ACTIONS = frozenset({ModerationActionType.BAN, ModerationActionType.DELETE})
ELEVATED_ROLES = frozenset({ModeratorRole.SENIOR, ModeratorRole.ADMIN})


@dataclass
class Moderator:
    """A member of the moderation team."""
    id: uuid.UUID
    username: str
    role: ModeratorRole = ModeratorRole.STANDARD
    is_active: bool = True
    joined_at: datetime = field(default_factory=datetime.now)
    total_reviews: int = 0
    accuracy_score: float = 1.0

    def can_apply(self, action: ModerationActionType) -> bool:
        """Check the role permission matrix for an action."""
        if not self.is_active:
            return False
        if action in ELEVATED_ACTIONS:
            return self.role in ELEVATED_ROLES
        return True


class PenaltyKind(str, Enum):
    """Kinds of user penalty."""

    WARNING = "warning"
    TEMPORARY_BAN = "temporary_ban"
    PERMANENT_BAN = "permanent_ban"
    RESTRICTED_POSTING = "restricted_posting"
    SHADOW_BAN = "shadow_ban"

    @property
    def has_duration(self) -> bool:
        return self not in (PenaltyKind.WARNING, PenaltyKind.PERMANENT_BAN)


@dataclass(frozen=True)
class UserPenaltyType:
    """Penalty kind plus its duration in days where the kind has one."""
    kind: PenaltyKind
    days: Optional[int] = None

    def __post_init__(self):
        if self.kind.has_duration:
            if self.days is None or self.days < 1:
                raise InvalidPenaltyError(
                    f"{self.kind.value} requires a positive duration, got {self.days}"
                )
        elif self.days is not None:
            raise InvalidPenaltyError(f"{self.kind.value} does not take a duration")

    @classmethod
    def warning(cls) -> "UserPenaltyType":
        return cls(PenaltyKind.WARNING)

    @classmethod
    def temporary_ban(cls, days: int) -> "UserPenaltyType":
        return cls(PenaltyKind.TEMPORARY_BAN, days)

    @classmethod
    def permanent_ban(cls) -> "UserPenaltyType":
        return cls(PenaltyKind.PERMANENT_BAN)

    @classmethod
    def restricted_posting(cls, days: int) -> "UserPenaltyType":
        return cls(PenaltyKind.RESTRICTED_POSTING, days)

    @classmethod
    def shadow_ban(cls, days: int) -> "UserPenaltyType":
        return cls(PenaltyKind.SHADOW_BAN, days)

    def expires_at(self, start: datetime) -> Optional[datetime]:
        """Compute expiry from a start instant.

        Returns:
            None for warnings and permanent bans, else start + days
        """
        if self.days is None:
            return None
        return start + timedelta(days=self.days)

    @property
    def description(self) -> str:
        if self.kind == PenaltyKind.WARNING:
            return "Warning"
        if self.kind == PenaltyKind.PERMANENT_BAN:
            return "Permanent ban"
        label = self.kind.value.replace("_", " ").capitalize()
        return f"{label} ({self.days} day{'s' if self.days != 1 else ''})"


@dataclass
class UserPenalty:
    """A penalty applied to a user."""
    id: uuid.UUID
    user_id: uuid.UUID
    penalty_type: UserPenaltyType
    reason: str
    moderator_id: uuid.UUID
    content_id: Optional[uuid.UUID] = None
    created_at: datetime = field(default_factory=datetime.now)
    expires_at: Optional[datetime] = None
    is_active: bool = True
    deactivated_at: Optional[datetime] = None
    deactivation_reason: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        return now >= self.expires_at

    def is_in_effect(self, now: datetime) -> bool:
        """Check if the penalty is active and not yet expired."""
        return self.is_active and not self.is_expired(now)


class AppealStatus(str, Enum):
    """Appeal lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AppealDecision(str, Enum):
    """Moderator decision on an appeal."""

    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def resulting_status(self) -> AppealStatus:
        if self == AppealDecision.APPROVED:
            return AppealStatus.APPROVED
        return AppealStatus.REJECTED


@dataclass
class Appeal:
    """A user's appeal against a moderation action."""
    id: uuid.UUID
    user_id: uuid.UUID
    content_id: uuid.UUID
    moderation_action_id: uuid.UUID
    reason: str
    evidence: Optional[str] = None
    status: AppealStatus = AppealStatus.PENDING
    submitted_at: datetime = field(default_factory=datetime.now)
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[uuid.UUID] = None
    decision: Optional[AppealDecision] = None
    decision_reason: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == AppealStatus.PENDING


@dataclass
class ContentApprovalResult:
    """Outcome of a moderator action on queued content."""
    success: bool
    error: Optional[str] = None
    penalty: Optional[UserPenalty] = None


@dataclass
class AppealSubmissionResult:
    """Outcome of an appeal submission."""
    success: bool
    appeal: Optional[Appeal] = None
    error: Optional[str] = None


@dataclass
class ModerationMetrics:
    """Per-moderator performance over a time range."""
    moderator_id: uuid.UUID
    total_reviewed: int = 0
    approved_count: int = 0
    rejected_count: int = 0
    appeals_overturned: int = 0
    accuracy_score: float = 1.0


@dataclass
class ModeratorWorkload:
    """Live assignments and today's output for one moderator."""
    moderator_id: uuid.UUID
    assigned_items: int = 0
    completed_today: int = 0


@dataclass
class SystemModerationStats:
    """System-wide moderation outcomes over a time range.

    Automatic counts come from content intake; human counts from moderator
    action logs.
    """
    total_content_processed: int = 0
    auto_approved: int = 0
    auto_rejected: int = 0
    auto_flagged: int = 0
    sent_to_human_review: int = 0
    human_reviewed: int = 0
    average_queue_seconds: int = 0
    false_positive_rate: float = 0.0
