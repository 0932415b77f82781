"""Classification data models.

Content taxonomy, violation flags and severities, PII occurrences and the
normalized ModerationResult produced for every piece of content.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from trust_safety.core.config import Settings, settings as default_settings


class ContentType(str, Enum):
    """Types of user-generated content."""

    POST = "post"
    COMMENT = "comment"
    REVIEW = "review"
    IMAGE = "image"


class ModerationStatus(str, Enum):
    """Moderation status of a content item."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"
    UNDER_REVIEW = "under_review"

    @property
    def is_terminal(self) -> bool:
        return self in (ModerationStatus.APPROVED, ModerationStatus.REJECTED)


class ModerationSeverity(str, Enum):
    """Ordinal violation intensity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Numeric rank for comparison (higher = more severe)."""
        return SEVERITY_RANK[self]

    @property
    def auto_action_threshold(self) -> float:
        """Confidence required before the builder acts without a human."""
        return get_auto_action_threshold(self)


SEVERITY_RANK = {
    ModerationSeverity.LOW: 1,
    ModerationSeverity.MEDIUM: 2,
    ModerationSeverity.HIGH: 3,
    ModerationSeverity.CRITICAL: 4,
}


def get_auto_action_threshold(
    severity: ModerationSeverity,
    config: Optional[Settings] = None,
) -> float:
    """Get the auto-action confidence threshold for a severity.

    Args:
        severity: Severity level
        config: Settings to read thresholds from (module settings if omitted)

    Returns:
        Minimum confidence for an automatic decision
    """
    config = config or default_settings
    thresholds = {
        ModerationSeverity.LOW: config.AUTO_ACTION_THRESHOLD_LOW,
        ModerationSeverity.MEDIUM: config.AUTO_ACTION_THRESHOLD_MEDIUM,
        ModerationSeverity.HIGH: config.AUTO_ACTION_THRESHOLD_HIGH,
        ModerationSeverity.CRITICAL: config.AUTO_ACTION_THRESHOLD_CRITICAL,
    }
    return thresholds[severity]


def max_severity(severities) -> ModerationSeverity:
    """Return the most severe level in an iterable (low when empty)."""
    result = ModerationSeverity.LOW
    for severity in severities:
        if severity.rank > result.rank:
            result = severity
    return result


class ModerationFlag(str, Enum):
    """Policy violation kinds."""

    HARASSMENT = "harassment"
    SPAM = "spam"
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    HATE_SPEECH = "hate_speech"
    PERSONAL_INFORMATION = "personal_information"
    VIOLENT_CONTENT = "violent_content"
    SEXUAL_CONTENT = "sexual_content"
    MISINFORMATION = "misinformation"
    COPYRIGHT_VIOLATION = "copyright_violation"
    OTHER = "other"

    @property
    def severity(self) -> ModerationSeverity:
        return FLAG_SEVERITY[self]

    @property
    def description(self) -> str:
        return FLAG_DESCRIPTIONS[self]


FLAG_SEVERITY = {
    ModerationFlag.HATE_SPEECH: ModerationSeverity.CRITICAL,
    ModerationFlag.VIOLENT_CONTENT: ModerationSeverity.CRITICAL,
    ModerationFlag.HARASSMENT: ModerationSeverity.HIGH,
    ModerationFlag.PERSONAL_INFORMATION: ModerationSeverity.HIGH,
    ModerationFlag.INAPPROPRIATE_CONTENT: ModerationSeverity.MEDIUM,
    ModerationFlag.SEXUAL_CONTENT: ModerationSeverity.MEDIUM,
    ModerationFlag.MISINFORMATION: ModerationSeverity.MEDIUM,
    ModerationFlag.SPAM: ModerationSeverity.LOW,
    ModerationFlag.COPYRIGHT_VIOLATION: ModerationSeverity.LOW,
    ModerationFlag.OTHER: ModerationSeverity.LOW,
}

FLAG_DESCRIPTIONS = {
    ModerationFlag.HARASSMENT: "Harassment or bullying",
    ModerationFlag.SPAM: "Spam or promotional content",
    ModerationFlag.INAPPROPRIATE_CONTENT: "Inappropriate content",
    ModerationFlag.HATE_SPEECH: "Hate speech",
    ModerationFlag.PERSONAL_INFORMATION: "Contains personal information",
    ModerationFlag.VIOLENT_CONTENT: "Violent content",
    ModerationFlag.SEXUAL_CONTENT: "Sexual content",
    ModerationFlag.MISINFORMATION: "Misinformation",
    ModerationFlag.COPYRIGHT_VIOLATION: "Copyright violation",
    ModerationFlag.OTHER: "Other policy violation",
}


class PIIType(str, Enum):
    """Kinds of personally identifiable information."""

    NAME = "name"
    PHONE_NUMBER = "phone_number"
    EMAIL = "email"
    SOCIAL_MEDIA = "social_media"
    ADDRESS = "address"
    CREDIT_CARD = "credit_card"
    SSN = "ssn"
    OTHER = "other"


@dataclass(frozen=True)
class BoundingBox:
    """Normalized region of an image."""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class PIIDetection:
    """One PII occurrence found in text or an image."""
    type: PIIType
    confidence: float
    text: str
    location: Optional[BoundingBox] = None


@dataclass(frozen=True)
class RecognizedText:
    """A text region recognized in an image by an external OCR step."""
    text: str
    confidence: float
    location: Optional[BoundingBox] = None


@dataclass
class ImageInput:
    """Decoded image handed to the classifier.

    Decoding, OCR and vision labelling happen outside this library; the
    classifier only sees their output.
    """
    width: int
    height: int
    recognized_text: list[RecognizedText] = field(default_factory=list)
    labels: dict[ModerationFlag, float] = field(default_factory=dict)
    url: Optional[str] = None


@dataclass
class ClassificationOutput:
    """Raw classifier output for one medium."""
    flags: frozenset[ModerationFlag] = frozenset()
    confidence: float = 1.0
    pii: list[PIIDetection] = field(default_factory=list)


@dataclass
class ModerationResult:
    """One classification outcome for a content item."""
    content_id: uuid.UUID
    content_type: ContentType
    status: ModerationStatus
    flags: frozenset[ModerationFlag]
    confidence: float
    severity: ModerationSeverity
    reason: Optional[str] = None
    detected_pii: list[PIIDetection] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[uuid.UUID] = None
    notes: Optional[str] = None

    @property
    def requires_human_review(self) -> bool:
        """Check if a moderator must look at this result (module settings)."""
        return self.needs_human_review()

    def needs_human_review(self, config: Optional[Settings] = None) -> bool:
        """Check if a moderator must look at this result.

        Args:
            config: Settings to read thresholds from (module settings if omitted)

        Returns:
            True if confidence is below the severity threshold or any
            high/critical flag is present
        """
        if self.confidence < get_auto_action_threshold(self.severity, config):
            return True
        return any(
            flag.severity.rank >= ModerationSeverity.HIGH.rank
            for flag in self.flags
        )

    @property
    def is_final(self) -> bool:
        """Check if a moderator has made a terminal decision."""
        return self.status.is_terminal and self.reviewed_by is not None
