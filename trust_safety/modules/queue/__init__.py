"""Queue module: priority-ordered human review queue and content intake."""

from trust_safety.modules.queue.models import (
    ContentBatchItem,
    FlaggingStatistics,
    IntakeOutcome,
    IntakeRecord,
    ModerationActionLog,
    ModerationActionType,
    ModerationPriority,
    QueueItem,
    QueueStatistics,
    higher_priority,
)
from trust_safety.modules.queue.service import (
    ModerationQueue,
    determine_priority,
)
from trust_safety.modules.queue.intake import ContentIntakeService

__all__ = [
    # Models
    "ModerationActionLog",
    "ModerationActionType",
    "ModerationPriority",
    "QueueItem",
    "QueueStatistics",
    "higher_priority",
    # Intake models
    "ContentBatchItem",
    "FlaggingStatistics",
    "IntakeOutcome",
    "IntakeRecord",
    # Service
    "ModerationQueue",
    "determine_priority",
    "ContentIntakeService",
]
