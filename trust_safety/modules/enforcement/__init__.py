"""Enforcement module: moderator actions, user penalties and appeals."""

from trust_safety.modules.enforcement.models import (
    Appeal,
    AppealDecision,
    AppealStatus,
    AppealSubmissionResult,
    ContentApprovalResult,
    ModerationMetrics,
    Moderator,
    ModeratorRole,
    ModeratorWorkload,
    PenaltyKind,
    SystemModerationStats,
    UserPenalty,
    UserPenaltyType,
)
from trust_safety.modules.enforcement.repository import (
    AppealRepository,
    ModeratorRepository,
    PenaltyRepository,
)
from trust_safety.modules.enforcement.service import (
    SYSTEM_MODERATOR_ID,
    EnforcementService,
)

__all__ = [
    # Models
    "Appeal",
    "AppealDecision",
    "AppealStatus",
    "AppealSubmissionResult",
    "ContentApprovalResult",
    "ModerationMetrics",
    "Moderator",
    "ModeratorRole",
    "ModeratorWorkload",
    "PenaltyKind",
    "SystemModerationStats",
    "UserPenalty",
    "UserPenaltyType",
    # Repositories
    "AppealRepository",
    "ModeratorRepository",
    "PenaltyRepository",
    # Service
    "SYSTEM_MODERATOR_ID",
    "EnforcementService",
]
