"""Moderator actions, user penalties and appeals.

Applies moderator decisions to queued content, computes and expires user
penalties, and runs the one-shot appeal state machine that can reverse
them.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from trust_safety.core.config import Settings, settings as default_settings
from trust_safety.core.logging import correlation_scope, log_info
from trust_safety.core.metrics import PENALTIES_TOTAL
from trust_safety.core.tracing import create_span
from trust_safety.modules.analytics.models import TimeRange
from trust_safety.modules.audit.service import AuditAction, AuditLogger, safe_audit
from trust_safety.modules.classification.models import (
    ModerationFlag,
    ModerationResult,
    ModerationSeverity,
    ModerationStatus,
)
from trust_safety.modules.content.gateway import ContentGateway
from trust_safety.modules.enforcement.models import (
    Appeal,
    AppealDecision,
    AppealSubmissionResult,
    ContentApprovalResult,
    ModerationMetrics,
    Moderator,
    ModeratorRole,
    ModeratorWorkload,
    SystemModerationStats,
    UserPenalty,
    UserPenaltyType,
)
from trust_safety.modules.enforcement.repository import (
    AppealRepository,
    ModeratorRepository,
    PenaltyRepository,
)
from trust_safety.modules.notification.models import (
    ModeratorNoticeEvent,
    NotificationEvent,
    UserNoticeEvent,
)
from trust_safety.modules.notification.service import NotificationDispatcher
from trust_safety.modules.queue.intake import ContentIntakeService
from trust_safety.modules.queue.models import (
    FlaggingStatistics,
    IntakeOutcome,
    ModerationActionType,
)
from trust_safety.modules.queue.service import ModerationQueue

logger = logging.getLogger(__name__)

# Actor recorded on penalties applied by automatic rules
SYSTEM_MODERATOR_ID = uuid.UUID(int=0)

PENALTY_ACTIONS = frozenset({
    ModerationActionType.REJECT,
    ModerationActionType.BAN,
    ModerationActionType.DELETE,
})

PERMISSION_DENIED_ERROR = "Moderator does not have permission for this action"
CONTENT_NOT_FOUND_ERROR = "Content not found in moderation queue"
ALREADY_MODERATED_ERROR = "Content has already been moderated"
APPEAL_APPROVED_REASON = "Appeal approved"


class EnforcementService:
    """Service for moderator actions, penalties and appeals."""

    def __init__(
        self,
        queue: ModerationQueue,
        notifications: Optional[NotificationDispatcher] = None,
        audit: Optional[AuditLogger] = None,
        penalties: Optional[PenaltyRepository] = None,
        appeals: Optional[AppealRepository] = None,
        moderators: Optional[ModeratorRepository] = None,
        content_gateway: Optional[ContentGateway] = None,
        intake: Optional[ContentIntakeService] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.queue = queue
        self.notifications = notifications
        self.audit = audit
        self.penalties = penalties or PenaltyRepository()
        self.appeals = appeals or AppealRepository()
        self.moderators = moderators or ModeratorRepository()
        self.content_gateway = content_gateway
        self.intake = intake
        self.settings = settings or default_settings
        self.clock = clock
        self._lock = asyncio.Lock()

    # ============================================
    # Moderators
    # ============================================

    def register_moderator(
        self,
        username: str,
        role: ModeratorRole = ModeratorRole.STANDARD,
        moderator_id: Optional[uuid.UUID] = None,
    ) -> Moderator:
        """Register a moderator."""
        moderator = Moderator(
            id=moderator_id or uuid.uuid4(),
            username=username,
            role=role,
            joined_at=self.clock(),
        )
        self.moderators.add(moderator)
        safe_audit(
            self.audit,
            logger,
            AuditAction.MODERATOR_REGISTERED,
            target_id=moderator.id,
            details={"username": username, "role": role},
        )
        return moderator

    def get_moderator(self, moderator_id: uuid.UUID) -> Optional[Moderator]:
        return self.moderators.get_by_id(moderator_id)

    def get_active_moderators(self) -> list[Moderator]:
        return self.moderators.get_active()

    def deactivate_moderator(self, moderator_id: uuid.UUID) -> bool:
        """Deactivate a moderator. Returns False if unknown."""
        moderator = self.moderators.get_by_id(moderator_id)
        if moderator is None:
            return False
        moderator.is_active = False
        safe_audit(
            self.audit,
            logger,
            AuditAction.MODERATOR_DEACTIVATED,
            target_id=moderator_id,
        )
        return True

    async def assign_moderator(self, content_id: uuid.UUID, moderator_id: uuid.UUID) -> bool:
        """Assign queued content to an active moderator.

        Returns:
            False if the moderator is unknown or inactive, or the content
            has no live queue item
        """
        moderator = self.moderators.get_by_id(moderator_id)
        if moderator is None or not moderator.is_active:
            logger.info(f"Cannot assign content {content_id} to moderator {moderator_id}")
            return False

        item = await self.queue.assign(content_id, moderator_id)
        if item is None:
            return False

        safe_audit(
            self.audit,
            logger,
            AuditAction.MODERATOR_ASSIGNED,
            actor_id=moderator_id,
            target_id=content_id,
            details={"item_id": item.id},
        )
        return True

    def get_moderator_workload(self, moderator_id: uuid.UUID) -> ModeratorWorkload:
        """Count a moderator's live assignments and today's actions."""
        today = TimeRange.DAY.start_date(self.clock())
        return ModeratorWorkload(
            moderator_id=moderator_id,
            assigned_items=len(self.queue.items_assigned_to(moderator_id)),
            completed_today=sum(
                1 for log in self.queue.action_logs(moderator_id=moderator_id)
                if log.created_at >= today
            ),
        )

    def has_permission_for_action(
        self,
        moderator_id: uuid.UUID,
        action: ModerationActionType,
    ) -> bool:
        """Check whether a moderator may apply an action.

        Unknown and inactive moderators have no permissions; ban and
        delete require a senior or admin role.
        """
        moderator = self.moderators.get_by_id(moderator_id)
        if moderator is None:
            return False
        return moderator.can_apply(action)

    # ============================================
    # Moderator actions
    # ============================================

    async def process_content_approval(
        self,
        content_id: uuid.UUID,
        moderator_id: uuid.UUID,
        action: ModerationActionType,
        reason: str,
        notes: Optional[str] = None,
    ) -> ContentApprovalResult:
        """Apply a moderator decision to queued content.

        Args:
            content_id: Content identifier
            moderator_id: Acting moderator
            action: Moderator action
            reason: Reason for the action
            notes: Optional reviewer notes

        Returns:
            ContentApprovalResult with the penalty applied to the author,
            if any
        """
        with correlation_scope(), create_span(
            "moderation.process_content_approval",
            attributes={"content.id": str(content_id), "moderation.action": action.value},
        ):
            if not self.has_permission_for_action(moderator_id, action):
                logger.warning(
                    f"Moderator {moderator_id} denied {action.value} on content {content_id}"
                )
                return ContentApprovalResult(success=False, error=PERMISSION_DENIED_ERROR)

            item = self.queue.get_item_for_content(content_id)
            if item is None:
                return ContentApprovalResult(success=False, error=CONTENT_NOT_FOUND_ERROR)

            previous = await self.queue.apply_action(item.id, action, moderator_id, reason, notes)
            if previous is None:
                return ContentApprovalResult(success=False, error=ALREADY_MODERATED_ERROR)

            penalty = None
            if action in PENALTY_ACTIONS:
                author_id = previous.author_id
                if author_id is None and self.content_gateway is not None:
                    author_id = self.content_gateway.get_author_id(content_id)

                if author_id is not None:
                    penalty = await self.apply_user_penalty(
                        author_id,
                        self.determine_automatic_penalty(previous.moderation_result),
                        f"Automatic penalty for {action.value} action",
                        moderator_id,
                        content_id=content_id,
                    )
                else:
                    logger.info(f"No known author for content {content_id}, penalty skipped")

            moderator = self.moderators.get_by_id(moderator_id)
            if moderator is not None:
                moderator.total_reviews += 1
                self._refresh_accuracy(moderator_id)

        return ContentApprovalResult(success=True, penalty=penalty)

    def determine_automatic_penalty(self, result: ModerationResult) -> UserPenaltyType:
        """Choose the penalty for content a moderator rejected.

        Args:
            result: The moderation result as it was before the action

        Returns:
            Temporary ban for hate speech or harassment, a shorter ban for
            high severity, restricted posting for medium, otherwise warning
        """
        if ModerationFlag.HATE_SPEECH in result.flags or ModerationFlag.HARASSMENT in result.flags:
            return UserPenaltyType.temporary_ban(self.settings.PENALTY_HARASSMENT_BAN_DAYS)
        if result.severity.rank >= ModerationSeverity.HIGH.rank:
            return UserPenaltyType.temporary_ban(self.settings.PENALTY_HIGH_SEVERITY_BAN_DAYS)
        if result.severity == ModerationSeverity.MEDIUM:
            return UserPenaltyType.restricted_posting(
                self.settings.PENALTY_MEDIUM_SEVERITY_RESTRICTION_DAYS
            )
        return UserPenaltyType.warning()

    # ============================================
    # Penalties
    # ============================================

    async def apply_user_penalty(
        self,
        user_id: uuid.UUID,
        penalty_type: UserPenaltyType,
        reason: str,
        moderator_id: uuid.UUID,
        content_id: Optional[uuid.UUID] = None,
    ) -> UserPenalty:
        """Apply a penalty to a user.

        Args:
            user_id: Penalized user
            penalty_type: Kind and duration
            reason: Reason shown to the user
            moderator_id: Acting moderator (SYSTEM_MODERATOR_ID for rules)
            content_id: Content the penalty relates to

        Returns:
            The stored, active UserPenalty
        """
        async with self._lock:
            penalty = self._store_penalty(user_id, penalty_type, reason, moderator_id, content_id)
        await self._after_penalty_applied(penalty)
        return penalty

    async def apply_penalty_if_absent(
        self,
        user_id: uuid.UUID,
        penalty_type: UserPenaltyType,
        reason: str,
        moderator_id: uuid.UUID,
        content_id: Optional[uuid.UUID] = None,
    ) -> Optional[UserPenalty]:
        """Apply a penalty unless one with the same reason is in effect.

        The check and the write happen under one lock, so repeated
        automatic evaluations never double-penalize.

        Returns:
            The new penalty, or None if an equivalent one is in effect
        """
        async with self._lock:
            if self.has_active_penalty(user_id, content_id=content_id, reason=reason):
                return None
            penalty = self._store_penalty(user_id, penalty_type, reason, moderator_id, content_id)
        await self._after_penalty_applied(penalty)
        return penalty

    def get_penalties(self, user_id: uuid.UUID) -> list[UserPenalty]:
        return self.penalties.get_by_user(user_id)

    def get_active_penalties(self, user_id: uuid.UUID) -> list[UserPenalty]:
        """Get penalties that are active and not expired."""
        now = self.clock()
        return [p for p in self.penalties.get_by_user(user_id) if p.is_in_effect(now)]

    def has_active_penalty(
        self,
        user_id: uuid.UUID,
        content_id: Optional[uuid.UUID] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """Check for an in-effect penalty, optionally for content or reason."""
        for penalty in self.get_active_penalties(user_id):
            if content_id is not None and penalty.content_id != content_id:
                continue
            if reason is not None and penalty.reason != reason:
                continue
            return True
        return False

    async def remove_penalty(self, penalty_id: uuid.UUID, reason: str) -> bool:
        """Deactivate a penalty (admin action).

        Returns:
            False if the penalty is unknown or already inactive
        """
        async with self._lock:
            penalty = self.penalties.get_by_id(penalty_id)
            if penalty is None or not penalty.is_active:
                return False
            self._deactivate(penalty, reason)

        safe_audit(
            self.audit,
            logger,
            AuditAction.PENALTY_REMOVED,
            target_id=penalty.user_id,
            details={"penalty_id": penalty_id, "reason": reason},
        )
        await self._notify(UserNoticeEvent(
            user_id=penalty.user_id,
            kind="penalty_removed",
            outcome=penalty.penalty_type.kind.value,
            reason=reason,
            content_id=penalty.content_id,
        ))
        return True

    # ============================================
    # Appeals
    # ============================================

    async def submit_appeal(
        self,
        user_id: uuid.UUID,
        content_id: uuid.UUID,
        moderation_action_id: uuid.UUID,
        reason: str,
        evidence: Optional[str] = None,
    ) -> AppealSubmissionResult:
        """Submit an appeal against a moderation action.

        Returns:
            AppealSubmissionResult; fails if the reason is blank or an
            appeal for the same user and content is already pending
        """
        if not reason or not reason.strip():
            return AppealSubmissionResult(success=False, error="Appeal reason is required")

        async with self._lock:
            if self.appeals.get_pending_for(user_id, content_id) is not None:
                return AppealSubmissionResult(
                    success=False,
                    error="An appeal for this content is already pending",
                )
            appeal = Appeal(
                id=uuid.uuid4(),
                user_id=user_id,
                content_id=content_id,
                moderation_action_id=moderation_action_id,
                reason=reason,
                evidence=evidence,
                submitted_at=self.clock(),
            )
            self.appeals.add(appeal)

        safe_audit(
            self.audit,
            logger,
            AuditAction.APPEAL_SUBMITTED,
            actor_id=user_id,
            target_id=appeal.id,
            details={"content_id": content_id, "moderation_action_id": moderation_action_id},
        )
        await self._notify(ModeratorNoticeEvent(
            kind="appeal_submitted",
            subject_id=appeal.id,
            message=f"New appeal for content {content_id}",
        ))
        return AppealSubmissionResult(success=True, appeal=appeal)

    async def review_appeal(
        self,
        appeal_id: uuid.UUID,
        moderator_id: uuid.UUID,
        decision: AppealDecision,
        reason: str,
    ) -> bool:
        """Decide a pending appeal.

        Approval deactivates every active penalty tied to the appeal's user
        and content. Both outcomes notify the user.

        Returns:
            False if the appeal is unknown or already decided
        """
        with correlation_scope():
            async with self._lock:
                appeal = self.appeals.get_by_id(appeal_id)
                if appeal is None or not appeal.is_pending:
                    return False

                appeal.status = decision.resulting_status
                appeal.decision = decision
                appeal.decision_reason = reason
                appeal.reviewed_at = self.clock()
                appeal.reviewed_by = moderator_id

                reversed_penalties = []
                if decision == AppealDecision.APPROVED:
                    for penalty in self.penalties.get_active_for_user_content(
                        appeal.user_id, appeal.content_id
                    ):
                        self._deactivate(penalty, APPEAL_APPROVED_REASON)
                        reversed_penalties.append(penalty.id)

            log_info(
                logger,
                f"Appeal {appeal_id} {decision.value}",
                appeal_id=str(appeal_id),
                reversed_penalties=len(reversed_penalties),
            )
            if decision == AppealDecision.APPROVED:
                for log in self.queue.action_logs(content_id=appeal.content_id):
                    if log.new_status == ModerationStatus.REJECTED:
                        self._refresh_accuracy(log.moderator_id)
            safe_audit(
                self.audit,
                logger,
                AuditAction.APPEAL_REVIEWED,
                actor_id=moderator_id,
                target_id=appeal_id,
                details={
                    "decision": decision,
                    "reason": reason,
                    "reversed_penalties": [str(pid) for pid in reversed_penalties],
                },
            )
            await self._notify(UserNoticeEvent(
                user_id=appeal.user_id,
                kind="appeal",
                outcome=decision.value,
                reason=reason,
                content_id=appeal.content_id,
            ))
            return True

    def get_pending_appeals(self) -> list[Appeal]:
        return self.appeals.get_pending()

    def get_appeal(self, appeal_id: uuid.UUID) -> Optional[Appeal]:
        return self.appeals.get_by_id(appeal_id)

    # ============================================
    # Metrics
    # ============================================

    def get_moderation_metrics(
        self,
        moderator_id: uuid.UUID,
        time_range: TimeRange,
    ) -> ModerationMetrics:
        """Compute a moderator's review metrics over a time range.

        Accuracy is the share of the moderator's decisions in the range
        that were not overturned by an approved appeal.
        """
        return self._metrics_since(moderator_id, time_range.start_date(self.clock()))

    def get_system_moderation_stats(self, time_range: TimeRange) -> SystemModerationStats:
        """Compute system-wide moderation outcomes over a time range.

        Automatic outcomes are read from the intake service, when one is
        attached. Queue time is measured from enqueue to each moderator
        action; the false positive rate is the share of automatically
        rejected or flagged content a moderator later approved.
        """
        start = time_range.start_date(self.clock())
        records = self.intake.records(since=start) if self.intake is not None else []
        flagging = FlaggingStatistics.from_records(records)
        logs = [log for log in self.queue.action_logs() if log.created_at >= start]

        waits = [log.queue_seconds for log in logs if log.queue_seconds is not None]
        automatic = {
            record.content_id for record in records
            if record.outcome in (IntakeOutcome.AUTO_REJECTED, IntakeOutcome.AUTO_FLAGGED)
        }
        approved_later = {
            log.content_id for log in logs
            if log.new_status == ModerationStatus.APPROVED and log.content_id in automatic
        }

        return SystemModerationStats(
            total_content_processed=flagging.total_processed,
            auto_approved=flagging.auto_approved,
            auto_rejected=flagging.auto_rejected,
            auto_flagged=flagging.auto_flagged,
            sent_to_human_review=flagging.sent_to_human_review,
            human_reviewed=len({log.content_id for log in logs}),
            average_queue_seconds=sum(waits) // len(waits) if waits else 0,
            false_positive_rate=len(approved_later) / len(automatic) if automatic else 0.0,
        )

    def _metrics_since(
        self,
        moderator_id: uuid.UUID,
        start: Optional[datetime] = None,
    ) -> ModerationMetrics:
        logs = [
            log for log in self.queue.action_logs(moderator_id=moderator_id)
            if start is None or log.created_at >= start
        ]
        rejected_content = {
            log.content_id for log in logs if log.new_status == ModerationStatus.REJECTED
        }
        overturned = {
            appeal.content_id for appeal in self.appeals.all()
            if appeal.decision == AppealDecision.APPROVED
            and appeal.content_id in rejected_content
        }

        total = len(logs)
        return ModerationMetrics(
            moderator_id=moderator_id,
            total_reviewed=total,
            approved_count=sum(1 for log in logs if log.new_status == ModerationStatus.APPROVED),
            rejected_count=sum(1 for log in logs if log.new_status == ModerationStatus.REJECTED),
            appeals_overturned=len(overturned),
            accuracy_score=(total - len(overturned)) / total if total else 1.0,
        )

    def _refresh_accuracy(self, moderator_id: uuid.UUID) -> None:
        moderator = self.moderators.get_by_id(moderator_id)
        if moderator is not None:
            moderator.accuracy_score = self._metrics_since(moderator_id).accuracy_score

    # ============================================
    # Internals
    # ============================================

    def _store_penalty(
        self,
        user_id: uuid.UUID,
        penalty_type: UserPenaltyType,
        reason: str,
        moderator_id: uuid.UUID,
        content_id: Optional[uuid.UUID],
    ) -> UserPenalty:
        now = self.clock()
        penalty = UserPenalty(
            id=uuid.uuid4(),
            user_id=user_id,
            penalty_type=penalty_type,
            reason=reason,
            moderator_id=moderator_id,
            content_id=content_id,
            created_at=now,
            expires_at=penalty_type.expires_at(now),
        )
        return self.penalties.add(penalty)

    def _deactivate(self, penalty: UserPenalty, reason: str) -> None:
        penalty.is_active = False
        penalty.deactivated_at = self.clock()
        penalty.deactivation_reason = reason

    async def _after_penalty_applied(self, penalty: UserPenalty) -> None:
        PENALTIES_TOTAL.labels(kind=penalty.penalty_type.kind.value).inc()
        log_info(
            logger,
            f"Applied {penalty.penalty_type.description} to user {penalty.user_id}",
            user_id=str(penalty.user_id),
            penalty_kind=penalty.penalty_type.kind.value,
        )
        safe_audit(
            self.audit,
            logger,
            AuditAction.PENALTY_APPLIED,
            actor_id=penalty.moderator_id,
            target_id=penalty.user_id,
            details={
                "penalty_id": penalty.id,
                "kind": penalty.penalty_type.kind,
                "days": penalty.penalty_type.days,
                "reason": penalty.reason,
                "content_id": penalty.content_id,
            },
        )
        await self._notify(UserNoticeEvent(
            user_id=penalty.user_id,
            kind="penalty",
            outcome=penalty.penalty_type.kind.value,
            reason=penalty.reason,
            content_id=penalty.content_id,
        ))

    async def _notify(self, event: NotificationEvent) -> None:
        if self.notifications is not None:
            await self.notifications.publish(event)
