"""Reporting subsystem.

Accepts user reports, enforces daily limits and abuse gating, routes
serious reports to the moderation queue, and triggers automatic protective
actions (soft-hide, escalation, author restriction) as report counts cross
configured thresholds.

Validation reads only the in-memory report history. Automatic actions are
re-evaluated from current counts on every call, so evaluating the same
content twice never repeats a side effect.
"""

import asyncio
import logging
import uuid
from collections import Counter
from datetime import datetime
from typing import Callable, Optional

from trust_safety.core.config import Settings, settings as default_settings
from trust_safety.core.logging import correlation_scope, log_error, log_info, log_warning
from trust_safety.core.metrics import REPORTS_TOTAL
from trust_safety.core.tracing import create_span
from trust_safety.modules.analytics.models import TimeRange
from trust_safety.modules.analytics.service import AnalyticsSink
from trust_safety.modules.audit.service import AuditAction, AuditLogger, safe_audit
from trust_safety.modules.classification.models import (
    ContentType,
    ModerationResult,
    ModerationStatus,
    max_severity,
)
from trust_safety.modules.content.gateway import ContentGateway
from trust_safety.modules.enforcement.models import UserPenaltyType
from trust_safety.modules.enforcement.service import SYSTEM_MODERATOR_ID, EnforcementService
from trust_safety.modules.notification.models import UserNoticeEvent
from trust_safety.modules.notification.service import NotificationDispatcher
from trust_safety.modules.queue.models import ModerationPriority
from trust_safety.modules.queue.service import ModerationQueue
from trust_safety.modules.reporting.models import (
    RESTRICTION_REASONS,
    AutomaticActionOutcome,
    ContentReport,
    MultipleReportedContent,
    ReportingAnalytics,
    ReportingLimitStatus,
    ReportReason,
    ReportResolution,
    ReportStatistics,
    ReportStatus,
    ReportSubmissionResult,
)
from trust_safety.modules.reporting.repository import ReportRepository

logger = logging.getLogger(__name__)

ABUSIVE_REPORTER_ERROR = "Account restricted due to false reporting"
DAILY_LIMIT_ERROR = "Daily reporting limit exceeded"
DUPLICATE_REPORT_ERROR = "You have already reported this content for this reason today"

FALSE_REPORTING_REASON = "Pattern of false reporting"
AUTO_RESTRICTION_REASON = "Automatic restriction after repeated harassment reports"
AUTO_HIDE_REASON = "Hidden pending review after multiple user reports"


def start_of_day(moment: datetime) -> datetime:
    """Local midnight of the given day."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


class ReportingService:
    """Service for user reports and automatic protective actions."""

    def __init__(
        self,
        queue: ModerationQueue,
        enforcement: EnforcementService,
        content_gateway: Optional[ContentGateway] = None,
        analytics: Optional[AnalyticsSink] = None,
        notifications: Optional[NotificationDispatcher] = None,
        repository: Optional[ReportRepository] = None,
        audit: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.queue = queue
        self.enforcement = enforcement
        self.content_gateway = content_gateway
        self.analytics = analytics
        self.notifications = notifications
        self.repository = repository or ReportRepository()
        self.audit = audit
        self.settings = settings or default_settings
        self.clock = clock

        self._hidden_content: set[uuid.UUID] = set()
        self._lock = asyncio.Lock()

    # ============================================
    # Submission
    # ============================================

    async def submit_report(
        self,
        content_id: uuid.UUID,
        content_type: ContentType,
        reporter_id: Optional[uuid.UUID],
        reason: ReportReason,
        additional_details: Optional[str] = None,
        is_anonymous: bool = True,
    ) -> ReportSubmissionResult:
        """Submit a user report against content.

        Args:
            content_id: Reported content
            content_type: Type of the reported content
            reporter_id: Reporting user; validated even for anonymous reports
            reason: Report reason
            additional_details: Free-text details from the reporter
            is_anonymous: Hide the reporter's identity on the stored report

        Returns:
            ReportSubmissionResult with the stored report or a validation
            error
        """
        with correlation_scope(), create_span(
            "moderation.submit_report",
            attributes={"content.id": str(content_id), "report.reason": reason.value},
        ):
            async with self._lock:
                error = self._validate_submission(content_id, reporter_id, reason)
                if error is None:
                    report = ContentReport(
                        id=uuid.uuid4(),
                        content_id=content_id,
                        content_type=content_type,
                        reporter_id=None if is_anonymous else reporter_id,
                        reason=reason,
                        additional_details=additional_details,
                        is_anonymous=is_anonymous,
                        submitted_at=self.clock(),
                        submitted_by=reporter_id,
                    )
                    self.repository.add(report)
                    report_count = len(
                        self.repository.get_by_content(content_id, include_dismissed=False)
                    )

            if error is not None:
                REPORTS_TOTAL.labels(reason=reason.value, outcome="rejected").inc()
                self._track("report_submit_failed", {
                    "content_id": str(content_id),
                    "reason": reason.value,
                    "error": error,
                })
                logger.info(f"Report against {content_id} rejected: {error}")
                return ReportSubmissionResult(success=False, error=error)

            REPORTS_TOTAL.labels(reason=reason.value, outcome="accepted").inc()
            self._track("report_submitted", {
                "report_id": str(report.id),
                "content_id": str(content_id),
                "content_type": content_type.value,
                "reason": reason.value,
                "is_anonymous": is_anonymous,
            })

            if reason.routes_to_queue:
                await self.queue.enqueue(
                    self._synthesize_result(report),
                    report_count=report_count,
                    author_id=self._resolve_author(content_id),
                )
            else:
                await self.queue.record_report(content_id, report_count)

            await self.check_for_automatic_actions(content_id)

        return ReportSubmissionResult(success=True, report=report)

    def check_reporting_limits(self, user_id: uuid.UUID) -> ReportingLimitStatus:
        """Compute a user's reporting limits from their history.

        Args:
            user_id: Reporting user

        Returns:
            ReportingLimitStatus; abusive users cannot report regardless
            of remaining quota
        """
        reports = self.repository.get_by_submitter(user_id)
        today = start_of_day(self.clock())
        submitted_today = sum(1 for r in reports if r.submitted_at >= today)

        daily_limit = self.settings.DAILY_REPORT_LIMIT
        remaining = max(0, daily_limit - submitted_today)

        resolved = [r for r in reports if r.is_resolved]
        false_reports = sum(1 for r in resolved if r.resolution == ReportResolution.FALSE_REPORT)
        false_report_rate = false_reports / len(resolved) if resolved else 0.0

        is_abusive = (
            false_report_rate > self.settings.ABUSE_FALSE_REPORT_RATE
            and len(reports) >= self.settings.ABUSE_MIN_TOTAL_REPORTS
        )

        return ReportingLimitStatus(
            can_report=remaining > 0 and not is_abusive,
            remaining_reports=remaining,
            daily_limit=daily_limit,
            is_abusive=is_abusive,
            false_report_rate=false_report_rate,
        )

    # ============================================
    # Automatic actions
    # ============================================

    async def check_for_automatic_actions(self, content_id: uuid.UUID) -> AutomaticActionOutcome:
        """Evaluate automatic protective actions for content.

        Counts exclude withdrawn reports. Content is hidden once, escalation
        never lowers priority, and the author restriction is skipped while
        an equivalent one is in effect.

        Args:
            content_id: Content to evaluate

        Returns:
            AutomaticActionOutcome describing the current state
        """
        reports = self.repository.get_by_content(content_id, include_dismissed=False)
        report_count = len(reports)
        outcome = AutomaticActionOutcome(content_id=content_id, report_count=report_count)

        if report_count >= self.settings.AUTO_HIDE_REPORT_COUNT:
            outcome.content_hidden = await self._hide_content(content_id, report_count)

        if report_count >= self.settings.AUTO_ESCALATE_REPORT_COUNT:
            outcome.escalated = await self._escalate(content_id, reports)

        restriction_count = sum(1 for r in reports if r.reason in RESTRICTION_REASONS)
        if restriction_count >= self.settings.AUTO_RESTRICT_HARASSMENT_COUNT:
            outcome.restriction_attempted = True
            outcome.restriction_applied = await self._restrict_author(content_id)

        return outcome

    # ============================================
    # Review
    # ============================================

    async def review_report(
        self,
        report_id: uuid.UUID,
        moderator_id: uuid.UUID,
        resolution: ReportResolution,
        notes: Optional[str] = None,
    ) -> bool:
        """Resolve a pending report. Review fields are set exactly once.

        A false-report resolution penalizes the reporter once their false
        reports reach the configured threshold.

        Returns:
            False if the report is unknown or no longer pending
        """
        async with self._lock:
            report = self.repository.get_by_id(report_id)
            if report is None or report.status != ReportStatus.PENDING:
                return False

            report.status = ReportStatus.REVIEWED
            report.reviewed_at = self.clock()
            report.reviewed_by = moderator_id
            report.resolution = resolution
            report.resolution_notes = notes

        log_info(
            logger,
            f"Report {report_id} resolved as {resolution.value}",
            report_id=str(report_id),
            resolution=resolution.value,
        )
        safe_audit(
            self.audit,
            logger,
            AuditAction.REPORT_REVIEWED,
            actor_id=moderator_id,
            target_id=report_id,
            details={"content_id": report.content_id, "resolution": resolution},
        )

        if resolution == ReportResolution.FALSE_REPORT and report.submitted_by is not None:
            await self._check_false_reporting(report.submitted_by, moderator_id)

        if not report.is_anonymous and report.reporter_id is not None and self.notifications:
            await self.notifications.publish(UserNoticeEvent(
                user_id=report.reporter_id,
                kind="report_review",
                outcome=resolution.value,
                reason=notes,
                content_id=report.content_id,
            ))
        return True

    async def withdraw_report(self, report_id: uuid.UUID, reporter_id: uuid.UUID) -> bool:
        """Withdraw a pending report on behalf of the user who filed it.

        Withdrawn reports are dismissed and no longer count toward
        automatic actions.

        Returns:
            False if the report is unknown, not pending, or not the user's
        """
        async with self._lock:
            report = self.repository.get_by_id(report_id)
            if (
                report is None
                or report.status != ReportStatus.PENDING
                or report.submitted_by != reporter_id
            ):
                return False
            report.status = ReportStatus.DISMISSED

        safe_audit(
            self.audit,
            logger,
            AuditAction.REPORT_WITHDRAWN,
            actor_id=reporter_id,
            target_id=report_id,
            details={"content_id": report.content_id},
        )
        return True

    # ============================================
    # Queries
    # ============================================

    def get_report(self, report_id: uuid.UUID) -> Optional[ContentReport]:
        return self.repository.get_by_id(report_id)

    def get_reports_for_content(self, content_id: uuid.UUID) -> list[ContentReport]:
        return self.repository.get_by_content(content_id)

    def get_reports_by_user(self, user_id: uuid.UUID) -> list[ContentReport]:
        return self.repository.get_by_submitter(user_id)

    def get_pending_reports(self, limit: int = 50) -> list[ContentReport]:
        """Get pending reports, newest first."""
        pending = self.repository.get_by_status(ReportStatus.PENDING)
        pending.sort(key=lambda r: r.submitted_at, reverse=True)
        return pending[:limit]

    def get_multiple_reported_content(self, threshold: int = 3) -> list[MultipleReportedContent]:
        """Get content with at least `threshold` reports, most reported first."""
        grouped: dict[uuid.UUID, list[ContentReport]] = {}
        for report in self.repository.all():
            if report.status == ReportStatus.DISMISSED:
                continue
            grouped.setdefault(report.content_id, []).append(report)

        results = []
        for content_id, reports in grouped.items():
            if len(reports) < threshold:
                continue
            reasons = Counter(r.reason for r in reports)
            submitted = [r.submitted_at for r in reports]
            results.append(MultipleReportedContent(
                content_id=content_id,
                content_type=reports[0].content_type,
                total_reports=len(reports),
                pending_reports=sum(1 for r in reports if r.status == ReportStatus.PENDING),
                most_common_reason=reasons.most_common(1)[0][0],
                first_reported_at=min(submitted),
                last_reported_at=max(submitted),
            ))

        results.sort(key=lambda c: c.total_reports, reverse=True)
        return results

    def get_statistics(self) -> ReportStatistics:
        reports = self.repository.all()
        return ReportStatistics(
            total_reports=len(reports),
            pending_reports=sum(1 for r in reports if r.status == ReportStatus.PENDING),
            reviewed_reports=sum(1 for r in reports if r.status == ReportStatus.REVIEWED),
            dismissed_reports=sum(1 for r in reports if r.status == ReportStatus.DISMISSED),
            false_reports=sum(
                1 for r in reports if r.resolution == ReportResolution.FALSE_REPORT
            ),
            reports_by_reason=dict(Counter(r.reason for r in reports)),
        )

    def get_reporting_analytics(self, time_range: TimeRange) -> ReportingAnalytics:
        """Aggregate reporting activity since the start of a time range.

        Args:
            time_range: Window relative to now

        Returns:
            ReportingAnalytics for reports submitted within the window
        """
        start = time_range.start_date(self.clock())
        reports = [r for r in self.repository.all() if r.submitted_at >= start]
        analytics = ReportingAnalytics(time_range=time_range.value)
        if not reports:
            return analytics

        resolved = [r for r in reports if r.is_resolved]
        resolution_hours = [
            (r.reviewed_at - r.submitted_at).total_seconds() / 3600
            for r in resolved
            if r.reviewed_at is not None
        ]
        false_reports = sum(1 for r in resolved if r.resolution == ReportResolution.FALSE_REPORT)

        analytics.total_reports = len(reports)
        analytics.unique_content = len({r.content_id for r in reports})
        analytics.unique_reporters = len(
            {r.submitted_by for r in reports if r.submitted_by is not None}
        )
        analytics.anonymous_ratio = sum(1 for r in reports if r.is_anonymous) / len(reports)
        analytics.reason_breakdown = dict(Counter(r.reason for r in reports))
        analytics.resolution_breakdown = dict(Counter(r.resolution for r in resolved))
        if resolution_hours:
            analytics.average_resolution_hours = sum(resolution_hours) / len(resolution_hours)
        if resolved:
            analytics.false_report_rate = false_reports / len(resolved)
        return analytics

    # ============================================
    # Internals
    # ============================================

    def _validate_submission(
        self,
        content_id: uuid.UUID,
        reporter_id: Optional[uuid.UUID],
        reason: ReportReason,
    ) -> Optional[str]:
        if reporter_id is None:
            return None

        limits = self.check_reporting_limits(reporter_id)
        if limits.is_abusive:
            return ABUSIVE_REPORTER_ERROR
        if not limits.can_report:
            return DAILY_LIMIT_ERROR

        today = start_of_day(self.clock())
        for report in self.repository.get_by_submitter(reporter_id):
            if (
                report.content_id == content_id
                and report.reason == reason
                and report.submitted_at >= today
            ):
                return DUPLICATE_REPORT_ERROR
        return None

    def _synthesize_result(self, report: ContentReport) -> ModerationResult:
        return ModerationResult(
            content_id=report.content_id,
            content_type=report.content_type,
            status=ModerationStatus.FLAGGED,
            flags=frozenset({report.reason.moderation_flag}),
            confidence=self.settings.USER_REPORT_CONFIDENCE,
            severity=report.reason.severity,
            reason=f"User reported: {report.reason.description}",
            notes=report.additional_details,
            created_at=report.submitted_at,
        )

    def _resolve_author(self, content_id: uuid.UUID) -> Optional[uuid.UUID]:
        if self.content_gateway is not None:
            author_id = self.content_gateway.get_author_id(content_id)
            if author_id is not None:
                return author_id
        item = self.queue.get_item_for_content(content_id)
        return item.author_id if item is not None else None

    async def _hide_content(self, content_id: uuid.UUID, report_count: int) -> bool:
        if content_id in self._hidden_content:
            return True
        if self.content_gateway is None:
            log_warning(logger, f"No content gateway, cannot hide {content_id}")
            return False

        # Claimed before awaiting so concurrent evaluations hide only once
        self._hidden_content.add(content_id)
        try:
            await self.content_gateway.hide_content(content_id, AUTO_HIDE_REASON)
        except Exception as e:
            self._hidden_content.discard(content_id)
            log_error(logger, f"Failed to hide content {content_id}", exception=e)
            return False

        log_info(logger, f"Content {content_id} hidden after {report_count} reports")
        safe_audit(
            self.audit,
            logger,
            AuditAction.CONTENT_HIDDEN,
            target_id=content_id,
            details={"report_count": report_count},
        )
        return True

    async def _escalate(self, content_id: uuid.UUID, reports: list[ContentReport]) -> bool:
        report_count = len(reports)
        if await self.queue.escalate(content_id, ModerationPriority.CRITICAL, report_count):
            return True

        reasons = {r.reason for r in reports}
        result = ModerationResult(
            content_id=content_id,
            content_type=reports[0].content_type,
            status=ModerationStatus.FLAGGED,
            flags=frozenset(reason.moderation_flag for reason in reasons),
            confidence=self.settings.USER_REPORT_CONFIDENCE,
            severity=max_severity(reason.severity for reason in reasons),
            reason=f"Automatically escalated after {report_count} reports",
            created_at=self.clock(),
        )
        item = await self.queue.enqueue(
            result,
            report_count=report_count,
            author_id=self._resolve_author(content_id),
        )
        if item is None:
            return False
        return await self.queue.escalate(content_id, ModerationPriority.CRITICAL, report_count)

    async def _restrict_author(self, content_id: uuid.UUID) -> bool:
        author_id = self._resolve_author(content_id)
        if author_id is None:
            log_warning(
                logger,
                f"Automatic restriction attempted for content {content_id}, author unknown",
                content_id=str(content_id),
            )
            return False

        penalty = await self.enforcement.apply_penalty_if_absent(
            author_id,
            UserPenaltyType.restricted_posting(self.settings.AUTO_RESTRICTION_DAYS),
            AUTO_RESTRICTION_REASON,
            SYSTEM_MODERATOR_ID,
            content_id=content_id,
        )
        return penalty is not None

    async def _check_false_reporting(
        self,
        reporter_id: uuid.UUID,
        moderator_id: uuid.UUID,
    ) -> None:
        false_reports = sum(
            1 for r in self.repository.get_by_submitter(reporter_id)
            if r.resolution == ReportResolution.FALSE_REPORT
        )
        if false_reports < self.settings.FALSE_REPORT_PENALTY_THRESHOLD:
            return

        penalty = await self.enforcement.apply_penalty_if_absent(
            reporter_id,
            UserPenaltyType.restricted_posting(self.settings.FALSE_REPORT_PENALTY_DAYS),
            FALSE_REPORTING_REASON,
            moderator_id,
        )
        if penalty is not None:
            log_info(
                logger,
                f"Reporter {reporter_id} restricted for false reporting",
                false_reports=false_reports,
            )

    def _track(self, event: str, properties: dict) -> None:
        if self.analytics is None:
            return
        try:
            self.analytics.track(event, properties)
        except Exception as e:
            log_error(logger, f"Failed to track analytics event {event}", exception=e)
