"""Tests for automatic protective actions driven by report counts."""

import uuid
from datetime import datetime, timedelta

import pytest

from trust_safety.core.config import Settings
from trust_safety.modules.classification.models import (
    ContentType,
    ModerationFlag,
    ModerationStatus,
)
from trust_safety.modules.content.gateway import InMemoryContentGateway
from trust_safety.modules.enforcement.models import PenaltyKind
from trust_safety.modules.enforcement.service import SYSTEM_MODERATOR_ID, EnforcementService
from trust_safety.modules.queue.models import ModerationPriority
from trust_safety.modules.queue.service import ModerationQueue
from trust_safety.modules.reporting.models import ReportReason, ReportResolution
from trust_safety.modules.reporting.service import (
    AUTO_RESTRICTION_REASON,
    FALSE_REPORTING_REASON,
    ReportingService,
)


class FakeClock:
    """Controllable clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class CountingGateway(InMemoryContentGateway):
    """Gateway that counts hide calls and can fail on demand."""

    def __init__(self, fail_times: int = 0):
        super().__init__()
        self.hide_calls = 0
        self.fail_times = fail_times

    async def hide_content(self, content_id, reason):
        self.hide_calls += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("content service unavailable")
        await super().hide_content(content_id, reason)


def create_services(gateway=None):
    clock = FakeClock(datetime(2024, 5, 10, 9, 0, 0))
    config = Settings()
    gateway = gateway or CountingGateway()
    queue = ModerationQueue(settings=config, clock=clock)
    enforcement = EnforcementService(
        queue=queue, content_gateway=gateway, settings=config, clock=clock
    )
    reporting = ReportingService(
        queue=queue,
        enforcement=enforcement,
        content_gateway=gateway,
        settings=config,
        clock=clock,
    )
    return reporting, queue, enforcement, gateway, clock


async def submit_many(reporting, content_id, reason, count, content_type=ContentType.COMMENT):
    reports = []
    for _ in range(count):
        result = await reporting.submit_report(content_id, content_type, uuid.uuid4(), reason)
        assert result.success
        reports.append(result.report)
    return reports


class TestHarassmentEscalation:
    """Repeated harassment reports hide content and restrict the author."""

    @pytest.mark.asyncio
    async def test_six_harassment_reports(self):
        reporting, queue, enforcement, gateway, _ = create_services()
        content_id = uuid.uuid4()
        author_id = uuid.uuid4()
        gateway.register_content(content_id, author_id)

        await submit_many(reporting, content_id, ReportReason.HARASSMENT, 6)

        item = queue.get_item_for_content(content_id)
        assert item.priority == ModerationPriority.CRITICAL
        assert item.report_count == 6
        assert item.author_id == author_id
        assert gateway.is_hidden(content_id)
        assert gateway.hide_calls == 1

        penalties = enforcement.get_penalties(author_id)
        assert len(penalties) == 1
        assert penalties[0].penalty_type.kind == PenaltyKind.RESTRICTED_POSTING
        assert penalties[0].penalty_type.days == 1
        assert penalties[0].reason == AUTO_RESTRICTION_REASON
        assert penalties[0].moderator_id == SYSTEM_MODERATOR_ID
        assert penalties[0].content_id == content_id

    @pytest.mark.asyncio
    async def test_restriction_starts_at_third_report(self):
        reporting, _, enforcement, gateway, _ = create_services()
        content_id = uuid.uuid4()
        author_id = uuid.uuid4()
        gateway.register_content(content_id, author_id)

        await submit_many(reporting, content_id, ReportReason.HATE_SPEECH, 2)
        assert enforcement.get_penalties(author_id) == []

        await submit_many(reporting, content_id, ReportReason.HARASSMENT, 1)
        assert len(enforcement.get_active_penalties(author_id)) == 1
        assert not gateway.is_hidden(content_id)

    @pytest.mark.asyncio
    async def test_reevaluation_is_idempotent(self):
        reporting, _, enforcement, gateway, _ = create_services()
        content_id = uuid.uuid4()
        author_id = uuid.uuid4()
        gateway.register_content(content_id, author_id)
        await submit_many(reporting, content_id, ReportReason.HARASSMENT, 6)

        first = await reporting.check_for_automatic_actions(content_id)
        second = await reporting.check_for_automatic_actions(content_id)

        assert first == second
        assert second.report_count == 6
        assert second.content_hidden
        assert second.restriction_attempted
        assert not second.restriction_applied
        assert gateway.hide_calls == 1
        assert len(enforcement.get_penalties(author_id)) == 1

    @pytest.mark.asyncio
    async def test_unknown_author_is_attempted_not_applied(self):
        reporting, queue, _, _, _ = create_services()
        content_id = uuid.uuid4()

        await submit_many(reporting, content_id, ReportReason.HARASSMENT, 3)
        outcome = await reporting.check_for_automatic_actions(content_id)

        assert outcome.restriction_attempted
        assert not outcome.restriction_applied
        assert queue.get_item_for_content(content_id).author_id is None

    @pytest.mark.asyncio
    async def test_withdrawn_reports_are_not_counted(self):
        reporting, _, enforcement, gateway, _ = create_services()
        content_id = uuid.uuid4()
        author_id = uuid.uuid4()
        gateway.register_content(content_id, author_id)
        reporter_id = uuid.uuid4()

        withdrawn = await reporting.submit_report(
            content_id, ContentType.POST, reporter_id, ReportReason.HARASSMENT
        )
        await submit_many(reporting, content_id, ReportReason.HARASSMENT, 1)
        assert await reporting.withdraw_report(withdrawn.report.id, reporter_id)
        await submit_many(reporting, content_id, ReportReason.HARASSMENT, 1)

        outcome = await reporting.check_for_automatic_actions(content_id)

        assert outcome.report_count == 2
        assert not outcome.restriction_attempted
        assert enforcement.get_penalties(author_id) == []


class TestSoftHide:
    """Content is hidden once when reports reach the hide threshold."""

    @pytest.mark.asyncio
    async def test_four_reports_do_not_hide(self):
        reporting, _, _, gateway, _ = create_services()
        content_id = uuid.uuid4()

        await submit_many(reporting, content_id, ReportReason.SPAM, 4)

        assert not gateway.is_hidden(content_id)
        assert gateway.hide_calls == 0

    @pytest.mark.asyncio
    async def test_failed_hide_is_retried_on_next_evaluation(self):
        reporting, _, _, gateway, _ = create_services(CountingGateway(fail_times=1))
        content_id = uuid.uuid4()

        await submit_many(reporting, content_id, ReportReason.SPAM, 5)
        assert not gateway.is_hidden(content_id)

        outcome = await reporting.check_for_automatic_actions(content_id)

        assert outcome.content_hidden
        assert gateway.is_hidden(content_id)
        assert gateway.hide_calls == 2

    @pytest.mark.asyncio
    async def test_no_gateway_means_no_hide(self):
        clock = FakeClock(datetime(2024, 5, 10, 9, 0, 0))
        queue = ModerationQueue(settings=Settings(), clock=clock)
        reporting = ReportingService(
            queue=queue,
            enforcement=EnforcementService(queue=queue, clock=clock),
            settings=Settings(),
            clock=clock,
        )
        content_id = uuid.uuid4()

        await submit_many(reporting, content_id, ReportReason.SPAM, 5)
        outcome = await reporting.check_for_automatic_actions(content_id)

        assert not outcome.content_hidden


class TestMassReportEscalation:
    """Ten reports force a critical queue item."""

    @pytest.mark.asyncio
    async def test_ten_spam_reports_create_critical_item(self):
        reporting, queue, _, _, _ = create_services()
        content_id = uuid.uuid4()

        await submit_many(reporting, content_id, ReportReason.SPAM, 9)
        assert queue.get_item_for_content(content_id) is None

        await submit_many(reporting, content_id, ReportReason.SPAM, 1)

        item = queue.get_item_for_content(content_id)
        assert item is not None
        assert item.priority == ModerationPriority.CRITICAL
        assert item.report_count == 10
        assert item.status == ModerationStatus.FLAGGED
        assert item.moderation_result.flags == frozenset({ModerationFlag.SPAM})

    @pytest.mark.asyncio
    async def test_existing_item_is_raised_to_critical(self):
        reporting, queue, _, _, _ = create_services()
        content_id = uuid.uuid4()

        await submit_many(reporting, content_id, ReportReason.PERSONAL_INFORMATION, 1)
        await submit_many(reporting, content_id, ReportReason.COPYRIGHT_VIOLATION, 9)

        item = queue.get_item_for_content(content_id)
        assert item.priority == ModerationPriority.CRITICAL
        assert item.report_count == 10
        assert len(queue) == 1


class TestFalseReportingPenalty:
    """Reporters whose reports are repeatedly false are restricted."""

    @pytest.mark.asyncio
    async def test_third_false_report_restricts_reporter_once(self):
        reporting, _, enforcement, _, _ = create_services()
        reporter_id = uuid.uuid4()
        moderator_id = uuid.uuid4()
        reports = []
        for _ in range(4):
            result = await reporting.submit_report(
                uuid.uuid4(), ContentType.POST, reporter_id, ReportReason.SPAM
            )
            reports.append(result.report)

        for report in reports[:2]:
            await reporting.review_report(report.id, moderator_id, ReportResolution.FALSE_REPORT)
        assert enforcement.get_penalties(reporter_id) == []

        await reporting.review_report(reports[2].id, moderator_id, ReportResolution.FALSE_REPORT)
        await reporting.review_report(reports[3].id, moderator_id, ReportResolution.FALSE_REPORT)

        penalties = enforcement.get_penalties(reporter_id)
        assert len(penalties) == 1
        assert penalties[0].penalty_type.kind == PenaltyKind.RESTRICTED_POSTING
        assert penalties[0].penalty_type.days == 7
        assert penalties[0].reason == FALSE_REPORTING_REASON
        assert penalties[0].moderator_id == moderator_id

    @pytest.mark.asyncio
    async def test_anonymous_false_reports_still_count(self):
        reporting, _, enforcement, _, _ = create_services()
        reporter_id = uuid.uuid4()
        for _ in range(3):
            result = await reporting.submit_report(
                uuid.uuid4(), ContentType.POST, reporter_id, ReportReason.SPAM, is_anonymous=True
            )
            await reporting.review_report(
                result.report.id, uuid.uuid4(), ReportResolution.FALSE_REPORT
            )

        assert len(enforcement.get_active_penalties(reporter_id)) == 1
