"""Tests for moderator assignment, workload and system-wide statistics."""

import logging
import uuid
from datetime import datetime, timedelta

import pytest

from trust_safety.core.config import Settings
from trust_safety.modules.analytics.models import TimeRange
from trust_safety.modules.audit.service import AuditAction, AuditLogger
from trust_safety.modules.classification.models import ContentType
from trust_safety.modules.classification.service import ModerationResultBuilder
from trust_safety.modules.content.gateway import InMemoryContentGateway
from trust_safety.modules.enforcement.models import AppealDecision
from trust_safety.modules.enforcement.service import EnforcementService
from trust_safety.modules.queue.intake import ContentIntakeService
from trust_safety.modules.queue.models import ModerationActionType
from trust_safety.modules.queue.service import ModerationQueue


class FakeClock:
    """Controllable clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


HARASSMENT = "You are worthless and I hate you"
PII = "Great evening, text me at 555-123-4567"
CLEAN = "What a lovely afternoon at the park"


class Harness:
    """Intake, queue and enforcement sharing one clock and audit log."""

    def __init__(self):
        self.clock = FakeClock(datetime(2024, 5, 10, 9, 0, 0))
        self.audit = AuditLogger(clock=self.clock)
        self.gateway = InMemoryContentGateway()
        self.queue = ModerationQueue(audit=self.audit, settings=Settings(), clock=self.clock)
        self.intake = ContentIntakeService(
            builder=ModerationResultBuilder(settings=Settings(), clock=self.clock),
            queue=self.queue,
            content_gateway=self.gateway,
        )
        self.service = EnforcementService(
            queue=self.queue,
            audit=self.audit,
            content_gateway=self.gateway,
            intake=self.intake,
            settings=Settings(),
            clock=self.clock,
        )

    async def submit(self, text: str, author_id=None) -> uuid.UUID:
        content_id = uuid.uuid4()
        await self.intake.process_content(
            content_id, ContentType.COMMENT, author_id or uuid.uuid4(), text=text
        )
        return content_id


class TestModeratorAssignment:
    """Tests for assign_moderator."""

    @pytest.mark.asyncio
    async def test_assigns_live_item_to_active_moderator(self):
        harness = Harness()
        moderator = harness.service.register_moderator("standard")
        content_id = await harness.submit(HARASSMENT)

        assert await harness.service.assign_moderator(content_id, moderator.id)

        assert harness.queue.get_item_for_content(content_id).assigned_to == moderator.id
        entries = harness.audit.get_logs(action=AuditAction.MODERATOR_ASSIGNED)
        assert entries[0].actor_id == moderator.id
        assert entries[0].target_id == content_id

    @pytest.mark.asyncio
    async def test_inactive_or_unknown_moderator_is_refused(self):
        harness = Harness()
        moderator = harness.service.register_moderator("leaving")
        harness.service.deactivate_moderator(moderator.id)
        content_id = await harness.submit(HARASSMENT)

        assert not await harness.service.assign_moderator(content_id, moderator.id)
        assert not await harness.service.assign_moderator(content_id, uuid.uuid4())
        assert harness.queue.get_item_for_content(content_id).assigned_to is None

    @pytest.mark.asyncio
    async def test_content_without_live_item_is_refused(self):
        harness = Harness()
        moderator = harness.service.register_moderator("standard")

        assert not await harness.service.assign_moderator(uuid.uuid4(), moderator.id)


class TestModeratorWorkload:
    """Tests for get_moderator_workload."""

    @pytest.mark.asyncio
    async def test_counts_live_assignments_and_todays_actions(self):
        harness = Harness()
        moderator = harness.service.register_moderator("standard")
        other = harness.service.register_moderator("other")
        first = await harness.submit(HARASSMENT)
        second = await harness.submit(PII)
        third = await harness.submit(HARASSMENT)
        for content_id in (first, second):
            await harness.service.assign_moderator(content_id, moderator.id)
        await harness.service.assign_moderator(third, other.id)

        await harness.service.process_content_approval(
            first, moderator.id, ModerationActionType.REJECT, "Harassment"
        )

        workload = harness.service.get_moderator_workload(moderator.id)
        assert workload.assigned_items == 1
        assert workload.completed_today == 1

        harness.clock.advance(days=1)
        assert harness.service.get_moderator_workload(moderator.id).completed_today == 0


class TestSystemModerationStats:
    """Tests for get_system_moderation_stats."""

    @pytest.mark.asyncio
    async def test_combines_intake_outcomes_and_human_reviews(self):
        harness = Harness()
        moderator = harness.service.register_moderator("standard")
        await harness.submit(CLEAN)
        await harness.submit(CLEAN)
        rejected = await harness.submit(HARASSMENT)
        flagged = await harness.submit(PII)

        harness.clock.advance(minutes=10)
        await harness.service.process_content_approval(
            rejected, moderator.id, ModerationActionType.REJECT, "Harassment"
        )
        harness.clock.advance(minutes=10)
        await harness.service.process_content_approval(
            flagged, moderator.id, ModerationActionType.APPROVE, "Number is a business line"
        )

        stats = harness.service.get_system_moderation_stats(TimeRange.DAY)

        assert stats.total_content_processed == 4
        assert stats.auto_approved == 2
        assert stats.auto_rejected == 1
        assert stats.auto_flagged == 1
        assert stats.sent_to_human_review == 0
        assert stats.human_reviewed == 2
        assert stats.average_queue_seconds == 900
        assert stats.false_positive_rate == 0.5

    def test_without_intake_only_human_reviews_count(self):
        queue = ModerationQueue(settings=Settings())
        service = EnforcementService(queue=queue, settings=Settings())

        stats = service.get_system_moderation_stats(TimeRange.WEEK)

        assert stats.total_content_processed == 0
        assert stats.human_reviewed == 0
        assert stats.average_queue_seconds == 0
        assert stats.false_positive_rate == 0.0

    @pytest.mark.asyncio
    async def test_old_activity_falls_outside_range(self):
        harness = Harness()
        await harness.submit(CLEAN)

        harness.clock.advance(days=2)

        assert harness.service.get_system_moderation_stats(TimeRange.DAY).total_content_processed == 0
        assert harness.service.get_system_moderation_stats(TimeRange.WEEK).total_content_processed == 1


class TestFlowCorrelation:
    """Each moderation flow logs and audits under one correlation ID."""

    @pytest.mark.asyncio
    async def test_moderator_action_entries_share_an_id(self, caplog):
        harness = Harness()
        moderator = harness.service.register_moderator("standard")
        author_id = uuid.uuid4()
        first = await harness.submit(HARASSMENT, author_id)
        second = await harness.submit(HARASSMENT, author_id)

        with caplog.at_level(logging.INFO, logger="trust_safety"):
            await harness.service.process_content_approval(
                first, moderator.id, ModerationActionType.REJECT, "Harassment"
            )
            await harness.service.process_content_approval(
                second, moderator.id, ModerationActionType.REJECT, "Harassment"
            )

        def flow_ids(content_id):
            updated = harness.audit.get_logs(
                action=AuditAction.QUEUE_ITEM_UPDATED, target_id=content_id
            )
            penalties = [
                entry for entry in harness.audit.get_logs(action=AuditAction.PENALTY_APPLIED)
                if entry.details["content_id"] == str(content_id)
            ]
            return {entry.correlation_id for entry in updated + penalties}

        first_ids, second_ids = flow_ids(first), flow_ids(second)
        assert len(first_ids) == 1
        assert len(second_ids) == 1
        assert first_ids != second_ids

        penalty_records = [r for r in caplog.records if r.getMessage().startswith("Applied ")]
        assert [r.correlation_id for r in penalty_records] == [
            next(iter(first_ids)),
            next(iter(second_ids)),
        ]

    @pytest.mark.asyncio
    async def test_appeal_review_runs_under_its_own_id(self):
        harness = Harness()
        moderator = harness.service.register_moderator("standard")
        author_id = uuid.uuid4()
        content_id = await harness.submit(HARASSMENT, author_id)
        await harness.service.process_content_approval(
            content_id, moderator.id, ModerationActionType.REJECT, "Harassment"
        )
        action_id = harness.queue.action_logs(content_id=content_id)[0].id
        appeal = await harness.service.submit_appeal(author_id, content_id, action_id, "Context")

        await harness.service.review_appeal(
            appeal.appeal.id, moderator.id, AppealDecision.APPROVED, "Quoted lyrics"
        )

        reviewed = harness.audit.get_logs(action=AuditAction.APPEAL_REVIEWED)[0]
        applied = harness.audit.get_logs(action=AuditAction.PENALTY_APPLIED)[0]
        assert reviewed.correlation_id is not None
        assert reviewed.correlation_id != applied.correlation_id
