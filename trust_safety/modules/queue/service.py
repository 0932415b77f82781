"""Moderation queue.

The queue is the ordered work list of items awaiting human review. Items
are kept sorted by (priority, created_at): critical and oldest first.

Mutations are serialised by an asyncio.Lock and never modify the live list
or its items in place; each mutation builds a new sorted list of new item
objects and swaps it in, so readers always see a complete, sorted snapshot.
Notifications are published after the lock is released.
"""

import asyncio
import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from trust_safety.core.config import Settings, settings as default_settings
from trust_safety.core.metrics import MODERATION_ACTIONS_TOTAL, QUEUE_DEPTH
from trust_safety.core.tracing import create_span
from trust_safety.modules.audit.service import AuditAction, AuditLogger, safe_audit
from trust_safety.modules.classification.models import (
    ContentType,
    ModerationResult,
    ModerationSeverity,
    ModerationStatus,
    max_severity,
)
from trust_safety.modules.notification.models import QueueAlertEvent
from trust_safety.modules.notification.service import NotificationDispatcher
from trust_safety.modules.queue.models import (
    ModerationActionLog,
    ModerationActionType,
    ModerationPriority,
    QueueItem,
    QueueStatistics,
    higher_priority,
)

logger = logging.getLogger(__name__)


def determine_priority(
    severity: ModerationSeverity,
    report_count: int,
    config: Optional[Settings] = None,
) -> ModerationPriority:
    """Compute queue priority from severity and report volume.

    Args:
        severity: Result severity
        report_count: Number of reports against the content
        config: Settings with report-count thresholds

    Returns:
        The first matching priority from critical down to low
    """
    config = config or default_settings
    if severity == ModerationSeverity.CRITICAL or report_count >= config.PRIORITY_CRITICAL_REPORT_COUNT:
        return ModerationPriority.CRITICAL
    if severity == ModerationSeverity.HIGH or report_count >= config.PRIORITY_HIGH_REPORT_COUNT:
        return ModerationPriority.HIGH
    if severity == ModerationSeverity.MEDIUM or report_count >= config.PRIORITY_MEDIUM_REPORT_COUNT:
        return ModerationPriority.MEDIUM
    return ModerationPriority.LOW


class ModerationQueue:
    """Priority-ordered queue of content awaiting review."""

    def __init__(
        self,
        notifications: Optional[NotificationDispatcher] = None,
        audit: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.notifications = notifications
        self.audit = audit
        self.settings = settings or default_settings
        self.clock = clock

        self._items: list[QueueItem] = []
        self._closed_content: set[uuid.UUID] = set()
        self._action_logs: list[ModerationActionLog] = []
        self._lock = asyncio.Lock()

    # ============================================
    # Priority
    # ============================================

    def determine_priority(
        self,
        severity: ModerationSeverity,
        report_count: int,
    ) -> ModerationPriority:
        """Compute priority with this queue's thresholds."""
        return determine_priority(severity, report_count, self.settings)

    # ============================================
    # Mutations
    # ============================================

    async def enqueue(
        self,
        result: ModerationResult,
        report_count: int = 0,
        author_id: Optional[uuid.UUID] = None,
        content: Optional[str] = None,
        image_urls: Optional[list[str]] = None,
    ) -> Optional[QueueItem]:
        """Add a result to the queue, or merge it into the live item.

        A live item for the same content is updated instead of duplicated:
        the report count takes the maximum, flags are merged, and severity
        and priority never decrease.

        Args:
            result: Classification or report-synthesized result
            report_count: Current number of reports against the content
            author_id: Content author, if known
            content: Text body for reviewers
            image_urls: Image references for reviewers

        Returns:
            The queued item, or None if the content already has a final
            decision
        """
        alert_item = None
        async with self._lock:
            if result.content_id in self._closed_content or result.is_final:
                logger.info(f"Content {result.content_id} is closed, not enqueuing")
                return None

            now = self.clock()
            existing = self._find_by_content(result.content_id)

            if existing is None:
                item = QueueItem(
                    id=uuid.uuid4(),
                    content_id=result.content_id,
                    content_type=result.content_type,
                    moderation_result=dataclasses.replace(result),
                    priority=self.determine_priority(result.severity, report_count),
                    report_count=report_count,
                    author_id=author_id,
                    content=content,
                    image_urls=list(image_urls or []),
                    created_at=now,
                    updated_at=now,
                )
                items = self._items + [item]
                if item.priority.is_high:
                    alert_item = item
            else:
                item = self._merge(existing, result, report_count, author_id, content, image_urls, now)
                items = [item if i.id == existing.id else i for i in self._items]
                if item.priority.is_high and item.priority != existing.priority:
                    alert_item = item

            self._commit(items)

        logger.debug(
            f"Enqueued content {item.content_id} as {item.priority.value} "
            f"(reports={item.report_count})"
        )
        if alert_item is not None:
            await self._publish_alert(alert_item)
        return item

    async def apply_action(
        self,
        item_id: uuid.UUID,
        action: ModerationActionType,
        moderator_id: uuid.UUID,
        reason: str,
        notes: Optional[str] = None,
    ) -> Optional[QueueItem]:
        """Apply a moderator action and return the item as it was before.

        Args:
            item_id: Queue item ID
            action: Moderator action
            moderator_id: Acting moderator
            reason: Reason for the action
            notes: Optional reviewer notes

        Returns:
            Snapshot of the item prior to the action, or None if the item is
            unknown or its result is already final
        """
        with create_span(
            "moderation.queue.apply_action",
            attributes={"queue.item_id": str(item_id), "moderation.action": action.value},
        ):
            async with self._lock:
                item = self._find_by_id(item_id)
                if item is None or item.moderation_result.is_final:
                    return None

                now = self.clock()
                new_status = action.resulting_status
                updated_result = dataclasses.replace(
                    item.moderation_result,
                    status=new_status,
                    reviewed_at=now,
                    reviewed_by=moderator_id,
                    reason=reason,
                    notes=notes,
                )

                if action.is_terminal:
                    items = [i for i in self._items if i.id != item_id]
                else:
                    updated_item = dataclasses.replace(
                        item, moderation_result=updated_result, updated_at=now
                    )
                    items = [updated_item if i.id == item_id else i for i in self._items]

                if new_status.is_terminal:
                    self._closed_content.add(item.content_id)

                action_log = ModerationActionLog(
                    id=uuid.uuid4(),
                    item_id=item.id,
                    content_id=item.content_id,
                    moderator_id=moderator_id,
                    action=action,
                    previous_status=item.status,
                    new_status=new_status,
                    reason=reason,
                    notes=notes,
                    created_at=now,
                    queued_at=item.created_at,
                )
                self._action_logs = self._action_logs + [action_log]
                self._commit(items)

                safe_audit(
                    self.audit,
                    logger,
                    AuditAction.QUEUE_ITEM_UPDATED,
                    actor_id=moderator_id,
                    target_id=item.content_id,
                    details={
                        "item_id": item.id,
                        "action": action,
                        "previous_status": item.status,
                        "new_status": new_status,
                        "reason": reason,
                    },
                )

        MODERATION_ACTIONS_TOTAL.labels(action=action.value).inc()
        logger.info(
            f"Moderator {moderator_id} applied {action.value} to content {item.content_id}",
            extra={"moderator_id": str(moderator_id), "action": action.value},
        )
        return item

    async def update_item(
        self,
        item_id: uuid.UUID,
        action: ModerationActionType,
        moderator_id: uuid.UUID,
        reason: str,
        notes: Optional[str] = None,
    ) -> bool:
        """Apply a moderator action to an item.

        Terminal actions (approve, reject, delete) remove the item. Any
        action resulting in approved or rejected closes the content so it
        can never re-enter the queue.

        Returns:
            False if the item is unknown or already final
        """
        previous = await self.apply_action(item_id, action, moderator_id, reason, notes)
        return previous is not None

    async def remove_item(self, item_id: uuid.UUID) -> bool:
        """Remove an item unconditionally.

        Returns:
            False if the item is unknown
        """
        async with self._lock:
            item = self._find_by_id(item_id)
            if item is None:
                return False
            self._commit([i for i in self._items if i.id != item_id])

        safe_audit(
            self.audit,
            logger,
            AuditAction.QUEUE_ITEM_REMOVED,
            target_id=item.content_id,
            details={"item_id": item_id},
        )
        return True

    async def record_report(self, content_id: uuid.UUID, report_count: int) -> bool:
        """Raise a live item's report count and recompute its priority.

        Returns:
            False if no live item exists for the content
        """
        alert_item = None
        async with self._lock:
            existing = self._find_by_content(content_id)
            if existing is None:
                return False

            count = max(existing.report_count, report_count)
            priority = higher_priority(
                existing.priority, self.determine_priority(existing.severity, count)
            )
            item = dataclasses.replace(
                existing, report_count=count, priority=priority, updated_at=self.clock()
            )
            self._commit([item if i.id == existing.id else i for i in self._items])
            if priority.is_high and priority != existing.priority:
                alert_item = item

        if alert_item is not None:
            await self._publish_alert(alert_item)
        return True

    async def escalate(
        self,
        content_id: uuid.UUID,
        priority: ModerationPriority = ModerationPriority.CRITICAL,
        report_count: Optional[int] = None,
    ) -> bool:
        """Raise a live item's priority. Never lowers it.

        Returns:
            False if no live item exists for the content
        """
        alert_item = None
        async with self._lock:
            existing = self._find_by_content(content_id)
            if existing is None:
                return False

            count = existing.report_count
            if report_count is not None:
                count = max(count, report_count)
            new_priority = higher_priority(existing.priority, priority)
            item = dataclasses.replace(
                existing, report_count=count, priority=new_priority, updated_at=self.clock()
            )
            self._commit([item if i.id == existing.id else i for i in self._items])
            if new_priority.is_high and new_priority != existing.priority:
                alert_item = item

        if alert_item is not None:
            logger.info(f"Escalated content {content_id} to {alert_item.priority.value}")
            await self._publish_alert(alert_item)
        return True

    async def assign(self, content_id: uuid.UUID, moderator_id: uuid.UUID) -> Optional[QueueItem]:
        """Assign the live item for a content to a moderator.

        Returns:
            The assigned item, or None if no live item exists
        """
        async with self._lock:
            existing = self._find_by_content(content_id)
            if existing is None:
                return None
            item = dataclasses.replace(existing, assigned_to=moderator_id, updated_at=self.clock())
            self._commit([item if i.id == existing.id else i for i in self._items])
        return item

    # ============================================
    # Reads
    # ============================================

    def list_items(
        self,
        priority: Optional[ModerationPriority] = None,
        content_type: Optional[ContentType] = None,
        status: Optional[ModerationStatus] = None,
        limit: Optional[int] = None,
    ) -> list[QueueItem]:
        """List items in queue order with optional filters.

        Args:
            priority: Filter by priority
            content_type: Filter by content type
            status: Filter by result status
            limit: Maximum number of items (settings default if None)

        Returns:
            Filtered prefix of the sorted snapshot
        """
        limit = limit if limit is not None else self.settings.QUEUE_DEFAULT_LIMIT
        items = self._items

        if priority is not None:
            items = [item for item in items if item.priority == priority]
        if content_type is not None:
            items = [item for item in items if item.content_type == content_type]
        if status is not None:
            items = [item for item in items if item.status == status]

        return list(items[:limit])

    def get_item(self, item_id: uuid.UUID) -> Optional[QueueItem]:
        return self._find_by_id(item_id)

    def get_item_for_content(self, content_id: uuid.UUID) -> Optional[QueueItem]:
        return self._find_by_content(content_id)

    def items_assigned_to(self, moderator_id: uuid.UUID) -> list[QueueItem]:
        """Live items assigned to a moderator, in queue order."""
        return [item for item in self._items if item.assigned_to == moderator_id]

    def is_closed(self, content_id: uuid.UUID) -> bool:
        """Check if the content has a final decision."""
        return content_id in self._closed_content

    def statistics(self) -> QueueStatistics:
        """Compute statistics over the live set.

        Returns:
            QueueStatistics; average wait is the integer mean of whole
            minutes waited, 0 when the queue is empty
        """
        items = self._items
        if not items:
            return QueueStatistics()

        now = self.clock()
        total_wait = sum(
            int((now - item.created_at).total_seconds() // 60) for item in items
        )
        return QueueStatistics(
            total_items=len(items),
            high_priority_count=sum(1 for item in items if item.is_high_priority),
            pending_count=sum(1 for item in items if item.status == ModerationStatus.PENDING),
            flagged_count=sum(1 for item in items if item.status == ModerationStatus.FLAGGED),
            average_wait_minutes=total_wait // len(items),
        )

    def action_logs(
        self,
        content_id: Optional[uuid.UUID] = None,
        moderator_id: Optional[uuid.UUID] = None,
    ) -> list[ModerationActionLog]:
        """Get moderator action history in chronological order."""
        logs = self._action_logs
        if content_id is not None:
            logs = [log for log in logs if log.content_id == content_id]
        if moderator_id is not None:
            logs = [log for log in logs if log.moderator_id == moderator_id]
        return list(logs)

    def __len__(self) -> int:
        return len(self._items)

    # ============================================
    # Internals
    # ============================================

    def _find_by_id(self, item_id: uuid.UUID) -> Optional[QueueItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def _find_by_content(self, content_id: uuid.UUID) -> Optional[QueueItem]:
        for item in self._items:
            if item.content_id == content_id:
                return item
        return None

    def _merge(
        self,
        existing: QueueItem,
        result: ModerationResult,
        report_count: int,
        author_id: Optional[uuid.UUID],
        content: Optional[str],
        image_urls: Optional[list[str]],
        now: datetime,
    ) -> QueueItem:
        current = existing.moderation_result
        flags = current.flags | result.flags
        severity = max_severity([current.severity, result.severity])

        status = current.status
        if status == ModerationStatus.PENDING and result.status != ModerationStatus.PENDING:
            status = result.status

        merged_result = dataclasses.replace(
            current,
            flags=flags,
            severity=severity,
            status=status,
            confidence=min(current.confidence, result.confidence),
            reason=current.reason or result.reason,
            detected_pii=current.detected_pii + [
                pii for pii in result.detected_pii if pii not in current.detected_pii
            ],
        )
        count = max(existing.report_count, report_count)
        priority = higher_priority(existing.priority, self.determine_priority(severity, count))

        return dataclasses.replace(
            existing,
            moderation_result=merged_result,
            report_count=count,
            priority=priority,
            author_id=existing.author_id or author_id,
            content=existing.content or content,
            image_urls=existing.image_urls or list(image_urls or []),
            updated_at=now,
        )

    def _commit(self, items: list[QueueItem]) -> None:
        # sorted() is stable, so equal keys keep insertion order
        self._items = sorted(items, key=QueueItem.sort_key)
        self._refresh_depth_gauge()

    def _refresh_depth_gauge(self) -> None:
        counts = {priority: 0 for priority in ModerationPriority}
        for item in self._items:
            counts[item.priority] += 1
        for priority, count in counts.items():
            QUEUE_DEPTH.labels(priority=priority.value).set(count)

    async def _publish_alert(self, item: QueueItem) -> None:
        if self.notifications is None:
            return
        event = QueueAlertEvent(
            item_id=item.id,
            content_id=item.content_id,
            priority=item.priority.value,
            flags=sorted(flag.value for flag in item.moderation_result.flags),
        )
        await self.notifications.publish(event)
