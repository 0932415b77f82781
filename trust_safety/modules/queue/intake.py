"""Content intake: classify new content and queue it when review is needed."""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Optional

from trust_safety.modules.classification.models import (
    ContentType,
    ImageInput,
    ModerationResult,
    ModerationStatus,
)
from trust_safety.modules.classification.service import ModerationResultBuilder
from trust_safety.modules.content.gateway import ContentGateway
from trust_safety.modules.queue.models import (
    ContentBatchItem,
    FlaggingStatistics,
    IntakeOutcome,
    IntakeRecord,
)
from trust_safety.modules.queue.service import ModerationQueue

logger = logging.getLogger(__name__)

REVIEW_STATUSES = (
    ModerationStatus.PENDING,
    ModerationStatus.FLAGGED,
    ModerationStatus.REJECTED,
)


class ContentIntakeService:
    """Entry point for newly submitted content."""

    def __init__(
        self,
        builder: ModerationResultBuilder,
        queue: ModerationQueue,
        content_gateway: Optional[ContentGateway] = None,
    ):
        self.builder = builder
        self.queue = queue
        self.content_gateway = content_gateway
        self._records: list[IntakeRecord] = []

    async def process_content(
        self,
        content_id: uuid.UUID,
        content_type: ContentType,
        author_id: Optional[uuid.UUID] = None,
        text: Optional[str] = None,
        images: Optional[list[ImageInput]] = None,
        timeout: Optional[float] = None,
    ) -> ModerationResult:
        """Classify content and enqueue it if a human needs to see it.

        Classification finishes before the queue is touched.

        Args:
            content_id: Content identifier
            content_type: Type of content
            author_id: Content author
            text: Text body
            images: Decoded images
            timeout: Classification deadline in seconds

        Returns:
            The ModerationResult produced for the content
        """
        if self.content_gateway is not None and author_id is not None:
            self.content_gateway.register_content(content_id, author_id)

        result = await self.builder.moderate_content(
            content_id,
            content_type,
            text=text,
            images=images,
            timeout=timeout,
        )

        queued = False
        if self.builder.requires_human_review(result) or result.status in REVIEW_STATUSES:
            image_urls = [image.url for image in images or [] if image.url]
            queued = await self.queue.enqueue(
                result,
                report_count=0,
                author_id=author_id,
                content=text,
                image_urls=image_urls,
            ) is not None
        else:
            logger.debug(f"Content {content_id} auto-approved without review")

        self._records.append(IntakeRecord(
            content_id=content_id,
            outcome=IntakeOutcome.from_status(result.status),
            pii_detected=bool(result.detected_pii),
            queued=queued,
            processed_at=self.builder.clock(),
        ))
        return result

    async def process_batch(
        self,
        items: list[ContentBatchItem],
        max_concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> list[ModerationResult]:
        """Process several items with bounded concurrency.

        Args:
            items: Content to process
            max_concurrency: Items classified at once
                (INTAKE_BATCH_CONCURRENCY if None)
            timeout: Classification deadline per item

        Returns:
            Results in the order of the input items

        Raises:
            ValueError: If max_concurrency is not positive
        """
        limit = (
            max_concurrency if max_concurrency is not None
            else self.builder.settings.INTAKE_BATCH_CONCURRENCY
        )
        if limit < 1:
            raise ValueError(f"max_concurrency must be positive, got {limit}")
        semaphore = asyncio.Semaphore(limit)

        async def process(item: ContentBatchItem) -> ModerationResult:
            async with semaphore:
                return await self.process_content(
                    item.content_id,
                    item.content_type,
                    author_id=item.author_id,
                    text=item.text,
                    images=item.images,
                    timeout=timeout,
                )

        results = await asyncio.gather(*(process(item) for item in items))
        logger.info(f"Processed intake batch of {len(items)} items")
        return list(results)

    def records(self, since: Optional[datetime] = None) -> list[IntakeRecord]:
        """Intake outcomes in processing order, optionally since a moment."""
        if since is None:
            return list(self._records)
        return [record for record in self._records if record.processed_at >= since]

    def flagging_statistics(self, since: Optional[datetime] = None) -> FlaggingStatistics:
        return FlaggingStatistics.from_records(self.records(since))
