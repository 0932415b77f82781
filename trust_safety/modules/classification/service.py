"""Moderation Result Builder.

Turns raw classifier output into a normalized ModerationResult. Classifier
calls are bounded by a timeout; a failed or slow classifier produces a
pending result so that content is never approved without a decision.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Callable, Optional

from trust_safety.core.config import Settings, settings as default_settings
from trust_safety.core.logging import log_error
from trust_safety.core.metrics import (
    CLASSIFICATIONS_TOTAL,
    CLASSIFIER_DURATION_SECONDS,
    CLASSIFIER_FAILURES_TOTAL,
)
from trust_safety.core.tracing import add_span_attributes, create_span, record_exception
from trust_safety.modules.classification.classifier import (
    ContentClassifier,
    RuleBasedClassifier,
)
from trust_safety.modules.classification.models import (
    ClassificationOutput,
    ContentType,
    ImageInput,
    ModerationFlag,
    ModerationResult,
    ModerationSeverity,
    ModerationStatus,
    PIIDetection,
    get_auto_action_threshold,
    max_severity,
)

logger = logging.getLogger(__name__)

AUTO_APPROVED_NOTE = "Auto-approved - no violations detected"
CLASSIFIER_UNAVAILABLE_REASON = "Automated classification unavailable"
PII_REASON = "Contains personal information"


class ClassificationFailure(Exception):
    """Internal signal that a classifier call did not produce output."""

    def __init__(self, reason: str, cause: BaseException):
        super().__init__(f"{reason}: {cause}")
        self.reason = reason
        self.cause = cause


def generate_reason(flags: frozenset[ModerationFlag]) -> Optional[str]:
    """Build a human-readable reason for a set of flags.

    Args:
        flags: Violation flags

    Returns:
        The flag description for a single flag, a combined message for
        several flags, or None when there are none
    """
    if not flags:
        return None
    ordered = sorted(flags, key=lambda flag: list(ModerationFlag).index(flag))
    if len(ordered) == 1:
        return ordered[0].description
    descriptions = ", ".join(flag.description for flag in ordered)
    return f"Multiple policy violations detected: {descriptions}"


class ModerationResultBuilder:
    """Builds ModerationResults from classifier output."""

    def __init__(
        self,
        classifier: Optional[ContentClassifier] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.classifier = classifier or RuleBasedClassifier()
        self.settings = settings or default_settings
        self.clock = clock

    def determine_status(
        self,
        severity: ModerationSeverity,
        confidence: float,
        pii_count: int,
    ) -> ModerationStatus:
        """Decide the status for a classification.

        Args:
            severity: Maximum flag severity
            confidence: Overall classifier confidence
            pii_count: Number of PII occurrences

        Returns:
            flagged when PII is present, an automatic decision when the
            confidence reaches the severity threshold, otherwise pending
        """
        if pii_count > 0:
            return ModerationStatus.FLAGGED

        if confidence >= get_auto_action_threshold(severity, self.settings):
            if severity in (ModerationSeverity.CRITICAL, ModerationSeverity.HIGH):
                return ModerationStatus.REJECTED
            if severity == ModerationSeverity.MEDIUM:
                return ModerationStatus.FLAGGED
            return ModerationStatus.APPROVED

        return ModerationStatus.PENDING

    def build_result(
        self,
        content_id: uuid.UUID,
        content_type: ContentType,
        flags: frozenset[ModerationFlag],
        confidence: float,
        pii: Optional[list[PIIDetection]] = None,
    ) -> ModerationResult:
        """Build a normalized result from raw classifier output.

        Deterministic for identical inputs apart from created_at.

        Args:
            content_id: Content identifier
            content_type: Type of content
            flags: Violation flags
            confidence: Classifier confidence in [0, 1]
            pii: PII occurrences in detection order

        Returns:
            ModerationResult

        Raises:
            ValueError: If confidence is outside [0, 1]
        """
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {confidence}")

        flags = frozenset(flags)
        pii = list(pii or [])
        severity = max_severity(flag.severity for flag in flags)
        status = self.determine_status(severity, confidence, len(pii))

        reason = generate_reason(flags)
        if reason is None and pii:
            reason = PII_REASON

        return ModerationResult(
            content_id=content_id,
            content_type=content_type,
            status=status,
            flags=flags,
            confidence=confidence,
            severity=severity,
            reason=reason,
            detected_pii=pii,
            created_at=self.clock(),
        )

    async def moderate_text(
        self,
        content_id: uuid.UUID,
        text: str,
        content_type: ContentType = ContentType.POST,
        timeout: Optional[float] = None,
    ) -> ModerationResult:
        """Moderate text content."""
        return await self.moderate_content(
            content_id, content_type, text=text, timeout=timeout
        )

    async def moderate_image(
        self,
        content_id: uuid.UUID,
        image: ImageInput,
        timeout: Optional[float] = None,
    ) -> ModerationResult:
        """Moderate a single image."""
        return await self.moderate_content(
            content_id, ContentType.IMAGE, images=[image], timeout=timeout
        )

    async def moderate_content(
        self,
        content_id: uuid.UUID,
        content_type: ContentType,
        text: Optional[str] = None,
        images: Optional[list[ImageInput]] = None,
        timeout: Optional[float] = None,
    ) -> ModerationResult:
        """Moderate content spanning text and any number of images.

        The classifier is called once for the text and once per image,
        concurrently and under one shared deadline.
        Flags are unioned, PII concatenated in order and the minimum
        confidence kept.

        Args:
            content_id: Content identifier
            content_type: Type of content
            text: Optional text body
            images: Optional decoded images
            timeout: Deadline in seconds for the whole classification
                (settings default if None)

        Returns:
            ModerationResult; pending with zero confidence when any
            classifier call fails or times out
        """
        images = images or []
        if not text and not images:
            result = self.build_result(content_id, content_type, frozenset(), 1.0)
            result.notes = AUTO_APPROVED_NOTE
            CLASSIFICATIONS_TOTAL.labels(status=result.status.value).inc()
            return result

        timeout = timeout if timeout is not None else self.settings.CLASSIFIER_TIMEOUT_SECONDS

        with create_span(
            "moderation.classify",
            attributes={
                "content.id": str(content_id),
                "content.type": content_type.value,
                "content.image_count": len(images),
            },
        ):
            requests = [{"text": text}] if text else []
            requests.extend({"images": [image]} for image in images)
            try:
                outputs = await self._classify_all(requests, timeout)
            except ClassificationFailure as failure:
                CLASSIFIER_FAILURES_TOTAL.labels(reason=failure.reason).inc()
                record_exception(failure.cause, {"failure.reason": failure.reason})
                log_error(
                    logger,
                    "Classifier failed, content held for review",
                    exception=failure.cause,
                    content_id=str(content_id),
                    failure_reason=failure.reason,
                )
                result = self._unavailable_result(content_id, content_type)
                CLASSIFICATIONS_TOTAL.labels(status=result.status.value).inc()
                return result

            flags = frozenset().union(*(output.flags for output in outputs))
            pii = [detection for output in outputs for detection in output.pii]
            confidence = min(output.confidence for output in outputs)

            result = self.build_result(content_id, content_type, flags, confidence, pii)
            add_span_attributes({
                "moderation.status": result.status.value,
                "moderation.severity": result.severity.value,
                "moderation.confidence": result.confidence,
            })

        CLASSIFICATIONS_TOTAL.labels(status=result.status.value).inc()
        logger.debug(
            f"Classified content {content_id}: {result.status.value} "
            f"({result.severity.value}, confidence={result.confidence:.2f})"
        )
        return result

    def requires_human_review(self, result: ModerationResult) -> bool:
        """Check a result against this builder's thresholds.

        Args:
            result: Result produced by this builder

        Returns:
            True if a moderator must look at the result
        """
        return result.needs_human_review(self.settings)

    async def _classify_all(
        self,
        requests: list[dict],
        timeout: float,
    ) -> list[ClassificationOutput]:
        """Run every classifier call concurrently under one deadline.

        Outputs come back in request order. Calls still running when the
        deadline passes or another call fails are cancelled.
        """
        tasks = [asyncio.ensure_future(self._classify(**kwargs)) for kwargs in requests]
        try:
            return list(await asyncio.wait_for(asyncio.gather(*tasks), timeout=timeout))
        except asyncio.TimeoutError as e:
            raise ClassificationFailure("timeout", e) from e
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _classify(self, **kwargs) -> ClassificationOutput:
        started = time.perf_counter()
        try:
            return await self.classifier.classify(**kwargs)
        except Exception as e:
            raise ClassificationFailure("error", e) from e
        finally:
            CLASSIFIER_DURATION_SECONDS.observe(time.perf_counter() - started)

    def _unavailable_result(
        self,
        content_id: uuid.UUID,
        content_type: ContentType,
    ) -> ModerationResult:
        return ModerationResult(
            content_id=content_id,
            content_type=content_type,
            status=ModerationStatus.PENDING,
            flags=frozenset(),
            confidence=0.0,
            severity=ModerationSeverity.LOW,
            reason=CLASSIFIER_UNAVAILABLE_REASON,
            created_at=self.clock(),
        )
