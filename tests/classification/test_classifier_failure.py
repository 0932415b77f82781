"""Tests for classifier timeouts, failures and multi-medium aggregation."""

import asyncio
import uuid

import pytest

from trust_safety.core.config import Settings
from trust_safety.core.exceptions import ClassifierError
from trust_safety.core.metrics import REGISTRY
from trust_safety.modules.classification.classifier import ContentClassifier
from trust_safety.modules.classification.models import (
    ClassificationOutput,
    ContentType,
    ImageInput,
    ModerationFlag,
    ModerationStatus,
    PIIDetection,
    PIIType,
)
from trust_safety.modules.classification.service import (
    CLASSIFIER_UNAVAILABLE_REASON,
    ModerationResultBuilder,
)


class SlowClassifier(ContentClassifier):
    """Classifier that never answers in time."""

    async def classify(self, text=None, images=None):
        await asyncio.sleep(5)
        return ClassificationOutput(flags=frozenset(), confidence=1.0)


class FailingClassifier(ContentClassifier):
    """Classifier whose backing model is down."""

    async def classify(self, text=None, images=None):
        raise ClassifierError("model unavailable")


class StubClassifier(ContentClassifier):
    """Returns fixed outputs for text and image calls and records calls."""

    def __init__(self, text_output, image_output):
        self.text_output = text_output
        self.image_output = image_output
        self.calls = []

    async def classify(self, text=None, images=None):
        self.calls.append((text, images))
        if text is not None:
            return self.text_output
        return self.image_output


def failure_count(reason: str) -> float:
    value = REGISTRY.get_sample_value(
        "moderation_classifier_failures_total", {"reason": reason}
    )
    return value or 0.0


class TestClassifierFailures:
    """A degraded classifier never approves content."""

    @pytest.mark.asyncio
    async def test_timeout_yields_pending(self):
        builder = ModerationResultBuilder(classifier=SlowClassifier(), settings=Settings())
        before = failure_count("timeout")

        result = await builder.moderate_text(uuid.uuid4(), "hello there everyone", timeout=0.01)

        assert result.status == ModerationStatus.PENDING
        assert result.confidence == 0.0
        assert result.reason == CLASSIFIER_UNAVAILABLE_REASON
        assert result.requires_human_review
        assert failure_count("timeout") == before + 1

    @pytest.mark.asyncio
    async def test_settings_timeout_applies_by_default(self):
        builder = ModerationResultBuilder(
            classifier=SlowClassifier(),
            settings=Settings(CLASSIFIER_TIMEOUT_SECONDS=0.01),
        )

        result = await builder.moderate_text(uuid.uuid4(), "hello there everyone")

        assert result.status == ModerationStatus.PENDING

    @pytest.mark.asyncio
    async def test_classifier_error_yields_pending(self):
        builder = ModerationResultBuilder(classifier=FailingClassifier(), settings=Settings())
        before = failure_count("error")

        result = await builder.moderate_image(uuid.uuid4(), ImageInput(width=800, height=600))

        assert result.status == ModerationStatus.PENDING
        assert result.content_type == ContentType.IMAGE
        assert failure_count("error") == before + 1


class TestMultiMediumAggregation:
    """Text and images are classified separately and combined."""

    @pytest.mark.asyncio
    async def test_flags_union_pii_concatenated_minimum_confidence(self):
        phone = PIIDetection(type=PIIType.PHONE_NUMBER, confidence=0.9, text="555-123-4567")
        handle = PIIDetection(type=PIIType.SOCIAL_MEDIA, confidence=0.6, text="@someone")
        classifier = StubClassifier(
            text_output=ClassificationOutput(
                flags=frozenset({ModerationFlag.HARASSMENT}), confidence=0.9, pii=[phone]
            ),
            image_output=ClassificationOutput(
                flags=frozenset({ModerationFlag.SPAM}), confidence=0.7, pii=[handle]
            ),
        )
        builder = ModerationResultBuilder(classifier=classifier, settings=Settings())

        result = await builder.moderate_content(
            uuid.uuid4(),
            ContentType.REVIEW,
            text="some review text",
            images=[ImageInput(width=800, height=600), ImageInput(width=640, height=480)],
        )

        assert len(classifier.calls) == 3
        assert result.flags == frozenset({ModerationFlag.HARASSMENT, ModerationFlag.SPAM})
        assert result.confidence == 0.7
        assert result.detected_pii == [phone, handle, handle]
        assert result.status == ModerationStatus.FLAGGED

    @pytest.mark.asyncio
    async def test_one_failing_medium_fails_whole_content(self):
        class ImageFailingClassifier(ContentClassifier):
            async def classify(self, text=None, images=None):
                if images:
                    raise RuntimeError("vision backend down")
                return ClassificationOutput(flags=frozenset(), confidence=1.0)

        builder = ModerationResultBuilder(classifier=ImageFailingClassifier(), settings=Settings())

        result = await builder.moderate_content(
            uuid.uuid4(),
            ContentType.POST,
            text="What a lovely afternoon at the park",
            images=[ImageInput(width=800, height=600)],
        )

        assert result.status == ModerationStatus.PENDING
        assert result.confidence == 0.0


class SerialClassifier(ContentClassifier):
    """Model server with a single worker: calls queue up behind each other."""

    def __init__(self, seconds_per_call: float):
        self.seconds_per_call = seconds_per_call
        self.completed = 0
        self._worker = asyncio.Lock()

    async def classify(self, text=None, images=None):
        async with self._worker:
            await asyncio.sleep(self.seconds_per_call)
            self.completed += 1
        return ClassificationOutput(flags=frozenset(), confidence=1.0)


class ParallelClassifier(ContentClassifier):
    """Classifier that serves every call at once."""

    def __init__(self, seconds_per_call: float):
        self.seconds_per_call = seconds_per_call
        self.in_flight = 0
        self.max_in_flight = 0

    async def classify(self, text=None, images=None):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.seconds_per_call)
        finally:
            self.in_flight -= 1
        return ClassificationOutput(flags=frozenset(), confidence=1.0)


class TestClassificationDeadline:
    """The timeout bounds the whole classification, not each call."""

    @pytest.mark.asyncio
    async def test_calls_under_timeout_but_over_in_total_yield_pending(self):
        classifier = SerialClassifier(seconds_per_call=0.15)
        builder = ModerationResultBuilder(classifier=classifier, settings=Settings())
        loop = asyncio.get_running_loop()
        images = [ImageInput(width=800, height=600) for _ in range(4)]

        started = loop.time()
        result = await builder.moderate_content(
            uuid.uuid4(),
            ContentType.POST,
            text="What a lovely afternoon at the park",
            images=images,
            timeout=0.3,
        )
        elapsed = loop.time() - started

        assert result.status == ModerationStatus.PENDING
        assert result.reason == CLASSIFIER_UNAVAILABLE_REASON
        assert elapsed < 0.6
        assert classifier.completed < 5

    @pytest.mark.asyncio
    async def test_media_are_classified_concurrently(self):
        classifier = ParallelClassifier(seconds_per_call=0.15)
        builder = ModerationResultBuilder(classifier=classifier, settings=Settings())
        images = [ImageInput(width=800, height=600) for _ in range(4)]

        result = await builder.moderate_content(
            uuid.uuid4(),
            ContentType.POST,
            text="What a lovely afternoon at the park",
            images=images,
            timeout=0.5,
        )

        assert result.status == ModerationStatus.APPROVED
        assert classifier.max_in_flight == 5

    @pytest.mark.asyncio
    async def test_failure_cancels_remaining_calls(self):
        slow = ParallelClassifier(seconds_per_call=5)

        class MixedClassifier(ContentClassifier):
            async def classify(self, text=None, images=None):
                if text is not None:
                    raise ClassifierError("text model unavailable")
                return await slow.classify(images=images)

        builder = ModerationResultBuilder(classifier=MixedClassifier(), settings=Settings())

        result = await builder.moderate_content(
            uuid.uuid4(),
            ContentType.POST,
            text="hello there",
            images=[ImageInput(width=800, height=600)],
            timeout=10,
        )

        assert result.status == ModerationStatus.PENDING
        assert slow.in_flight == 0
