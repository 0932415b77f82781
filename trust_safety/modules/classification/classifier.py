"""Classifier contract, PII detection and the default rule-based classifier.

The classifier is an external collaborator: applications plug in their own
model by subclassing ContentClassifier. RuleBasedClassifier is a keyword and
heuristic implementation used when no model is configured.
"""

import re
from abc import ABC, abstractmethod
from typing import Optional

from trust_safety.modules.classification.models import (
    ClassificationOutput,
    ImageInput,
    ModerationFlag,
    PIIDetection,
    PIIType,
)


class ContentClassifier(ABC):
    """Base class for content classifiers."""

    @abstractmethod
    async def classify(
        self,
        text: Optional[str] = None,
        images: Optional[list[ImageInput]] = None,
    ) -> ClassificationOutput:
        """Classify text, images, or both.

        Implementations raise ClassifierError (or any exception) when the
        underlying model is unavailable; callers map failures to a
        conservative result.

        Args:
            text: Text content to classify
            images: Decoded images to classify

        Returns:
            ClassificationOutput with flags, confidence and PII occurrences
        """
        pass


class PIIPattern:
    """A regex pattern for one kind of PII."""

    def __init__(
        self,
        pii_type: PIIType,
        pattern: re.Pattern,
        confidence: float,
    ):
        self.pii_type = pii_type
        self.pattern = pattern
        self.confidence = confidence

    def find_all(self, text: str) -> list[str]:
        return [match.group(0) for match in self.pattern.finditer(text)]

    def matches(self, text: str) -> bool:
        return bool(self.pattern.search(text))


# Scan order determines the order of detections in a result
DEFAULT_PII_PATTERNS = [
    PIIPattern(
        PIIType.PHONE_NUMBER,
        re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"),
        confidence=0.9,
    ),
    PIIPattern(
        PIIType.EMAIL,
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        confidence=0.95,
    ),
    PIIPattern(
        PIIType.SOCIAL_MEDIA,
        re.compile(r"@[A-Za-z0-9_]+"),
        confidence=0.8,
    ),
]


class PIIDetector:
    """Regex scan for phone numbers, emails and social handles."""

    def __init__(self, patterns: Optional[list[PIIPattern]] = None):
        self.patterns = patterns or DEFAULT_PII_PATTERNS

    def detect_in_text(self, text: str) -> list[PIIDetection]:
        """Detect PII occurrences in plain text.

        Args:
            text: Text to scan

        Returns:
            One detection per match, grouped by pattern in scan order
        """
        detections = []
        for pattern in self.patterns:
            for match in pattern.find_all(text):
                detections.append(PIIDetection(
                    type=pattern.pii_type,
                    confidence=pattern.confidence,
                    text=match,
                ))
        return detections

    def detect_in_image(self, image: ImageInput) -> list[PIIDetection]:
        """Detect PII in the recognized text regions of an image.

        Each matching region yields one detection per PII kind, located at
        the region's bounding box with the OCR confidence.

        Args:
            image: Decoded image with recognized text regions

        Returns:
            List of detections
        """
        detections = []
        for region in image.recognized_text:
            for pattern in self.patterns:
                if pattern.matches(region.text):
                    detections.append(PIIDetection(
                        type=pattern.pii_type,
                        confidence=region.confidence,
                        text=region.text,
                        location=region.location,
                    ))
        return detections


INAPPROPRIATE_KEYWORDS = ["fuck", "shit", "damn", "bitch", "asshole"]
HARASSMENT_KEYWORDS = ["kill yourself", "die", "hate you", "worthless"]
HATE_SPEECH_KEYWORDS = ["nazi", "terrorist", "subhuman"]

MIN_TEXT_LENGTH = 10
MIN_IMAGE_DIMENSION = 100
LABEL_SCORE_FLOOR = 0.5


def _keyword_pattern(keywords: list[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(keyword) for keyword in keywords)
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


class RuleBasedClassifier(ContentClassifier):
    """Keyword and heuristic classifier.

    Each rule that fires caps the overall confidence at its own level, so
    the weakest signal decides how sure the result is.
    """

    def __init__(self, pii_detector: Optional[PIIDetector] = None):
        self.pii_detector = pii_detector or PIIDetector()
        self._text_rules = [
            (_keyword_pattern(INAPPROPRIATE_KEYWORDS), ModerationFlag.INAPPROPRIATE_CONTENT, 0.85),
            (_keyword_pattern(HARASSMENT_KEYWORDS), ModerationFlag.HARASSMENT, 0.9),
            (_keyword_pattern(HATE_SPEECH_KEYWORDS), ModerationFlag.HATE_SPEECH, 0.95),
        ]

    async def classify(
        self,
        text: Optional[str] = None,
        images: Optional[list[ImageInput]] = None,
    ) -> ClassificationOutput:
        flags: set[ModerationFlag] = set()
        confidences: list[float] = []
        pii: list[PIIDetection] = []

        if text:
            text_flags, text_confidence = self.classify_text(text)
            flags.update(text_flags)
            confidences.append(text_confidence)
            pii.extend(self.pii_detector.detect_in_text(text))

        for image in images or []:
            image_flags, image_confidence = self.classify_image(image)
            flags.update(image_flags)
            confidences.append(image_confidence)
            pii.extend(self.pii_detector.detect_in_image(image))

        return ClassificationOutput(
            flags=frozenset(flags),
            confidence=min(confidences) if confidences else 1.0,
            pii=pii,
        )

    def classify_text(self, text: str) -> tuple[set[ModerationFlag], float]:
        """Classify text with keyword rules and spam heuristics.

        Args:
            text: Text to classify

        Returns:
            Tuple of (flags, confidence)
        """
        flags: set[ModerationFlag] = set()
        confidence = 1.0

        for pattern, flag, rule_confidence in self._text_rules:
            if pattern.search(text):
                flags.add(flag)
                confidence = min(confidence, rule_confidence)

        if self._looks_like_spam(text):
            flags.add(ModerationFlag.SPAM)
            confidence = min(confidence, 0.7)

        return flags, confidence

    def classify_image(self, image: ImageInput) -> tuple[set[ModerationFlag], float]:
        """Classify an image from its dimensions and external labels.

        Args:
            image: Decoded image

        Returns:
            Tuple of (flags, confidence)
        """
        flags: set[ModerationFlag] = set()
        confidence = 0.8

        if image.width < MIN_IMAGE_DIMENSION or image.height < MIN_IMAGE_DIMENSION:
            flags.add(ModerationFlag.SPAM)
            confidence = 0.7

        for flag, score in image.labels.items():
            if score >= LABEL_SCORE_FLOOR:
                flags.add(flag)
                confidence = min(confidence, score)

        return flags, confidence

    def _looks_like_spam(self, text: str) -> bool:
        if len(text) < MIN_TEXT_LENGTH:
            return True
        uppercase_count = sum(1 for char in text if char.isupper())
        return uppercase_count > len(text) / 2
