"""Classification module: classifier contract, PII detection and result building."""

from trust_safety.modules.classification.models import (
    BoundingBox,
    ClassificationOutput,
    ContentType,
    ImageInput,
    ModerationFlag,
    ModerationResult,
    ModerationSeverity,
    ModerationStatus,
    PIIDetection,
    PIIType,
    RecognizedText,
    get_auto_action_threshold,
    max_severity,
)
from trust_safety.modules.classification.classifier import (
    ContentClassifier,
    PIIDetector,
    PIIPattern,
    RuleBasedClassifier,
)
from trust_safety.modules.classification.service import (
    ModerationResultBuilder,
    generate_reason,
)

__all__ = [
    # Models
    "BoundingBox",
    "ClassificationOutput",
    "ContentType",
    "ImageInput",
    "ModerationFlag",
    "ModerationResult",
    "ModerationSeverity",
    "ModerationStatus",
    "PIIDetection",
    "PIIType",
    "RecognizedText",
    "get_auto_action_threshold",
    "max_severity",
    # Classifier
    "ContentClassifier",
    "PIIDetector",
    "PIIPattern",
    "RuleBasedClassifier",
    # Service
    "ModerationResultBuilder",
    "generate_reason",
]
