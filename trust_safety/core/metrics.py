"""Prometheus metrics for the moderation pipeline.

Tracks queue depth, classifier health, report volume, moderator actions and
penalties.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

# Create a custom registry for our metrics
REGISTRY = CollectorRegistry()


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "trust_safety_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# Classification Metrics
# ============================================
CLASSIFICATIONS_TOTAL = Counter(
    "moderation_classifications_total",
    "Total classification results by resulting status",
    ["status"],
    registry=REGISTRY,
)

CLASSIFIER_FAILURES_TOTAL = Counter(
    "moderation_classifier_failures_total",
    "Classifier calls that failed or timed out",
    ["reason"],
    registry=REGISTRY,
)

CLASSIFIER_DURATION_SECONDS = Histogram(
    "moderation_classifier_duration_seconds",
    "Classifier call duration in seconds",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)


# ============================================
# Queue Metrics
# ============================================
QUEUE_DEPTH = Gauge(
    "moderation_queue_depth",
    "Number of items awaiting review by priority",
    ["priority"],
    registry=REGISTRY,
)


# ============================================
# Reporting / Enforcement Metrics
# ============================================
REPORTS_TOTAL = Counter(
    "moderation_reports_total",
    "User reports by reason and submission outcome",
    ["reason", "outcome"],
    registry=REGISTRY,
)

MODERATION_ACTIONS_TOTAL = Counter(
    "moderation_actions_total",
    "Moderator actions applied to queue items",
    ["action"],
    registry=REGISTRY,
)

PENALTIES_TOTAL = Counter(
    "moderation_penalties_total",
    "User penalties applied by kind",
    ["kind"],
    registry=REGISTRY,
)

ANALYTICS_EVENTS_TOTAL = Counter(
    "moderation_analytics_events_total",
    "Analytics events emitted by name",
    ["event"],
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate latest metrics in Prometheus format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Set application info metrics.

    Args:
        version: Application version
        environment: Deployment environment
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
