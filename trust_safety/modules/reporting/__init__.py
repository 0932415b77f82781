"""Reporting module: user reports, abuse gating and automatic actions."""

from trust_safety.modules.reporting.models import (
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
from trust_safety.modules.reporting.service import ReportingService

__all__ = [
    # Models
    "AutomaticActionOutcome",
    "ContentReport",
    "MultipleReportedContent",
    "ReportingAnalytics",
    "ReportingLimitStatus",
    "ReportReason",
    "ReportResolution",
    "ReportStatistics",
    "ReportStatus",
    "ReportSubmissionResult",
    # Repository
    "ReportRepository",
    # Service
    "ReportingService",
]
