"""In-memory repository for content reports."""

import uuid
from typing import Optional

from trust_safety.modules.reporting.models import ContentReport, ReportStatus


class ReportRepository:
    """Repository for ContentReport records, kept in submission order."""

    def __init__(self):
        self._reports: list[ContentReport] = []
        self._by_id: dict[uuid.UUID, ContentReport] = {}

    def add(self, report: ContentReport) -> ContentReport:
        self._reports.append(report)
        self._by_id[report.id] = report
        return report

    def get_by_id(self, report_id: uuid.UUID) -> Optional[ContentReport]:
        return self._by_id.get(report_id)

    def get_by_content(
        self,
        content_id: uuid.UUID,
        include_dismissed: bool = True,
    ) -> list[ContentReport]:
        """Get reports against a content item in submission order."""
        return [
            r for r in self._reports
            if r.content_id == content_id
            and (include_dismissed or r.status != ReportStatus.DISMISSED)
        ]

    def get_by_submitter(self, user_id: uuid.UUID) -> list[ContentReport]:
        """Get every report submitted by a user, including anonymous ones."""
        return [r for r in self._reports if r.submitted_by == user_id]

    def get_by_status(self, status: ReportStatus) -> list[ContentReport]:
        return [r for r in self._reports if r.status == status]

    def all(self) -> list[ContentReport]:
        return list(self._reports)

    def __len__(self) -> int:
        return len(self._reports)
