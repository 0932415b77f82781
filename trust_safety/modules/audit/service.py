"""Audit logging for moderator and automatic enforcement actions."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel

from trust_safety.core.logging import get_correlation_id, log_error


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Queue
    QUEUE_ITEM_UPDATED = "queue_item_updated"
    QUEUE_ITEM_REMOVED = "queue_item_removed"

    # Reports
    REPORT_REVIEWED = "report_reviewed"
    REPORT_WITHDRAWN = "report_withdrawn"
    CONTENT_HIDDEN = "content_hidden"

    # Penalties
    PENALTY_APPLIED = "penalty_applied"
    PENALTY_REMOVED = "penalty_removed"

    # Appeals
    APPEAL_SUBMITTED = "appeal_submitted"
    APPEAL_REVIEWED = "appeal_reviewed"

    # Moderators
    MODERATOR_REGISTERED = "moderator_registered"
    MODERATOR_ASSIGNED = "moderator_assigned"
    MODERATOR_DEACTIVATED = "moderator_deactivated"


class AuditLogEntry(BaseModel):
    """Pydantic model for audit log entries."""

    id: uuid.UUID
    actor_id: uuid.UUID | None
    action: str
    target_id: uuid.UUID | None
    details: dict | None
    timestamp: datetime
    correlation_id: str | None = None


class AuditLogger:
    """Append-only in-memory audit log.

    In production, entries would also be shipped to durable storage by the
    embedding application.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._logs: list[AuditLogEntry] = []
        self.clock = clock

    def log(
        self,
        action: AuditAction | str,
        actor_id: uuid.UUID | None = None,
        target_id: uuid.UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        """Log an audit event.

        Args:
            action: Type of action being logged
            actor_id: Moderator or user performing the action (None for system)
            target_id: Entity the action applies to
            details: Additional details about the action

        Returns:
            AuditLogEntry: The created log entry
        """
        action_str = action.value if isinstance(action, AuditAction) else action

        entry = AuditLogEntry(
            id=uuid.uuid4(),
            actor_id=actor_id,
            action=action_str,
            target_id=target_id,
            details=details,
            timestamp=self.clock(),
            correlation_id=get_correlation_id(),
        )

        self._logs.append(entry)
        return entry

    def get_logs(
        self,
        actor_id: uuid.UUID | None = None,
        action: AuditAction | str | None = None,
        target_id: uuid.UUID | None = None,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        """Get audit logs with optional filtering.

        Args:
            actor_id: Filter by actor ID
            action: Filter by action type
            target_id: Filter by target ID
            limit: Maximum number of logs to return

        Returns:
            List of matching audit log entries, newest first
        """
        if isinstance(action, AuditAction):
            action = action.value

        logs = self._logs
        if actor_id:
            logs = [log for log in logs if log.actor_id == actor_id]
        if action:
            logs = [log for log in logs if log.action == action]
        if target_id:
            logs = [log for log in logs if log.target_id == target_id]

        return list(reversed(logs))[:limit]

    def clear(self) -> None:
        """Clear all logs."""
        self._logs = []

    def __len__(self) -> int:
        return len(self._logs)


def serialize_details(details: dict[str, Any]) -> dict[str, Any]:
    """Convert enum and UUID values so audit details stay JSON-friendly."""
    serialized: dict[str, Any] = {}
    for key, value in details.items():
        if isinstance(value, Enum):
            serialized[key] = value.value
        elif isinstance(value, uuid.UUID):
            serialized[key] = str(value)
        elif isinstance(value, datetime):
            serialized[key] = value.isoformat()
        else:
            serialized[key] = value
    return serialized


def safe_audit(
    audit: Optional[AuditLogger],
    logger,
    action: AuditAction,
    actor_id: uuid.UUID | None = None,
    target_id: uuid.UUID | None = None,
    details: dict[str, Any] | None = None,
) -> Optional[AuditLogEntry]:
    """Write an audit entry, logging instead of raising on failure."""
    if audit is None:
        return None
    try:
        return audit.log(
            action,
            actor_id=actor_id,
            target_id=target_id,
            details=serialize_details(details or {}),
        )
    except Exception as e:
        log_error(logger, f"Failed to write audit entry {action.value}", exception=e)
        return None
