"""Audit module: append-only record of enforcement actions."""

from trust_safety.modules.audit.service import (
    AuditAction,
    AuditLogEntry,
    AuditLogger,
    safe_audit,
    serialize_details,
)

__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "AuditLogger",
    "safe_audit",
    "serialize_details",
]
