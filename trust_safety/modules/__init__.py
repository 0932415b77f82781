"""Feature modules.

This package contains the moderation pipeline modules:
- classification: Content classification and PII detection
- queue: Priority-ordered human review queue
- reporting: User reports and automatic protective actions
- enforcement: Moderator actions, penalties and appeals
- notification: Queue alerts and user notices
- analytics: Best-effort analytics events
- audit: Append-only audit trail
- content: Content-layer gateway (author lookup, soft-hide)
"""
