"""Trust & Safety Core.

A moderation library for user-generated content: classification of posts,
comments, reviews and images, a prioritised human review queue, user
reporting with abuse detection, and the moderator action / penalty / appeal
lifecycle.

Modules:
    - core: Configuration, logging, tracing and metrics
    - modules.classification: Classifier contract, PII detection, result builder
    - modules.queue: Moderation review queue and content intake
    - modules.reporting: User reports, rate limits and automatic actions
    - modules.enforcement: Moderators, penalties and appeals
"""

__version__ = "0.1.0"
