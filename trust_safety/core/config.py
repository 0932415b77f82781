"""Application configuration settings.

All policy values are loaded from environment variables (.env file) so that
thresholds and penalty lengths can be tuned per deployment.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Trust & safety settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Trust & Safety Core"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Tracing
    TRACING_CONSOLE_EXPORT: bool = False

    # Auto-action confidence thresholds (strictly increasing with severity)
    AUTO_ACTION_THRESHOLD_LOW: float = 0.6
    AUTO_ACTION_THRESHOLD_MEDIUM: float = 0.7
    AUTO_ACTION_THRESHOLD_HIGH: float = 0.8
    AUTO_ACTION_THRESHOLD_CRITICAL: float = 0.9

    # Classifier
    CLASSIFIER_TIMEOUT_SECONDS: float = 5.0
    INTAKE_BATCH_CONCURRENCY: int = 5

    # Queue priority thresholds by report count
    PRIORITY_CRITICAL_REPORT_COUNT: int = 5
    PRIORITY_HIGH_REPORT_COUNT: int = 3
    PRIORITY_MEDIUM_REPORT_COUNT: int = 1
    QUEUE_DEFAULT_LIMIT: int = 50

    # Reporting limits
    DAILY_REPORT_LIMIT: int = 10
    ABUSE_FALSE_REPORT_RATE: float = 0.5
    ABUSE_MIN_TOTAL_REPORTS: int = 5
    USER_REPORT_CONFIDENCE: float = 0.8

    # Automatic escalation
    AUTO_HIDE_REPORT_COUNT: int = 5
    AUTO_ESCALATE_REPORT_COUNT: int = 10
    AUTO_RESTRICT_HARASSMENT_COUNT: int = 3
    AUTO_RESTRICTION_DAYS: int = 1

    # False reporting
    FALSE_REPORT_PENALTY_THRESHOLD: int = 3
    FALSE_REPORT_PENALTY_DAYS: int = 7

    # Penalties applied after a moderator rejects content
    PENALTY_HARASSMENT_BAN_DAYS: int = 7
    PENALTY_HIGH_SEVERITY_BAN_DAYS: int = 3
    PENALTY_MEDIUM_SEVERITY_RESTRICTION_DAYS: int = 1

    class Config:
        env_file = ".env"
        env_prefix = "TRUST_SAFETY_"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
