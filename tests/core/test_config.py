"""Tests for settings, structured logging and metrics exposition."""

import json
import logging
import sys

import pytest

from trust_safety.core.config import Settings
from trust_safety.core.logging import (
    StructuredFormatter,
    clear_correlation_id,
    correlation_id_var,
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
    setup_logging,
)
from trust_safety.core.metrics import get_content_type, get_metrics, set_app_info


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        config = Settings()

        assert config.DAILY_REPORT_LIMIT == 10
        assert config.AUTO_HIDE_REPORT_COUNT == 5
        assert config.AUTO_ESCALATE_REPORT_COUNT == 10
        assert config.USER_REPORT_CONFIDENCE == 0.8
        assert (
            config.AUTO_ACTION_THRESHOLD_LOW
            < config.AUTO_ACTION_THRESHOLD_MEDIUM
            < config.AUTO_ACTION_THRESHOLD_HIGH
            < config.AUTO_ACTION_THRESHOLD_CRITICAL
        )

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("TRUST_SAFETY_DAILY_REPORT_LIMIT", "3")
        monkeypatch.setenv("TRUST_SAFETY_CLASSIFIER_TIMEOUT_SECONDS", "0.5")

        config = Settings()

        assert config.DAILY_REPORT_LIMIT == 3
        assert config.CLASSIFIER_TIMEOUT_SECONDS == 0.5

    def test_unprefixed_variables_are_ignored(self, monkeypatch):
        monkeypatch.setenv("DAILY_REPORT_LIMIT", "99")

        assert Settings().DAILY_REPORT_LIMIT == 10


class TestStructuredFormatter:
    """Tests for JSON log formatting."""

    def test_formats_json_with_correlation_id_and_extras(self):
        set_correlation_id("test-correlation")
        try:
            record = logging.LogRecord(
                name="trust_safety.test",
                level=logging.INFO,
                pathname=__file__,
                lineno=10,
                msg="Applied %s",
                args=("warning",),
                exc_info=None,
            )
            record.user_id = "abc"

            payload = json.loads(StructuredFormatter().format(record))
        finally:
            clear_correlation_id()

        assert payload["level"] == "INFO"
        assert payload["message"] == "Applied warning"
        assert payload["correlation_id"] == "test-correlation"
        assert payload["extra"]["user_id"] == "abc"

    def test_exception_details_are_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            exc_info = sys.exc_info()

        record = logging.LogRecord(
            name="trust_safety.test",
            level=logging.ERROR,
            pathname=__file__,
            lineno=20,
            msg="failed",
            args=(),
            exc_info=exc_info,
        )

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["exception"]["type"] == "ValueError"
        assert payload["exception"]["message"] == "boom"

    def test_correlation_id_is_not_stored_outside_a_scope(self):
        clear_correlation_id()

        get_correlation_id()

        assert correlation_id_var.get() is None


class TestCorrelationScope:
    """Tests for correlation_scope."""

    def test_scope_sets_and_restores_id(self):
        clear_correlation_id()

        with correlation_scope() as cid:
            assert get_correlation_id() == cid
            with correlation_scope() as nested:
                assert nested == cid

        assert correlation_id_var.get() is None

    def test_explicit_id_overrides_pinned_id(self):
        set_correlation_id("request-1")
        try:
            with correlation_scope() as inherited:
                assert inherited == "request-1"
            with correlation_scope("batch-7") as explicit:
                assert get_correlation_id() == "batch-7"
            assert get_correlation_id() == "request-1"
        finally:
            clear_correlation_id()

        assert explicit == "batch-7"

    def test_scopes_get_distinct_ids(self):
        clear_correlation_id()

        with correlation_scope() as first:
            pass
        with correlation_scope() as second:
            pass

        assert first != second


class TestSetupLogging:
    """Tests for setup_logging."""

    def remove(self, handler):
        logging.getLogger().removeHandler(handler)

    def test_json_handler_from_settings(self):
        root = logging.getLogger()
        level = root.level
        handler = setup_logging(Settings(LOG_LEVEL="warning", LOG_JSON=True))
        try:
            assert handler in root.handlers
            assert handler.level == logging.WARNING
            assert root.level == logging.WARNING
            assert isinstance(handler.formatter, StructuredFormatter)
        finally:
            self.remove(handler)
            root.setLevel(level)

    def test_plain_format_includes_correlation_id(self):
        root = logging.getLogger()
        level = root.level
        handler = setup_logging(Settings(LOG_LEVEL="DEBUG", LOG_JSON=False))
        try:
            record = logging.LogRecord(
                name="trust_safety.test",
                level=logging.INFO,
                pathname=__file__,
                lineno=30,
                msg="hello",
                args=(),
                exc_info=None,
            )
            with correlation_scope("plain-1"):
                for log_filter in handler.filters:
                    log_filter.filter(record)

            assert "[plain-1] - hello" in handler.format(record)
        finally:
            self.remove(handler)
            root.setLevel(level)

    def test_setup_replaces_only_its_own_handler(self):
        root = logging.getLogger()
        level = root.level
        other = logging.NullHandler()
        root.addHandler(other)
        first = setup_logging(Settings())
        second = setup_logging(Settings())
        try:
            assert first not in root.handlers
            assert second in root.handlers
            assert other in root.handlers
        finally:
            self.remove(second)
            self.remove(other)
            root.setLevel(level)

    def test_unknown_level_is_rejected(self):
        with pytest.raises(ValueError):
            setup_logging(Settings(LOG_LEVEL="LOUD"))


class TestMetricsExposition:
    """Tests for Prometheus exposition."""

    def test_metrics_include_moderation_series(self):
        set_app_info("0.1.0", "test")

        output = get_metrics().decode()

        assert "moderation_queue_depth" in output
        assert "moderation_reports_total" in output
        assert 'version="0.1.0"' in output
        assert get_content_type().startswith("text/plain")
