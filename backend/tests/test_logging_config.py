"""
Tests for log formatting and request context.
"""

import json
import logging

from logging_config import (
    JSONFormatter,
    TextFormatter,
    admin_email_ctx,
    get_metrics_logger,
    request_id_ctx,
)


def make_record(message="Created news abc", **extra):
    record = logging.LogRecord("news_service", logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    """Tests for the JSON and text formatters."""

    def test_json_includes_context_and_extras(self):
        request_token = request_id_ctx.set("req-0123456789")
        admin_token = admin_email_ctx.set("editor@example.com")
        try:
            line = JSONFormatter(extra_fields={"app": "Horizon News"}).format(
                make_record("新聞 created", extra_duration_ms=12.5)
            )
        finally:
            request_id_ctx.reset(request_token)
            admin_email_ctx.reset(admin_token)

        data = json.loads(line)
        assert data["message"] == "新聞 created"
        assert data["level"] == "info"
        assert data["request_id"] == "req-0123456789"
        assert data["admin"] == "editor@example.com"
        assert data["duration_ms"] == 12.5
        assert data["app"] == "Horizon News"
        assert "新聞" in line

    def test_json_without_context(self):
        data = json.loads(JSONFormatter().format(make_record()))
        assert "request_id" not in data
        assert "admin" not in data

    def test_text_format(self):
        token = request_id_ctx.set("abcdef0123456789")
        try:
            line = TextFormatter().format(make_record(extra_duration_ms=3.0))
        finally:
            request_id_ctx.reset(token)

        assert "[abcdef01]" in line
        assert "Created news abc" in line
        assert line.endswith("(3.00ms)")


class TestMetricsLogger:
    """Tests for fetch and cache metric records."""

    def test_fetch_failure_logged_as_warning(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="horizon.metrics"):
            get_metrics_logger().log_fetch(
                method="GET",
                url="http://api.test/api/news",
                attempts=3,
                success=False,
                duration_ms=1500.0,
                error="HTTP error! status: 503",
            )

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.extra_attempts == 3
        assert "failed after 3 attempt(s)" in record.getMessage()

    def test_cache_clear_reports_entries(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="horizon.metrics"):
            get_metrics_logger().log_cache_operation("clear", entries=4)

        assert caplog.records[-1].getMessage() == "Cache clear (4 entries)"
