"""Tests for logging helpers."""

import builtins
import logging

import pytest
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer

from billwatch import logger as logger_module


class RecordingLogger:
    """Stand-in for a BoundLogger that keeps every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict]] = []

    def __getattr__(self, level: str):
        def record(event: str, **kwargs) -> None:
            self.calls.append((level, event, kwargs))

        return record


def test_build_otlp_logs_endpoint_adds_suffix() -> None:
    assert (
        logger_module._build_otlp_logs_endpoint("http://collector:4318")
        == "http://collector:4318/v1/logs"
    )
    assert (
        logger_module._build_otlp_logs_endpoint("http://collector:4318/")
        == "http://collector:4318/v1/logs"
    )


def test_build_otlp_logs_endpoint_preserves_logs_path() -> None:
    assert (
        logger_module._build_otlp_logs_endpoint("http://collector:4318/v1/logs")
        == "http://collector:4318/v1/logs"
    )


def test_select_renderer_uses_console_in_debug(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "debug", True)
    assert isinstance(logger_module._select_renderer(), ConsoleRenderer)


def test_select_renderer_uses_json_in_production(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "debug", False)
    assert isinstance(logger_module._select_renderer(), JSONRenderer)


def test_configure_otel_logging_skipped_without_endpoint(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "otel_exporter_otlp_endpoint", None)
    root_logger = logging.getLogger()
    before = list(root_logger.handlers)

    logger_module._configure_otel_logging()

    assert root_logger.handlers == before


def test_configure_otel_logging_missing_dependency_warns(monkeypatch, caplog) -> None:
    monkeypatch.setattr(
        logger_module.settings,
        "otel_exporter_otlp_endpoint",
        "http://collector:4318",
    )
    original_import = builtins.__import__

    def blocked_import(name, globals=None, locals=None, fromlist=(), level=0):
        if name.startswith("opentelemetry"):
            raise ImportError("opentelemetry not installed")
        return original_import(name, globals, locals, fromlist, level)

    monkeypatch.setattr(builtins, "__import__", blocked_import)

    with caplog.at_level(logging.WARNING):
        logger_module._configure_otel_logging()

    assert "OTEL log exporter not available" in caplog.text


def test_log_exception_includes_error_context() -> None:
    log = RecordingLogger()
    exc = ValueError("bad cluster")

    logger_module.log_exception(log, exc, "Skipped cluster due to error", key="NETFLIX|expense")

    level, event, kwargs = log.calls[0]
    assert level == "error"
    assert event == "Skipped cluster due to error"
    assert kwargs["error"] == "bad cluster"
    assert kwargs["error_type"] == "ValueError"
    assert kwargs["key"] == "NETFLIX|expense"
    assert kwargs["exc_info"] is exc


def test_log_exception_without_traceback_at_custom_level() -> None:
    log = RecordingLogger()

    logger_module.log_exception(log, OSError("down"), "Health check failed", level="warning", include_traceback=False)

    level, _, kwargs = log.calls[0]
    assert level == "warning"
    assert "exc_info" not in kwargs


async def test_async_log_timing_reports_duration_and_context() -> None:
    log = RecordingLogger()

    async with logger_module.async_log_timing("cluster_transactions", logger=log, user_id="u-1") as ctx:
        ctx["clusters"] = 3

    level, event, kwargs = log.calls[0]
    assert level == "info"
    assert event == "cluster_transactions completed"
    assert kwargs["clusters"] == 3
    assert kwargs["user_id"] == "u-1"
    assert kwargs["duration_ms"] >= 0


async def test_async_log_timing_logs_even_on_error() -> None:
    log = RecordingLogger()

    with pytest.raises(RuntimeError):
        async with logger_module.async_log_timing("detect_recurring", logger=log, level="debug"):
            raise RuntimeError("boom")

    assert log.calls[0][0] == "debug"
    assert log.calls[0][1] == "detect_recurring completed"
