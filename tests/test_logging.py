"""Tests for core/logging.py."""

from __future__ import annotations

import json
import logging

from feature_advisor.core.exceptions import StalePreconditionError
from feature_advisor.core.logging import (
    ConsoleFormatter,
    StructuredFormatter,
    Timer,
    clear_log_context,
    configure_logging,
    get_logger,
    get_run_id,
    log_context,
    log_exception,
    set_log_context,
    set_run_id,
    timed,
)


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("feature_advisor.test", logging.INFO, "x.py", 7, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestContext:
    """Tests for run id and context propagation."""

    def test_run_id_generated(self) -> None:
        """Test that a run id is generated when none is given."""
        run_id = set_run_id()

        assert len(run_id) == 32
        assert get_run_id() == run_id

    def test_log_context_restores_previous(self) -> None:
        """Test nesting and restoration of context data."""
        set_log_context(stage="scan")
        formatter = StructuredFormatter()

        with log_context(feature="orders"):
            inner = json.loads(formatter.format(_record()))
        outer = json.loads(formatter.format(_record()))

        assert inner["context"] == {"stage": "scan", "feature": "orders"}
        assert outer["context"] == {"stage": "scan"}

    def test_clear_resets_run_id(self) -> None:
        """Test that clearing removes both context and run id."""
        set_run_id("r1")
        set_log_context(stage="rank")

        clear_log_context()

        assert get_run_id() is None
        assert "context" not in json.loads(StructuredFormatter().format(_record()))


class TestFormatters:
    """Tests for structured and console output."""

    def test_structured_fields(self) -> None:
        """Test run id, extras and location in JSON output."""
        set_run_id("run-1")

        entry = json.loads(StructuredFormatter().format(_record(stage="rank", duration_ms=1.5)))

        assert entry["run_id"] == "run-1"
        assert entry["stage"] == "rank"
        assert entry["duration_ms"] == 1.5
        assert entry["location"] == "x.py:7"

    def test_console_prefixes(self) -> None:
        """Test that run id and stage prefix console lines."""
        set_run_id("abcdef123456")

        with log_context(stage="plan", feature="orders"):
            line = ConsoleFormatter().format(_record("Planned", duration_ms=2.0))

        assert "[abcdef12] [plan] [orders]" in line
        assert line.endswith("Planned (2.0ms)")


class TestTiming:
    """Tests for Timer and @timed."""

    def test_timer_measures(self) -> None:
        """Test that Timer records a non-negative duration."""
        with Timer("scan") as timer:
            sum(range(1000))

        assert timer.duration_ms >= 0

    def test_timed_logs_duration(self, caplog) -> None:
        """Test that @timed logs completion with the stage name."""
        logger = get_logger("feature_advisor.test_timed")

        @timed(logger, level=logging.INFO)
        def work() -> int:
            return 3

        with caplog.at_level(logging.INFO, logger="feature_advisor.test_timed"):
            assert work() == 3

        assert caplog.records[-1].stage == "work"
        assert caplog.records[-1].getMessage() == "work completed"

    def test_log_exception_sets_error_code(self, caplog) -> None:
        """Test that advisor error codes are attached to the record."""
        logger = get_logger("feature_advisor.test_exc")
        error = StalePreconditionError("old", age_seconds=400, max_age_seconds=300)

        with caplog.at_level(logging.ERROR, logger="feature_advisor.test_exc"):
            log_exception(logger, "Ranking failed", error, stage="rank")

        record = caplog.records[-1]
        assert record.error_code == "STALE_PRECONDITION"
        assert record.stage == "rank"
        assert record.exc_info[1] is error


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_replaces_own_handlers(self, tmp_path) -> None:
        """Test that repeated calls do not stack handlers and the file gets JSON."""
        log_file = tmp_path / "advisor.log"
        package_logger = logging.getLogger("feature_advisor")
        before = list(package_logger.handlers)

        try:
            configure_logging(logging.DEBUG, log_file=log_file)
            configure_logging(logging.DEBUG, log_file=log_file)
            ours = [h for h in package_logger.handlers if h not in before]
            assert len(ours) == 2

            get_logger("feature_advisor.test_configure").info("written")
            for handler in ours:
                handler.flush()
            entry = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
            assert entry["message"] == "written"
        finally:
            for handler in list(package_logger.handlers):
                if handler not in before:
                    package_logger.removeHandler(handler)
                    handler.close()
            package_logger.setLevel(logging.NOTSET)
