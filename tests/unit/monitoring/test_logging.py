"""
Unit tests for logging setup.

Tests for formatters, handler configuration and context injection.
"""

import json
import logging

import pytest

from event_importer.monitoring.logging import (
    ROOT_LOGGER_NAME,
    JsonFormatter,
    LoggingOptions,
    TextFormatter,
    setup_logging,
    with_context,
)


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handler and propagation changes made by setup_logging."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    for h in handlers:
        logger.addHandler(h)
    logger.setLevel(level)
    logger.propagate = propagate


def make_record(msg="hello", **extra):
    record = logging.LogRecord("event_importer.test", logging.INFO, __file__, 1, msg, None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestFormatters:
    """Tests for JsonFormatter and TextFormatter."""

    def test_json_includes_context(self):
        data = json.loads(JsonFormatter().format(make_record(source_id="split_hr", stage="import")))
        assert data["msg"] == "hello"
        assert data["level"] == "INFO"
        assert data["source_id"] == "split_hr"
        assert data["stage"] == "import"

    def test_json_payload(self):
        data = json.loads(JsonFormatter().format(make_record(payload={"inserted": 3})))
        assert data["payload"] == {"inserted": 3}

    def test_text_includes_context(self):
        text = TextFormatter().format(make_record(source_id="split_hr", stage="import"))
        assert text == "INFO event_importer.test [source=split_hr stage=import] hello"

    def test_text_without_context(self):
        assert TextFormatter().format(make_record()) == "INFO event_importer.test hello"


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_reconfiguring_replaces_handlers(self):
        setup_logging(LoggingOptions(level="DEBUG"))
        logger = setup_logging(LoggingOptions(level="WARNING", json_logs=True))

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)
        assert logger.level == logging.WARNING
        assert logger.propagate is False

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "import.log"
        logger = setup_logging(LoggingOptions(log_file=log_file, enable_console=False))

        logging.getLogger(f"{ROOT_LOGGER_NAME}.ingestion").info("written")
        for h in logger.handlers:
            h.flush()

        assert "written" in log_file.read_text(encoding="utf-8")

    def test_unknown_level_falls_back_to_info(self):
        assert setup_logging(LoggingOptions(level="chatty")).level == logging.INFO


class TestWithContext:
    """Tests for with_context."""

    def test_injects_source_and_stage(self):
        adapter = with_context(logging.getLogger("x"), source_id="destination_one", stage="dry_run")
        _, kwargs = adapter.process("msg", {"extra": {"identifier": "E1"}})
        assert kwargs["extra"] == {
            "source_id": "destination_one",
            "stage": "dry_run",
            "identifier": "E1",
        }

    def test_skips_empty_values(self):
        assert with_context(logging.getLogger("x")).extra == {}
