"""
Tests for structured logging and connection correlation.
"""

import json
import logging

from shared.config.logging import DevelopmentFormatter, StructuredFormatter, get_logger
from shared.infrastructure.correlation import ConnectionIdFilter, client_id_var, get_client_id
from ws_relay.components.core.context import sanitize_log_data


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []
        self.addFilter(ConnectionIdFilter())

    def emit(self, record):
        self.records.append(record)


def capture(name: str) -> tuple[logging.Logger, RecordingHandler]:
    logger = get_logger(name)
    logger.setLevel(logging.DEBUG)
    handler = RecordingHandler()
    logger.addHandler(handler)
    return logger, handler


class TestStructuredLogger:

    def test_keyword_arguments_become_extra_data(self):
        logger, handler = capture("tests.logging.kwargs")

        logger.info("Client connected", total=3, origin="http://localhost:5173")

        record = handler.records[0]
        assert record.getMessage() == "Client connected"
        assert record.extra_data == {"total": 3, "origin": "http://localhost:5173"}

    def test_exception_attaches_traceback(self):
        logger, handler = capture("tests.logging.exception")

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.exception("Handler failed", message_type="sendMessage")

        record = handler.records[0]
        assert record.levelno == logging.ERROR
        assert record.exc_info[0] is RuntimeError

    def test_source_location_is_the_caller(self):
        logger, handler = capture("tests.logging.source")

        logger.warning("here")

        record = handler.records[0]
        assert record.funcName == "test_source_location_is_the_caller"
        assert record.filename == "test_logging.py"

        output = json.loads(StructuredFormatter(include_source=True).format(record))
        assert output["source"]["function"] == "test_source_location_is_the_caller"

    def test_disabled_level_is_skipped(self):
        logger, handler = capture("tests.logging.level")
        logger.setLevel(logging.INFO)

        logger.debug("hidden", detail=1)

        assert handler.records == []


class TestCorrelation:

    def test_client_id_from_context(self):
        logger, handler = capture("tests.logging.correlation")

        token = client_id_var.set("client_1_abcdefghi")
        try:
            assert get_client_id() == "client_1_abcdefghi"
            logger.info("inside")
        finally:
            client_id_var.reset(token)
        logger.info("outside")

        assert [r.client_id for r in handler.records] == ["client_1_abcdefghi", "-"]

    def test_json_output_includes_client_id(self):
        logger, handler = capture("tests.logging.json")

        token = client_id_var.set("client_1_abcdefghi")
        try:
            logger.warning("Invalid message format", error="bad")
        finally:
            client_id_var.reset(token)

        output = json.loads(StructuredFormatter().format(handler.records[0]))
        assert output["level"] == "WARNING"
        assert output["logger"] == "tests.logging.json"
        assert output["client_id"] == "client_1_abcdefghi"
        assert output["data"] == {"error": "bad"}

    def test_json_output_omits_missing_client_id(self):
        logger, handler = capture("tests.logging.json_no_client")

        logger.info("Starting")

        output = json.loads(StructuredFormatter().format(handler.records[0]))
        assert "client_id" not in output
        assert "data" not in output

    def test_development_format(self):
        logger, handler = capture("tests.logging.dev")

        token = client_id_var.set("client_1_abcdefghi")
        try:
            logger.info("Client connected", total=2)
        finally:
            client_id_var.reset(token)

        line = DevelopmentFormatter().format(handler.records[0])
        assert "[client_1_abcdefghi]" in line
        assert "Client connected" in line
        assert "(total=2)" in line


class TestSanitizeLogData:

    def test_control_characters_stripped(self):
        assert sanitize_log_data("line1\nline2\u202e\ttab") == "line1line2tab"

    def test_quotes_escaped(self):
        assert sanitize_log_data('say "hi"') == 'say \\"hi\\"'

    def test_truncated(self):
        result = sanitize_log_data("x" * 500, max_length=10)

        assert result.startswith("x" * 10)
        assert len(result) < 500

    def test_empty(self):
        assert sanitize_log_data("") == ""
