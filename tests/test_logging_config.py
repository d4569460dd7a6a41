import json
import logging

from core.logging_config import LoggingConfig, StructuredFormatter, log_api_call


def test_structured_formatter_includes_extra_data():
    record = logging.LogRecord("connection.validator", logging.INFO, __file__, 10,
                               "API call: remote-api POST /x", None, None)
    record.extra_data = {"status_code": 401, "api_key": "sk-1...cdef"}

    entry = json.loads(StructuredFormatter().format(record))

    assert entry["level"] == "INFO"
    assert entry["logger"] == "connection.validator"
    assert entry["status_code"] == 401
    assert entry["timestamp"].endswith("Z")


def test_log_api_call_attaches_context(caplog):
    logger = logging.getLogger("tests.api")

    with caplog.at_level(logging.INFO, logger="tests.api"):
        log_api_call(logger, "remote-api", "GET /api/db/conversations", 200, 12.345, probe="conversations")

    record = caplog.records[-1]
    assert record.extra_data["status_code"] == 200
    assert record.extra_data["duration_ms"] == 12.3
    assert record.extra_data["probe"] == "conversations"


def test_file_logging_writes_to_log_dir(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        LoggingConfig(log_level="INFO", log_dir=str(tmp_path / "logs"),
                      enable_console_logging=False).configure()
        logging.getLogger("tests.file").error("disk full")
        for handler in root.handlers:
            handler.flush()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    assert "disk full" in (tmp_path / "logs" / "chatdesk.log").read_text(encoding="utf-8")
    assert "disk full" in (tmp_path / "logs" / "errors.log").read_text(encoding="utf-8")
