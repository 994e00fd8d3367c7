import json
import logging

from shared.app_logging.logger import (CorrelationContext, CorrelationIDFilter,
                                       JSONFormatter, StructuredFormatter,
                                       get_correlation_id, setup_logging)


def make_record(msg="hello", **extra):
    record = logging.LogRecord("bot.handlers", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_correlation_context_sets_and_restores():
    assert get_correlation_id() is None
    with CorrelationContext("abc-123") as correlation_id:
        assert correlation_id == "abc-123"
        assert get_correlation_id() == "abc-123"

        record = make_record()
        CorrelationIDFilter().filter(record)
        assert record.correlation_id == "abc-123"
    assert get_correlation_id() is None


def test_json_formatter_includes_extra_fields():
    record = make_record(correlation_id="cid", service_name="bot", error_kind="network", chat_id=7)

    entry = json.loads(JSONFormatter().format(record))

    assert entry["message"] == "hello"
    assert entry["correlation_id"] == "cid"
    assert entry["service"] == "bot"
    assert entry["error_kind"] == "network"
    assert entry["chat_id"] == 7


def test_structured_formatter():
    line = StructuredFormatter().format(make_record(correlation_id="cid", service_name="extractor"))
    assert "[INFO] [extractor] [cid] bot.handlers: hello" in line


def test_setup_logging_does_not_duplicate_handlers():
    setup_logging("bot", log_level="DEBUG")
    setup_logging("bot", log_level="INFO")

    ours = [h for h in logging.getLogger().handlers if getattr(h, "_linkshelf", False)]
    assert len(ours) == 1
