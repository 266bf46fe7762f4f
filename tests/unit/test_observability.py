"""
Tests for logging and metrics helpers.
"""

import json
import logging

import pytest

from certstore.observability import (
    STORED_BYTES,
    StructuredFormatter,
    configure_logging,
    create_span,
    record_counter,
    record_histogram,
)


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way configure_logging() found it."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_json_output(self):
        record = logging.LogRecord(
            "certstore.storage.s3", logging.INFO, __file__, 1, "Storing object %s", ("acme/a",), None
        )
        record.bucket = "certs"

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "Storing object acme/a"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "certstore.storage.s3"
        assert entry["bucket"] == "certs"
        assert entry["timestamp"].endswith("Z")

    def test_unserializable_extra(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", (), None)
        record.payload = object()

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["payload"].startswith("<object")


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_plain_format_has_trace_id(self, restore_root_logger, capsys):
        """Outside a span the trace id placeholder is filled in."""
        configure_logging(level="DEBUG", structured=False)

        logging.getLogger("certstore.storage.s3").info("Loading object acme/a")

        out = capsys.readouterr().out
        assert "certstore.storage.s3 - INFO - [no-trace] Loading object acme/a" in out
        assert logging.getLogger("botocore").level == logging.WARNING

    def test_structured_format(self, restore_root_logger, capsys):
        configure_logging(structured=True)

        logging.getLogger("certstore.storage.s3").warning("Lease acme/a.lock is malformed")

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert lines[-1]["message"] == "Lease acme/a.lock is malformed"
        assert lines[-1]["level"] == "WARNING"


class TestMetrics:
    """Recording works without an installed meter provider."""

    def test_record_without_provider(self):
        record_histogram(STORED_BYTES, 128, {"encrypted": True})
        record_counter("certstore_lock_acquisitions_total", attributes={"outcome": "acquired"})

    def test_span_without_provider(self):
        with create_span("storage.test", {"storage.key": "a"}) as span:
            span.set_attribute("storage.size", 1)
