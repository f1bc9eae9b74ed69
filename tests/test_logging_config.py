"""Tests for structured logging."""
from __future__ import annotations

import json
import logging

import pytest

from bridgewatch.logging_config import (
    ContextFilter,
    StructuredFormatter,
    clear_context,
    generate_correlation_id,
    set_correlation_id,
    set_transfer_context,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _reset_context():
    clear_context()
    yield
    clear_context()


def _make_record(**extra):
    record = logging.LogRecord("bridgewatch.engine", logging.INFO, __file__, 10, "Decision %s", ("flagged",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_json_fields(self):
        record = _make_record()
        ContextFilter().filter(record)

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "bridgewatch.engine"
        assert payload["message"] == "Decision flagged"
        assert "correlation_id" not in payload

    def test_context_fields(self):
        set_correlation_id("cor_test")
        set_transfer_context("0xabc")
        record = _make_record()
        ContextFilter().filter(record)

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["correlation_id"] == "cor_test"
        assert payload["transfer_id"] == "0xabc"

    def test_extra_fields(self):
        record = _make_record(risk_score=72)

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["risk_score"] == 72


class TestSetupLogging:
    def test_installs_single_handler(self):
        root = logging.getLogger()
        saved = root.handlers[:], root.level
        try:
            setup_logging("DEBUG", json_format=True)
            setup_logging("WARNING", json_format=False)

            assert root.level == logging.WARNING
            assert len(root.handlers) == 1
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
            for handler in saved[0]:
                root.addHandler(handler)
            root.setLevel(saved[1])

    def test_correlation_id_format(self):
        cid = generate_correlation_id()
        assert cid.startswith("cor_")
        assert len(cid) == 20
