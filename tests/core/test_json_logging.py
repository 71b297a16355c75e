"""Tests for the JSON log formatter and request-id stamping."""
import json
import logging
import sys
from decimal import Decimal

from sitelease.core.logging import JsonFormatter, RequestIdFilter, request_id_var


def _record(msg="donation_applied", **extra):
    record = logging.LogRecord("sitelease.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_whitelisted_extras_only(self):
        record = _record(fingerprint="abc", amount=Decimal("10"), password="hunter2")

        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == "donation_applied"
        assert payload["level"] == "INFO"
        assert payload["fingerprint"] == "abc"
        assert payload["amount"] == "10"
        assert "password" not in payload

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "sitelease.test", logging.ERROR, __file__, 1, "donation_apply_failed", None, sys.exc_info()
            )

        payload = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in payload["exception"]


class TestRequestIdFilter:
    def test_stamps_current_request_id(self):
        token = request_id_var.set("req-42")
        try:
            record = _record()
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)

        assert record.request_id == "req-42"

    def test_explicit_request_id_wins(self):
        token = request_id_var.set("req-42")
        try:
            record = _record(request_id="req-explicit")
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)

        assert record.request_id == "req-explicit"
