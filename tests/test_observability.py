"""
Tests for logging configuration and the error hierarchy.
"""

import json
import logging

from flask import Flask, g

from cloudmedia.errors import (
    BadRequestError,
    GhostscriptNotFoundError,
    NotFoundError,
    PayloadTooLargeError,
    TransformError,
    UnauthorizedError,
)
from cloudmedia.logging_config import (
    HumanFormatter,
    JSONFormatter,
    RequestContextFilter,
    setup_logging,
)


def make_record(msg="hello", **extra):
    record = logging.LogRecord("cloudmedia.compression.search", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSON log lines."""

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(make_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "cloudmedia.compression.search"
        assert entry["message"] == "hello"
        assert "ts" in entry

    def test_extra_fields_promoted(self):
        record = make_record(request_id="abc123", user_id="alice", asset_id="A-1", other="x")
        entry = json.loads(JSONFormatter().format(record))
        assert entry["request_id"] == "abc123"
        assert entry["user_id"] == "alice"
        assert entry["asset_id"] == "A-1"
        assert "other" not in entry


class TestHumanFormatter:
    """Tests for text log lines."""

    def test_contains_module_and_message(self):
        line = HumanFormatter().format(make_record("Search converged"))
        assert "[search" in line
        assert "Search converged" in line

    def test_context_tags(self):
        record = make_record("Compressed", user_id="alice", asset_id="A-1")
        line = HumanFormatter(color=False).format(record)
        assert line.endswith("Compressed (user=alice asset=A-1)")

    def test_no_color_codes_when_disabled(self):
        line = HumanFormatter(color=False).format(make_record())
        assert "\033[" not in line


class TestRequestContextFilter:
    """Tests for pulling ids from flask.g."""

    def test_fills_from_request(self):
        app = Flask(__name__)
        record = make_record()
        with app.test_request_context("/api/health"):
            g.request_id = "abc12345"
            g.user_id = "alice"
            assert RequestContextFilter().filter(record)
        assert record.request_id == "abc12345"
        assert record.user_id == "alice"

    def test_explicit_extra_wins(self):
        app = Flask(__name__)
        record = make_record(user_id="bob")
        with app.test_request_context("/"):
            g.user_id = "alice"
            RequestContextFilter().filter(record)
        assert record.user_id == "bob"

    def test_outside_request(self):
        record = make_record()
        assert RequestContextFilter().filter(record)
        assert not hasattr(record, "request_id")


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_level_and_format(self):
        root = logging.getLogger()
        saved = (root.level, list(root.handlers))
        try:
            setup_logging(level="debug", format_type="json")
            assert root.level == logging.DEBUG
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert logging.getLogger("werkzeug").level == logging.WARNING
        finally:
            root.setLevel(saved[0])
            root.handlers[:] = saved[1]


class TestErrors:
    """Tests for CloudMediaError subclasses."""

    def test_status_codes(self):
        assert UnauthorizedError().status_code == 401
        assert BadRequestError("x").status_code == 400
        assert NotFoundError().status_code == 404
        assert PayloadTooLargeError("x").status_code == 413
        assert TransformError("x").status_code == 400

    def test_to_dict(self):
        assert NotFoundError().to_dict() == {"error": "Not found"}
        err = GhostscriptNotFoundError(["gs", "/usr/bin/gs"])
        d = err.to_dict()
        assert d["error"].startswith("Ghostscript binary not found. Tried: gs, /usr/bin/gs.")
        assert d["details"] == {"attempted": ["gs", "/usr/bin/gs"]}
