import json
import logging
import sys

from core.logging import JSONFormatter


def make_record(msg, *args, exc_info=None, **extra):
    record = logging.LogRecord("logistics", logging.INFO, __file__, 10, msg, args, exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_request_fields_are_kept():
    record = make_record(
        "%s %s", "GET", "/api/v1/branches/",
        method="GET", path="/api/v1/branches/", status_code=200, duration_ms=12.5, user_id="admin-1",
    )
    entry = json.loads(JSONFormatter().format(record))
    assert entry["message"] == "GET /api/v1/branches/"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "logistics"
    assert entry["status_code"] == 200
    assert entry["duration_ms"] == 12.5
    assert entry["user_id"] == "admin-1"
    assert entry["timestamp"].endswith("+00:00")


def test_permission_fields_are_kept():
    record = make_record("Permission denied", user_id="reader-1", resource="branches", action="delete")
    entry = json.loads(JSONFormatter().format(record))
    assert entry["resource"] == "branches"
    assert entry["action"] == "delete"
    assert "method" not in entry


def test_exception_is_serialized():
    try:
        raise ValueError("boom")
    except ValueError:
        record = make_record("Unhandled error", exc_info=sys.exc_info())
    entry = json.loads(JSONFormatter().format(record))
    assert "ValueError: boom" in entry["exc_info"]
