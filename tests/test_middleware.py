import json
from datetime import datetime, timedelta, timezone

import pytest

from alertflow.middleware import cors_headers, log_level, request_log_line


def test_cors_with_origin():
    headers, status = cors_headers("GET", "http://app.example.com")
    assert headers["Access-Control-Allow-Origin"] == "*"
    assert headers["Access-Control-Allow-Credentials"] == "true"
    assert "TenantID" in headers["Access-Control-Allow-Headers"]
    assert status is None


def test_cors_without_origin():
    headers, status = cors_headers("POST", "")
    assert headers == {}
    assert status is None


def test_cors_preflight_aborts():
    headers, status = cors_headers("OPTIONS", "http://app.example.com")
    assert status == 204
    assert "Access-Control-Allow-Methods" in headers


@pytest.mark.parametrize(
    "code, level",
    [(200, "info"), (302, "debug"), (404, "warn"), (500, "error"), (503, "error")],
)
def test_log_level(code, level):
    assert log_level(code) == level


def test_request_log_line_fields():
    ts = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
    line = request_log_line(404, "10.0.0.1", "GET", "/api/x", ts)
    assert line.endswith("\n")
    data = json.loads(line)
    assert data == {
        "level": "warn",
        "statusCode": 404,
        "clientIP": "10.0.0.1",
        "method": "GET",
        "path": "/api/x",
        "time": "2024-05-01T12:30:45Z",
    }


def test_request_log_line_keys_sorted():
    ts = datetime(2024, 5, 1, tzinfo=timezone.utc)
    data = json.loads(request_log_line(200, "ip", "GET", "/", ts))
    assert list(data) == sorted(data)


def test_request_log_line_offset():
    ts = datetime(2024, 5, 1, 8, 0, 0, tzinfo=timezone(timedelta(hours=8)))
    data = json.loads(request_log_line(200, "ip", "GET", "/", ts))
    assert data["time"] == "2024-05-01T08:00:00+08:00"


def test_request_log_line_escapes_html():
    ts = datetime(2024, 5, 1, tzinfo=timezone.utc)
    line = request_log_line(200, "ip", "GET", "/a<b>&c", ts)
    assert "<" not in line and "&" not in line
    assert json.loads(line)["path"] == "/a<b>&c"