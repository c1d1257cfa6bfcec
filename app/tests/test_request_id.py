import logging

from app.core.logging import RequestIdFilter, request_id_var


def test_incoming_request_id_is_echoed(client):
    r = client.get("/api/v1/health", headers={"X-Request-Id": "req-123"})

    assert r.headers["X-Request-Id"] == "req-123"
    assert r.json()["request_id"] == "req-123"
    assert r.json()["database"] == "ok"


def test_error_bodies_carry_request_id(client, auth_headers):
    r = client.get(
        "/api/v1/installations/missing",
        headers={**auth_headers(), "X-Request-Id": "req-404"},
    )

    assert r.status_code == 404
    assert r.json()["request_id"] == "req-404"


def test_filter_stamps_current_request_id():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    token = request_id_var.set("req-abc")
    try:
        RequestIdFilter().filter(record)
    finally:
        request_id_var.reset(token)

    assert record.request_id == "req-abc"


def test_filter_keeps_explicit_request_id():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    record.request_id = "explicit"

    RequestIdFilter().filter(record)

    assert record.request_id == "explicit"
