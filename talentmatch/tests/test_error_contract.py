"""Tests for normalized error responses."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from talentmatch.core.errors import (
    AppError,
    PermissionError,
    app_error_handler,
    unhandled_exception_handler,
)
from talentmatch.core.middleware.request_id import RequestIdMiddleware


def test_validation_error_has_standard_shape(client):
    resp = client.post("/api/auth/login", json={"email": "a@example.com"})
    assert resp.status_code == 400
    body = resp.json()
    rid = resp.headers.get("x-request-id")
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["request_id"] == rid
    assert body["detail"] == body["error"]["message"]
    assert "password" in body["error"]["message"]


def test_quota_error_carries_plan_and_quota(client, auth_headers, stores):
    user_id, headers = auth_headers
    stores.users.update_user(user_id, usage_count=3)
    resp = client.post(
        "/api/analyze",
        json={
            "companyName": "Acme",
            "jobTitle": "Engineer",
            "jobDescription": "Looking for a backend engineer.",
            "resumeText": "Backend engineer for six years.",
            "outreachTone": "casual",
        },
        headers=headers,
    )
    assert resp.status_code == 429
    body = resp.json()
    assert body["error"]["request_id"] == resp.headers["x-request-id"]
    assert body["error"]["plan"] == "free"
    assert body["error"]["quota"] == "3"


def test_provided_request_id_is_echoed_in_errors(client):
    resp = client.get("/api/auth/me", headers={"X-Request-Id": "rid-123"})
    assert resp.status_code == 401
    assert resp.headers["x-request-id"] == "rid-123"
    assert resp.json()["error"]["request_id"] == "rid-123"


def _make_app():
    test_app = FastAPI()
    test_app.add_middleware(RequestIdMiddleware)
    test_app.add_exception_handler(AppError, app_error_handler)
    test_app.add_exception_handler(Exception, unhandled_exception_handler)

    @test_app.get("/forbidden")
    def forbidden():
        raise PermissionError("Not yours")

    @test_app.get("/boom")
    def boom():
        raise RuntimeError("secret internals")

    return test_app


def test_permission_error_normalized():
    client = TestClient(_make_app())
    resp = client.get("/forbidden")
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden"


def test_unhandled_error_hides_details():
    client = TestClient(_make_app(), raise_server_exceptions=False)
    resp = client.get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["code"] == "internal_error"
    assert "secret internals" not in resp.text


def test_unknown_route_uses_standard_shape(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"]["code"] == "not_found"
    assert body["error"]["request_id"] == resp.headers["x-request-id"]
