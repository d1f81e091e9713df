"""HTTP-level tests for the upload, submission, status and session endpoints."""

from __future__ import annotations

import time
from dataclasses import replace

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from main import app, get_provider, get_settings
from vidgen.config import Settings
from vidgen.provider import ProviderClient

from conftest import API_KEY


def test_submit_returns_task_id(client, provider_stub) -> None:
    provider_stub.queue(httpx.Response(200, json={"taskId": "abc123"}))

    r = client.post("/api/generate-video", json={"images": ["https://x/y.png"], "prompt": "turn into cartoon"})

    assert r.status_code == 200
    assert r.json() == {"taskId": "abc123"}


def test_submit_missing_fields_is_400_without_provider_call(client, provider_stub) -> None:
    r = client.post("/api/generate-video", json={"images": [], "prompt": "turn into cartoon"})
    assert r.status_code == 400
    assert r.json() == {"error": "Image URL and prompt are required"}

    r = client.post("/api/generate-video", json={"images": ["https://x/y.png"]})
    assert r.status_code == 400
    assert provider_stub.requests == []


def test_submit_malformed_body_is_400(client) -> None:
    r = client.post("/api/generate-video", content=b"not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert "error" in r.json()


def test_poll_moves_from_processing_to_succeeded(client, provider_stub) -> None:
    provider_stub.queue(
        httpx.Response(200, json={"taskId": "abc123", "generations": [{"status": "processing"}]}),
        httpx.Response(200, json={"taskId": "abc123", "generations": [{"status": "succeed", "url": "https://cdn/result.mp4"}]}),
    )

    first = client.get("/api/check-video-status", params={"id": "abc123"})
    assert first.status_code == 200
    assert first.json()["status"] == "processing"

    second = client.get("/api/check-video-status", params={"id": "abc123"})
    assert second.status_code == 200
    assert second.json() == {
        "taskId": "abc123",
        "status": "succeeded",
        "url": "https://cdn/result.mp4",
        "generations": [{"status": "succeed", "url": "https://cdn/result.mp4"}],
    }


def test_poll_accepts_task_id_parameter(client, provider_stub) -> None:
    provider_stub.queue(httpx.Response(200, json={"taskId": "abc123", "generations": []}))
    r = client.get("/api/check-video-status", params={"taskId": "abc123"})
    assert r.status_code == 200
    assert r.json()["status"] == "submitted"


@pytest.mark.parametrize("params", [{}, {"id": ""}])
def test_poll_missing_id_is_400(client, provider_stub, params) -> None:
    r = client.get("/api/check-video-status", params=params)
    assert r.status_code == 400
    assert r.json() == {"error": "taskId is required"}
    assert provider_stub.requests == []


def test_poll_failed_job_reports_detail(client, provider_stub) -> None:
    provider_stub.queue(
        httpx.Response(200, json={"taskId": "abc123", "generations": [{"status": "failed", "failMsg": "moderation"}]})
    )
    r = client.get("/api/check-video-status", params={"id": "abc123"})
    assert r.status_code == 200
    assert r.json()["status"] == "failed"
    assert r.json()["errorDetail"] == "moderation"


def test_poll_unknown_id_passes_provider_status_through(client, provider_stub) -> None:
    provider_stub.queue(httpx.Response(404, json={"message": "task not found"}))
    r = client.get("/api/check-video-status", params={"id": "missing"})
    assert r.status_code == 404
    assert r.json() == {"error": "Generation provider error: task not found"}


def test_provider_outage_is_502(client, provider_stub) -> None:
    provider_stub.queue(httpx.ReadTimeout("timed out"))
    r = client.get("/api/check-video-status", params={"id": "abc123"})
    assert r.status_code == 502
    assert r.json() == {"error": "Generation provider unavailable"}


def test_missing_credential_is_server_configuration_error(settings, provider_stub, caplog) -> None:
    unconfigured = replace(settings, provider_api_key=None)
    app.dependency_overrides[get_settings] = lambda: unconfigured
    app.dependency_overrides[get_provider] = lambda: ProviderClient.from_settings(
        unconfigured, transport=httpx.MockTransport(provider_stub)
    )
    try:
        with TestClient(app) as test_client:
            r = test_client.post(
                "/api/generate-video", json={"images": ["https://x/y.png"], "prompt": "turn into cartoon"}
            )
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 500
    assert r.json() == {"error": "Server configuration error"}
    assert provider_stub.requests == []


def test_credential_never_leaks_into_response_or_logs(client, provider_stub, caplog) -> None:
    provider_stub.queue(httpx.Response(403, text=f"key {API_KEY} is not allowed"))
    with caplog.at_level("INFO", logger="vidgen-backend"):
        r = client.post("/api/generate-video", json={"images": ["https://x/y.png"], "prompt": "p"})
    assert r.status_code == 403
    assert API_KEY not in r.text
    assert API_KEY not in caplog.text


def test_upload_url_returns_grant(client) -> None:
    r = client.post("/api/upload-url", json={"contentType": "image/webp"})
    assert r.status_code == 200
    body = r.json()
    assert body["objectKey"].startswith("temp/")
    assert body["publicReference"] == f"https://cdn.example.com/{body['objectKey']}"
    assert body["objectKey"] in body["writeUrl"]
    assert body["expiresIn"] == 300


def test_upload_url_requires_content_type(client) -> None:
    r = client.post("/api/upload-url", json={})
    assert r.status_code == 400
    assert r.json() == {"error": "Missing contentType"}


def test_upload_url_without_storage_config_is_500(settings) -> None:
    app.dependency_overrides[get_settings] = lambda: Settings()
    try:
        with TestClient(app) as test_client:
            r = test_client.post("/api/upload-url", json={"contentType": "image/png"})
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 500
    assert r.json() == {"error": "Server configuration error"}


def test_healthz_reports_configuration_flags_only(client) -> None:
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "provider": True, "storage": True}


SECRET = "session-signing-secret"


def _token(**claims) -> str:
    payload = {"sub": "user-1", "exp": int(time.time()) + 60}
    payload.update(claims)
    return jwt.encode(payload, SECRET, algorithm="HS256")


@pytest.fixture
def gated_client(settings, provider):
    gated = replace(settings, session_secret=SECRET)
    app.dependency_overrides[get_settings] = lambda: gated
    app.dependency_overrides[get_provider] = lambda: provider
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_gate_rejects_requests_without_session(gated_client, provider_stub) -> None:
    r = gated_client.post("/api/generate-video", json={"images": ["https://x/y.png"], "prompt": "p"})
    assert r.status_code == 401
    assert r.json() == {"error": "Not authenticated"}
    assert provider_stub.requests == []


def test_gate_rejects_expired_session(gated_client) -> None:
    gated_client.cookies.set("auth-token", _token(exp=int(time.time()) - 10))
    r = gated_client.get("/api/check-video-status", params={"id": "abc123"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid session"}


def test_session_cookie_opens_the_gate(gated_client, provider_stub) -> None:
    provider_stub.queue(httpx.Response(200, json={"taskId": "abc123"}))

    r = gated_client.post("/auth/session", json={"token": _token(), "username": "ada"})
    assert r.status_code == 200
    assert r.json() == {"success": True}

    r = gated_client.post("/api/generate-video", json={"images": ["https://x/y.png"], "prompt": "p"})
    assert r.status_code == 200
    assert r.json() == {"taskId": "abc123"}


def test_session_rejects_forged_token(gated_client) -> None:
    forged = jwt.encode({"sub": "user-1", "exp": int(time.time()) + 60}, "wrong-secret", algorithm="HS256")
    r = gated_client.post("/auth/session", json={"token": forged})
    assert r.status_code == 401


def test_session_requires_token(client) -> None:
    r = client.post("/auth/session", json={})
    assert r.status_code == 400
    assert r.json() == {"error": "Token is required"}


def test_delete_session_clears_cookies(client) -> None:
    r = client.delete("/auth/session")
    assert r.status_code == 200
    set_cookie = r.headers.get_list("set-cookie")
    assert any(c.startswith("auth-token=") for c in set_cookie)
    assert any(c.startswith("username=") for c in set_cookie)


def test_poll_non_json_success_is_a_failed_job(client, provider_stub) -> None:
    provider_stub.queue(httpx.Response(200, text="<html>gateway</html>"))
    r = client.get("/api/check-video-status", params={"id": "abc123"})
    assert r.status_code == 200
    assert r.json()["status"] == "failed"
    assert r.json()["errorDetail"] == "Provider returned an unreadable status payload"


def test_unexpected_error_keeps_the_error_shape(settings) -> None:
    app.dependency_overrides[get_settings] = lambda: replace(settings, s3_endpoint="not a url")
    try:
        with TestClient(app, raise_server_exceptions=False) as test_client:
            r = test_client.post("/api/upload-url", json={"contentType": "image/png"})
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error"}
