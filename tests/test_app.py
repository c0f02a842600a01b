"""
Tests for the HTTP surface
"""
import json

import pytest
from fastapi.testclient import TestClient

import app as app_module
from conftest import (
    SESSION_ID,
    FakeResponse,
    decision,
    not_ready,
    session_created,
    submitted,
    upload_ok,
)
from verification.signer import sign

FILES = {
    "document_front": ("front.jpg", b"front-bytes", "image/jpeg"),
    "document_back": ("back.png", b"back-bytes", "image/png"),
    "selfie": ("selfie.jpg", b"face-bytes", "image/jpeg"),
}
FORM = {"first_name": "Test", "last_name": "User"}


@pytest.fixture
def api(make_orchestrator):
    orchestrator = make_orchestrator(max_attempts=3)
    app_module.app.dependency_overrides[app_module.get_orchestrator] = lambda: orchestrator
    yield TestClient(app_module.app)
    app_module.app.dependency_overrides.clear()


def test_health():
    response = TestClient(app_module.app).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_submit_completed(api, http):
    http.add("POST", "/sessions", session_created())
    http.add("POST", "/media", upload_ok)
    http.add("PATCH", SESSION_ID, submitted())
    http.add("GET", "/decision", decision("approved"))

    response = api.post("/veriff/submit", files=FILES, data=FORM)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["decision"] == "approved"
    assert body["sessionId"] == SESSION_ID

    back = [c for c in http.calls_to("POST", "/media") if c.json["image"]["context"] == "document-back"][0]
    assert back.json["image"]["content"].startswith("data:image/png;base64,")


def test_submit_processing(api, http):
    http.add("POST", "/sessions", session_created())
    http.add("POST", "/media", upload_ok)
    http.add("PATCH", SESSION_ID, submitted())
    http.add("GET", "/decision", not_ready())

    body = api.post("/veriff/submit", files=FILES, data=FORM).json()

    assert body["status"] == "processing"
    assert body["statusCheckHandle"] == f"/veriff/status?sessionId={SESSION_ID}"
    assert body["attemptsUsed"] == 3


def test_submit_missing_selfie_is_400(api, http):
    files = {k: v for k, v in FILES.items() if k != "selfie"}
    response = api.post("/veriff/submit", files=files, data=FORM)

    assert response.status_code == 400
    error = response.json()["detail"]["error"]
    assert error["code"] == "precondition_failed"
    assert error["missing"] == ["face"]
    assert http.calls == []


def test_submit_upload_failure_is_502(api, http):
    http.add("POST", "/sessions", session_created())
    http.add("POST", "/media", FakeResponse(500, text="boom"))

    response = api.post("/veriff/submit", files=FILES, data=FORM)

    assert response.status_code == 502
    assert response.json()["detail"]["error"]["code"] == "upload_failed"


def test_status_completed(api, http):
    http.add("GET", "/decision", decision("declined", reason="Document expired"))

    body = api.get("/veriff/status", params={"sessionId": SESSION_ID}).json()

    assert body["status"] == "completed"
    assert body["decision"] == "declined"
    assert body["data"]["reason"] == "Document expired"


def test_status_pending(api, http):
    http.add("GET", "/decision", not_ready())
    body = api.get("/veriff/status", params={"sessionId": SESSION_ID}).json()
    assert body["status"] == "pending"
    assert body["decision"] is None


def test_status_unknown_carries_raw_body(api, http):
    http.add("GET", "/decision", FakeResponse(200, {"status": "started"}))
    body = api.get("/veriff/status", params={"sessionId": SESSION_ID}).json()
    assert body["status"] == "unknown"
    assert body["data"]["rawResponse"] == {"status": "started"}


def test_status_invalid_id(api, http):
    response = api.get("/veriff/status", params={"sessionId": "abc"})
    assert response.status_code == 400
    assert response.json()["detail"]["error"]["code"] == "invalid_session_id"


def test_callback_verifies_signature(monkeypatch):
    monkeypatch.setattr(app_module.settings, "VERIFF_SHARED_SECRET", "callback-secret")
    payload = json.dumps({"status": "success", "verification": {"id": SESSION_ID, "status": "approved"}}).encode()
    client = TestClient(app_module.app)

    ok = client.post("/veriff/callback", content=payload,
                     headers={"X-HMAC-SIGNATURE": sign(payload, "callback-secret"),
                              "Content-Type": "application/json"})
    assert ok.status_code == 200
    assert ok.json()["status"] == "approved"
    assert ok.json()["sessionId"] == SESSION_ID

    bad = client.post("/veriff/callback", content=payload,
                      headers={"X-HMAC-SIGNATURE": "0" * 64, "Content-Type": "application/json"})
    assert bad.status_code == 401


@pytest.mark.parametrize("params", [{}, {"sessionId": "  "}])
def test_status_missing_session_id_is_400(api, http, params):
    response = api.get("/veriff/status", params=params)

    assert response.status_code == 400
    body = response.json()["detail"]
    assert body["status"] == "error"
    assert body["error"]["code"] == "precondition_failed"
    assert body["error"]["missing"] == ["sessionId"]
    assert http.calls == []


def test_orchestrator_and_http_session_are_reused(monkeypatch):
    app_module._shared_orchestrator.cache_clear()

    first = app_module.get_orchestrator()
    second = app_module.get_orchestrator()

    assert first is second
    assert first.client.http is second.client.http

    closed = []
    monkeypatch.setattr(first.client.http, "close", lambda: closed.append(True))
    app_module.close_provider_session()

    assert closed == [True]
    assert app_module._shared_orchestrator.cache_info().currsize == 0
