"""Tests for the HTTP control surface."""

from __future__ import annotations

import time

import httpx
import pytest
from fastapi.testclient import TestClient

from sessionrelay.notify.backend import BackendNotifier
from sessionrelay.session.client import SessionEvent
from sessionrelay.session.manager import LifecycleManager
from sessionrelay.web.app import create_app

AUTH = {"Authorization": "Bearer test-token"}


def _wait_for_state(client: TestClient, state: str, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while client.get("/health").json()["state"] != state:
        assert time.monotonic() < deadline, f"session never reached {state}"
        time.sleep(0.01)


def _unreachable_backend() -> BackendNotifier:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return BackendNotifier(
        "https://backend.test/api",
        "tok",
        prefix="whatsapp",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def make_client(config, guard):
    def _make(factory, notifier=None) -> TestClient:
        manager = LifecycleManager(
            config,
            client_factory=factory,
            guard=guard,
            notifier=notifier or BackendNotifier(""),
        )
        return TestClient(create_app(config, manager))

    return _make


@pytest.fixture
def ready_client(make_client, ready_factory):
    with make_client(ready_factory, _unreachable_backend()) as client:
        _wait_for_state(client, "ready")
        yield client


@pytest.fixture
def disconnected_client(config, make_client, make_factory, ready_info):
    config.reconnect_max_attempts = 0
    factory = make_factory([SessionEvent.ready(ready_info), SessionEvent.disconnected("LOGOUT")])
    with make_client(factory) as client:
        _wait_for_state(client, "disconnected")
        yield client


def test_health_is_unauthenticated(ready_client):
    response = ready_client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["state"] == "ready"
    assert data["connected"] is True


def test_status_requires_token(ready_client):
    assert ready_client.get("/api/status").status_code == 401
    response = ready_client.get("/api/status", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_status_returns_stats(ready_client, ready_info):
    response = ready_client.get("/api/status", headers=AUTH)
    assert response.status_code == 200
    data = response.json()
    assert data["connected"] is True
    assert data["client_info"]["account_id"] == ready_info.account_id
    assert data["reconnect"]["attempts"] == 0
    assert data["queue"]["capacity"] == 5
    assert "timestamp" in data


def test_send_message_succeeds_with_backend_down(ready_client, ready_factory):
    response = ready_client.post(
        "/api/send-message",
        json={"to": "33612345678", "message": "hello"},
        headers=AUTH,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["messageId"]
    assert "timestamp" in data
    assert ready_factory.latest.sent == [("33612345678@c.us", "hello")]


@pytest.mark.parametrize(
    "path,body",
    [
        ("/api/send-message", {"to": "336"}),
        ("/api/send-message", {"to": "", "message": "hi"}),
        ("/api/send-signature", {"to": "336", "doctorName": "Martin"}),
        ("/api/send-verification", {"code": "1234"}),
    ],
)
def test_missing_fields_return_400(ready_client, path, body):
    response = ready_client.post(path, json=body, headers=AUTH)
    assert response.status_code == 400
    assert "Missing parameters" in response.json()["error"]


def test_send_signature_uses_template(ready_client, ready_factory):
    response = ready_client.post(
        "/api/send-signature",
        json={"to": "336", "doctorName": "Martin", "signatureUrl": "https://sign.test/x"},
        headers=AUTH,
    )
    assert response.status_code == 200
    target, body = ready_factory.latest.sent[-1]
    assert target == "336@c.us"
    assert "Dr. Martin" in body
    assert "https://sign.test/x" in body


def test_send_verification_accepts_numeric_code(ready_client, ready_factory):
    response = ready_client.post(
        "/api/send-verification",
        json={"to": "336@c.us", "code": 4821},
        headers=AUTH,
    )
    assert response.status_code == 200
    assert "*4821*" in ready_factory.latest.sent[-1][1]


def test_send_failure_returns_500(make_client, ready_factory):
    ready_factory.send_error = RuntimeError("chat not found")
    with make_client(ready_factory) as client:
        _wait_for_state(client, "ready")
        response = client.post(
            "/api/send-message",
            json={"to": "336", "message": "hi"},
            headers=AUTH,
        )
    assert response.status_code == 500
    assert response.json() == {"error": "chat not found"}


def test_send_while_disconnected_returns_503(disconnected_client):
    response = disconnected_client.post(
        "/api/send-verification",
        json={"to": "33600000000", "code": "1234"},
        headers=AUTH,
    )
    assert response.status_code == 503
    assert "error" in response.json()


def test_validation_runs_before_readiness(disconnected_client):
    response = disconnected_client.post("/api/send-message", json={}, headers=AUTH)
    assert response.status_code == 400


def test_reconnect_is_fire_and_forget(make_client, ready_factory):
    with make_client(ready_factory) as client:
        _wait_for_state(client, "ready")
        response = client.post("/api/reconnect", headers=AUTH)
        assert response.status_code == 200
        assert response.json()["success"] is True

        # The forced reconnect settles back to READY with a new client
        deadline = time.monotonic() + 2.0
        while len(ready_factory.clients) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        _wait_for_state(client, "ready")
        assert len(ready_factory.clients) == 2
        assert ready_factory.clients[0].destroyed


def test_reconnect_requires_token(ready_client):
    assert ready_client.post("/api/reconnect").status_code == 401


def test_qr_artifact_is_served(make_client, make_factory):
    factory = make_factory([SessionEvent.qr("pair-me")])
    with make_client(factory) as client:
        _wait_for_state(client, "awaiting_scan")
        response = client.get("/qr.png")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content.startswith(b"\x89PNG")


def test_qr_missing_returns_404(make_client, make_factory):
    factory = make_factory()
    factory.hang_connect = True
    with make_client(factory) as client:
        response = client.get("/qr.png")
    assert response.status_code == 404
    assert "error" in response.json()


def test_only_the_published_qr_is_served(config, make_client, make_factory):
    config.public_dir.mkdir(parents=True, exist_ok=True)
    (config.public_dir / "qr.png.tmp").write_bytes(b"partial")
    (config.public_dir / "notes.txt").write_text("private")
    factory = make_factory([SessionEvent.qr("pair-me")])
    with make_client(factory) as client:
        _wait_for_state(client, "awaiting_scan")
        assert client.get("/qr.png.tmp").status_code == 404
        assert client.get("/notes.txt").status_code == 404
        assert client.get("/qr.png").status_code == 200


def test_health_served_while_connect_hangs(config, make_client, make_factory):
    config.connect_timeout = 30.0
    factory = make_factory()
    factory.hang_connect = True
    started = time.monotonic()
    with make_client(factory) as client:
        response = client.get("/health")
        elapsed = time.monotonic() - started
        assert response.status_code == 200
        assert elapsed < 5.0
        _wait_for_state(client, "authenticating")

        # A forced reconnect is accepted while the first connect is stuck
        assert client.post("/api/reconnect", headers=AUTH).status_code == 200
        deadline = time.monotonic() + 2.0
        while len(factory.clients) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert len(factory.clients) == 2
        assert factory.clients[0].destroyed


@pytest.mark.parametrize(
    "path,body",
    [
        ("/api/send-message", {"to": 33612345678, "message": "hello"}),
        (
            "/api/send-signature",
            {"to": 33612345678, "doctorName": "Martin", "signatureUrl": "https://sign.test/x"},
        ),
        ("/api/send-verification", {"to": 33612345678, "code": "1234"}),
    ],
)
def test_numeric_recipient_is_accepted(ready_client, ready_factory, path, body):
    response = ready_client.post(path, json=body, headers=AUTH)
    assert response.status_code == 200
    assert ready_factory.latest.sent[-1][0] == "33612345678@c.us"


def test_no_configured_token_rejects_everything(config, make_client, ready_factory):
    config.api_token = ""
    with make_client(ready_factory) as client:
        response = client.get("/api/status", headers={"Authorization": "Bearer "})
        assert response.status_code == 401
