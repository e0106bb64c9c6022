from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from backend.app.history import CommandHistoryStore
from backend.app.main import app
from backend.app.services import Services, get_services
from fakes import FakeGmailClient, MemoryTokenStore, http_error, message, person
from mail_copilot.actions.executor import default_executor
from mail_copilot.auth.oauth import ExpiringStateStore, GoogleOAuthFlow
from mail_copilot.auth.session import TokenLifecycleManager
from mail_copilot.config.settings import Settings
from mail_copilot.models import Command, TokenPair

HEADERS = {"X-User-Id": "u1"}


@pytest.fixture
def gmail() -> FakeGmailClient:
    return FakeGmailClient(
        connections=[person(display="Sarah Connor", given="Sarah", emails=["sarah@example.com"])],
        messages={
            "m1": message("m1", sender="sarah@example.com", subject="Hello", internal_date="1700000000000"),
        },
    )


@pytest.fixture
def services(gmail: FakeGmailClient) -> Services:
    settings = Settings()
    store = MemoryTokenStore({"u1": TokenPair("access", "refresh")})
    return Services(
        settings=settings,
        token_store=store,
        auth=TokenLifecycleManager(
            store,
            refresher=lambda refresh_token: TokenPair("fresh", refresh_token),
            client_factory=lambda tokens: gmail,
        ),
        oauth=GoogleOAuthFlow(
            settings,
            store,
            ExpiringStateStore(600),
            http_post=MagicMock(return_value=SimpleNamespace(ok=True, status_code=200)),
        ),
        executor=default_executor(settings),
        history=CommandHistoryStore(),
        interpreter=MagicMock(),
        transcriber=MagicMock(),
    )


@pytest.fixture
def client(services: Services):
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"ok": True}


def test_missing_identity_header_is_unauthenticated(client: TestClient) -> None:
    resp = client.post("/api/email/fetch", json={"entities": {}})

    assert resp.status_code == 401
    assert resp.json() == {
        "ok": False,
        "error": {"code": "unauthenticated", "message": "User not authenticated."},
    }


def test_unconnected_account(client: TestClient) -> None:
    resp = client.post("/api/email/fetch", json={"entities": {}}, headers={"X-User-Id": "u2"})

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "account_not_connected"


def test_fetch_email(client: TestClient, services: Services) -> None:
    resp = client.post("/api/email/fetch", json={"entities": {"count": 50}}, headers=HEADERS)

    body = resp.json()
    assert resp.status_code == 200
    assert body["success"] is True
    assert body["query"] == {"sender": None, "count": 10}
    assert body["emails"][0]["subject"] == "Hello"
    assert services.history.snapshot("u1")[0]["intent"] == "fetch_email"


def test_send_email(client: TestClient, gmail: FakeGmailClient) -> None:
    resp = client.post(
        "/api/email/send",
        json={"entities": {"recipient": "sarah", "body": "hi"}},
        headers=HEADERS,
    )

    assert resp.status_code == 200
    assert resp.json()["resolved_email"] == "sarah@example.com"
    assert len(gmail.sent) == 1


def test_send_email_to_unknown_recipient(client: TestClient, gmail: FakeGmailClient) -> None:
    gmail.messages = {}
    resp = client.post(
        "/api/email/send",
        json={"entities": {"recipient": "marcus", "body": "hi"}},
        headers=HEADERS,
    )

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "recipient_not_found"
    assert gmail.sent == []


def test_execute_create_event(client: TestClient) -> None:
    resp = client.post(
        "/api/email/execute",
        json={"intent": "create_event", "entities": {"title": "Standup"}},
        headers=HEADERS,
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": False, "message": "Create event not yet implemented"}


def test_execute_unknown_intent(client: TestClient) -> None:
    resp = client.post("/api/email/execute", json={"intent": "dance"}, headers=HEADERS)

    assert resp.json() == {"success": False, "message": "Unknown intent: dance"}


def test_resolve_contact_synthesizes_default(client: TestClient) -> None:
    resp = client.post("/api/email/resolve-contact", json={"name": "unknownperson"}, headers=HEADERS)

    assert resp.json() == {
        "success": True,
        "original_name": "unknownperson",
        "resolved_email": "unknownperson@gmail.com",
        "confidence": "low",
        "source": "synthesized_default",
    }


def test_resolve_contact_requires_name(client: TestClient) -> None:
    resp = client.post("/api/email/resolve-contact", json={"name": "  "}, headers=HEADERS)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "bad_request"


def test_find_recipient(client: TestClient) -> None:
    found = client.post("/api/email/find-recipient", json={"search_term": "sarah"}, headers=HEADERS).json()

    assert found["recipient_found"] is True
    assert found["recipient"] == {
        "email": "sarah@example.com",
        "confidence": "high",
        "source": "google_contacts",
    }


def test_find_recipient_not_found(client: TestClient, gmail: FakeGmailClient) -> None:
    gmail.messages = {}
    body = client.post("/api/email/find-recipient", json={"search_term": "marcus"}, headers=HEADERS).json()

    assert body["recipient_found"] is False
    assert body["recipient"] is None


def test_expired_authorization_after_refresh_asks_to_reconnect(
    client: TestClient, gmail: FakeGmailClient
) -> None:
    gmail.list_error = http_error(401)

    resp = client.post("/api/email/fetch", json={"entities": {}}, headers=HEADERS)

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "authorization_expired"


def test_provider_failure_is_bad_gateway(client: TestClient, gmail: FakeGmailClient) -> None:
    gmail.list_error = http_error(500)

    resp = client.post("/api/email/fetch", json={"entities": {}}, headers=HEADERS)

    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "provider_error"


def test_text_command_without_execution(client: TestClient, services: Services) -> None:
    services.interpreter.interpret.return_value = Command("fetch_email", {"sender": "sarah"})

    resp = client.post("/api/speech/text", json={"command": "emails from sarah"}, headers=HEADERS)

    assert resp.json() == {
        "ok": True,
        "transcript": "emails from sarah",
        "nlu": {"intent": "fetch_email", "entities": {"sender": "sarah"}},
    }
    assert services.history.snapshot("u1") == []


def test_transcribe_runs_full_pipeline(client: TestClient, services: Services) -> None:
    services.transcriber.transcribe.return_value = "read my email"
    services.interpreter.interpret.return_value = Command("fetch_email", {"count": 1})

    resp = client.post(
        "/api/speech/transcribe",
        files={"audio": ("command.webm", b"audio-bytes", "audio/webm")},
        headers=HEADERS,
    )

    body = resp.json()
    assert resp.status_code == 200
    assert body["transcript"] == "read my email"
    assert body["execution_result"]["success"] is True
    phrases = services.transcriber.transcribe.call_args.kwargs["phrases"]
    assert "Sarah Connor" in phrases

    history = client.get("/api/commands/history", headers=HEADERS).json()["history"]
    assert history[0]["transcript"] == "read my email"


def test_disconnect_clears_tokens_and_history(client: TestClient, services: Services) -> None:
    services.history.record("u1", command=Command("fetch_email"), result={"success": True})

    resp = client.post("/api/auth/disconnect", headers=HEADERS)

    assert resp.status_code == 200
    assert resp.json()["details"]["credentials_removed"] is True
    assert services.token_store.get("u1") is None
    assert services.history.snapshot("u1") == []


def test_callback_with_unknown_state(client: TestClient) -> None:
    resp = client.get("/api/auth/google/callback", params={"code": "c", "state": "forged"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_oauth_state"
