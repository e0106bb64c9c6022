from __future__ import annotations

import pytest
from googleapiclient.errors import HttpError

from fakes import FakeGmailClient, http_error, message, person
from mail_copilot.actions.handlers import (
    DEFAULT_SUBJECT,
    CreateEventHandler,
    FetchEmailHandler,
    SendEmailHandler,
    clamp_fetch_count,
    sender_query,
)
from mail_copilot.config.settings import EmailSettings
from mail_copilot.errors import RecipientNotFoundError


class FailingOnceClient(FakeGmailClient):
    def get_message(self, message_id, fmt="full", metadata_headers=None):
        if message_id == "m2":
            raise http_error(401)
        return super().get_message(message_id, fmt, metadata_headers)


def _inbox() -> dict:
    return {
        "m1": message(
            "m1",
            sender="Sarah <sarah@example.com>",
            subject="Quarterly report",
            snippet="Numbers   are in",
            internal_date="1700000000000",
        ),
        "m2": message("m2", sender="bob@example.com", subject="Lunch", internal_date="1700003600000"),
        "m3": message("m3", snippet="no headers at all", internal_date="1700007200000"),
    }


def test_send_email_resolves_contact_and_sends_once() -> None:
    client = FakeGmailClient(connections=[person(display="Sarah Connor", emails=["sarah@example.com"])])

    result = SendEmailHandler().handle(
        client, {"recipient": "sarah", "body": "See you at 5", "subject": "Today"}, user_id="u1"
    )

    assert result == {
        "success": True,
        "message": "Email successfully sent to sarah@example.com",
        "resolved_email": "sarah@example.com",
        "original_recipient": "sarah",
        "confidence": "high",
        "source": "google_contacts",
    }
    assert len(client.sent) == 1
    sent = client.sent[0]
    assert sent["To"] == "sarah@example.com"
    assert sent["Subject"] == "Today"
    assert sent.get_content().strip() == "See you at 5"


def test_send_email_uses_default_subject() -> None:
    client = FakeGmailClient()

    SendEmailHandler().handle(client, {"recipient": "alex@example.com", "body": "hi"}, user_id="u1")

    assert client.sent[0]["Subject"] == DEFAULT_SUBJECT


def test_send_email_unresolved_recipient_sends_nothing() -> None:
    client = FakeGmailClient()

    with pytest.raises(RecipientNotFoundError) as excinfo:
        SendEmailHandler().handle(client, {"recipient": "marcus", "body": "hi"}, user_id="u1")

    assert excinfo.value.recipient == "marcus"
    assert '"marcus"' in excinfo.value.message
    assert client.sent == []
    assert "send_message" not in client.call_names()


def test_send_email_requires_recipient() -> None:
    client = FakeGmailClient()

    with pytest.raises(RecipientNotFoundError):
        SendEmailHandler().handle(client, {"body": "hi"}, user_id="u1")

    assert client.calls == []


@pytest.mark.parametrize(
    "raw, expected",
    [
        (3, 3),
        (999, 10),
        ("999", 10),
        (0, 1),
        (-4, 1),
        (2.7, 2),
        ("3 emails", 3),
        ("abc", 5),
        (None, 5),
        (True, 5),
        (float("nan"), 5),
    ],
)
def test_clamp_fetch_count(raw, expected: int) -> None:
    assert clamp_fetch_count(raw, EmailSettings()) == expected


def test_sender_query_quotes_names_with_spaces() -> None:
    assert sender_query("john smith") == 'from:"john smith"'
    assert sender_query("sarah") == "from:sarah"
    assert sender_query(None) is None


def test_fetch_email_returns_summaries_in_provider_order() -> None:
    client = FakeGmailClient(messages=_inbox())

    result = FetchEmailHandler().handle(client, {}, user_id="u1")

    assert result["success"] is True
    assert [e["id"] for e in result["emails"]] == ["m1", "m2", "m3"]
    assert result["emails"][0] == {
        "id": "m1",
        "subject": "Quarterly report",
        "from": "Sarah <sarah@example.com>",
        "snippet": "Numbers are in",
        "date": "2023-11-14T22:13:20.000Z",
    }
    assert result["emails"][2]["subject"] == "(No subject)"
    assert result["emails"][2]["from"] == "Unknown sender"
    assert result["message"] == "Fetched 3 recent emails."
    assert result["query"] == {"sender": None, "count": 5}
    assert client.calls[0] == ("list_messages", None, 5)


def test_fetch_email_clamps_count_and_quotes_sender() -> None:
    client = FakeGmailClient(search_results={'from:"john smith"': []})

    result = FetchEmailHandler().handle(client, {"sender": " john smith ", "count": 999}, user_id="u1")

    assert client.calls == [("list_messages", 'from:"john smith"', 10)]
    assert result["emails"] == []
    assert result["message"] == "No recent emails found from john smith."
    assert result["speech_summary"] == "I could not find any recent emails from john smith."


def test_fetch_email_skips_messages_that_fail_to_load() -> None:
    client = FakeGmailClient(messages=_inbox(), failing_ids={"m2"})

    result = FetchEmailHandler().handle(client, {"count": "3"}, user_id="u1")

    assert [e["id"] for e in result["emails"]] == ["m1", "m3"]
    assert result["message"] == "Fetched 2 recent emails."


def test_fetch_email_propagates_expired_authorization_from_detail() -> None:
    client = FailingOnceClient(messages=_inbox())

    with pytest.raises(HttpError):
        FetchEmailHandler().handle(client, {}, user_id="u1")


def test_fetch_email_single_result_message() -> None:
    client = FakeGmailClient(messages={"m1": _inbox()["m1"]}, search_results={"from:sarah": ["m1"]})

    result = FetchEmailHandler().handle(client, {"sender": "sarah"}, user_id="u1")

    assert result["message"] == "Fetched 1 recent email from sarah."
    assert result["speech_summary"].startswith("Here is the latest email from sarah.")


def test_fetch_email_truncates_long_snippets() -> None:
    inbox = {"m1": message("m1", sender="a@example.com", snippet="x" * 300, internal_date="1700000000000")}
    client = FakeGmailClient(messages=inbox)

    result = FetchEmailHandler(EmailSettings(snippet_max_length=40)).handle(client, {}, user_id="u1")

    snippet = result["emails"][0]["snippet"]
    assert len(snippet) == 40
    assert snippet.endswith("…")


def test_create_event_is_not_implemented() -> None:
    client = FakeGmailClient()

    result = CreateEventHandler().handle(client, {"title": "Standup", "date": "tomorrow"}, user_id="u1")

    assert result == {"success": False, "message": "Create event not yet implemented"}
    assert client.calls == []


def test_send_email_flattens_multiline_subject() -> None:
    client = FakeGmailClient()

    result = SendEmailHandler().handle(
        client,
        {"recipient": "sarah@example.com", "body": "hi", "subject": "Lunch\nplans\r\n tomorrow"},
        user_id="u1",
    )

    assert result["success"] is True
    assert client.sent[0]["Subject"] == "Lunch plans tomorrow"


def test_send_email_blank_subject_uses_default() -> None:
    client = FakeGmailClient()

    SendEmailHandler().handle(
        client, {"recipient": "sarah@example.com", "body": "hi", "subject": "\n "}, user_id="u1"
    )

    assert client.sent[0]["Subject"] == DEFAULT_SUBJECT
