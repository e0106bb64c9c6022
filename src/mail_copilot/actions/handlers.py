from __future__ import annotations

import logging
import math
import re
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Any, Callable, Dict, List, Mapping, Optional

from mail_copilot.actions.summary import build_speech_summary, format_date_iso, sanitize_snippet
from mail_copilot.config.settings import EmailSettings
from mail_copilot.contacts.resolver import NotFoundPolicy, RecipientResolver
from mail_copilot.errors import RecipientNotFoundError, is_unauthorized
from mail_copilot.gmail.client import GmailClient
from mail_copilot.models import (
    Confidence,
    EmailSummary,
    FetchEmailEntities,
    SendEmailEntities,
)

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Email from your assistant"
SUMMARY_HEADERS = ("Subject", "From", "Date")
_LEADING_INT = re.compile(r"^\s*[+-]?\d+")


class CommandHandler(ABC):
    @abstractmethod
    def handle(self, client: GmailClient, entities: Mapping[str, Any], *, user_id: str) -> Dict[str, Any]:
        """Execute one command and return a {success, message, ...} result."""
        ...


def _header_text(value: str) -> str:
    # Header values must be single-line.
    return " ".join(value.split())


def compose_message(to: str, subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["To"] = _header_text(to)
    msg["From"] = "me"
    msg["Subject"] = _header_text(subject)
    msg.set_content(body)
    return msg


class SendEmailHandler(CommandHandler):
    def __init__(self, resolver_factory: Callable[[GmailClient], RecipientResolver] = RecipientResolver):
        self._resolver_factory = resolver_factory

    def handle(self, client: GmailClient, entities: Mapping[str, Any], *, user_id: str) -> Dict[str, Any]:
        send = SendEmailEntities.from_dict(entities)
        if not send.recipient.strip():
            raise RecipientNotFoundError(send.recipient)

        resolution = self._resolver_factory(client).resolve(send.recipient, NotFoundPolicy.FAIL)
        if resolution is None:
            raise RecipientNotFoundError(send.recipient)

        logger.info(
            "Resolved %r to %s (confidence=%s, source=%s)",
            send.recipient,
            resolution.email,
            resolution.confidence.value,
            resolution.source.value,
        )
        if resolution.confidence is Confidence.LOW:
            logger.warning(
                "Low confidence match for %r -> %s, sending anyway", send.recipient, resolution.email
            )

        subject = _header_text(send.subject or "") or DEFAULT_SUBJECT
        msg = compose_message(resolution.email, subject, send.body)
        client.send_message(msg)
        logger.info("Email sent to %s for user %s", resolution.email, user_id)

        return {
            "success": True,
            "message": f"Email successfully sent to {resolution.email}",
            "resolved_email": resolution.email,
            "original_recipient": send.recipient,
            "confidence": resolution.confidence.value,
            "source": resolution.source.value,
        }


def clamp_fetch_count(value: Any, settings: EmailSettings) -> int:
    # bool is an int subclass but never a count
    if isinstance(value, bool):
        return settings.default_fetch_count
    if isinstance(value, int):
        count = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return settings.default_fetch_count
        count = int(value)
    elif isinstance(value, str):
        match = _LEADING_INT.match(value)
        if not match:
            return settings.default_fetch_count
        count = int(match.group(0))
    else:
        return settings.default_fetch_count
    return min(max(count, settings.min_fetch_count), settings.max_fetch_count)


def normalize_sender(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def sender_query(sender: Optional[str]) -> Optional[str]:
    if not sender:
        return None
    if re.search(r"\s", sender):
        return f'from:"{sender}"'
    return f"from:{sender}"


def _header_value(headers: List[Dict[str, Any]], name: str) -> Optional[str]:
    for header in headers:
        if str(header.get("name", "")).lower() == name.lower():
            return header.get("value")
    return None


def summarize_message(detail: Dict[str, Any], message_id: str, *, snippet_max_length: int) -> EmailSummary:
    headers = (detail.get("payload") or {}).get("headers", []) or []
    return EmailSummary(
        id=str(detail.get("id") or message_id),
        subject=_header_value(headers, "Subject") or "(No subject)",
        sender=_header_value(headers, "From") or "Unknown sender",
        snippet=sanitize_snippet(detail.get("snippet"), snippet_max_length),
        date=format_date_iso(detail.get("internalDate"), _header_value(headers, "Date")),
    )


class FetchEmailHandler(CommandHandler):
    def __init__(self, settings: Optional[EmailSettings] = None):
        self._settings = settings or EmailSettings()

    def handle(self, client: GmailClient, entities: Mapping[str, Any], *, user_id: str) -> Dict[str, Any]:
        fetch = FetchEmailEntities.from_dict(entities)
        count = clamp_fetch_count(fetch.count, self._settings)
        sender = normalize_sender(fetch.sender)

        message_ids = client.list_messages(query=sender_query(sender), max_results=count)

        emails: List[EmailSummary] = []
        for message_id in message_ids:
            try:
                detail = client.get_message(message_id, fmt="metadata", metadata_headers=SUMMARY_HEADERS)
            except Exception as exc:
                if is_unauthorized(exc):
                    raise
                logger.warning("Failed to load Gmail message %s: %s", message_id, exc)
                continue
            emails.append(
                summarize_message(detail, message_id, snippet_max_length=self._settings.snippet_max_length)
            )

        if emails:
            plural = "s" if len(emails) > 1 else ""
            origin = f" from {sender}" if sender else ""
            message = f"Fetched {len(emails)} recent email{plural}{origin}."
        elif sender:
            message = f"No recent emails found from {sender}."
        else:
            message = "No recent emails found."

        logger.info("Fetched %d emails for user %s (sender=%r, count=%d)", len(emails), user_id, sender, count)
        return {
            "success": True,
            "emails": [e.to_dict() for e in emails],
            "message": message,
            "speech_summary": build_speech_summary(emails, sender=sender),
            "query": {"sender": sender, "count": count},
        }


class CreateEventHandler(CommandHandler):
    def handle(self, client: GmailClient, entities: Mapping[str, Any], *, user_id: str) -> Dict[str, Any]:
        return {"success": False, "message": "Create event not yet implemented"}
