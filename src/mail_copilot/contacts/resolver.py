from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Optional

from mail_copilot.contacts.directory import ContactDirectory
from mail_copilot.contacts.history import HistorySearch
from mail_copilot.errors import BadRequestError, is_unauthorized
from mail_copilot.gmail.client import GmailClient
from mail_copilot.models import Confidence, RecipientResolution, Source

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN = "gmail.com"

_SPOKEN_AT = re.compile(r" at ", flags=re.IGNORECASE)
_SPOKEN_DOT = re.compile(r" dot ", flags=re.IGNORECASE)
_USERNAME_DELIMITERS = re.compile(r" at |@| gmail\.com", flags=re.IGNORECASE)
_GMAIL_TAIL = re.compile(r"gmail.*", flags=re.IGNORECASE)


class NotFoundPolicy(str, Enum):
    # Strict pipeline: give up and let the caller raise.
    FAIL = "fail"
    # Lenient pipeline: always hand back something sendable.
    SYNTHESIZE_DEFAULT = "synthesize_default"


def looks_like_email(text: str) -> bool:
    # Heuristic only, no RFC validation.
    return "@" in text and "." in text


def clean_speech_artifacts(text: str) -> str:
    """Turn transcribed 'name at gmail dot com' back into address syntax."""
    cleaned = text
    if _SPOKEN_AT.search(cleaned):
        cleaned = _SPOKEN_AT.sub("@", cleaned)
    if _SPOKEN_DOT.search(cleaned):
        cleaned = _SPOKEN_DOT.sub(".", cleaned)
    if " @" in cleaned:
        cleaned = cleaned.replace(" @", "@")
    if "@ " in cleaned:
        cleaned = cleaned.replace("@ ", "@")
    if cleaned != text:
        logger.info("Cleaned speech artifacts: %r -> %r", text, cleaned)
    return cleaned


def extract_username(text: str) -> str:
    username = text
    if _USERNAME_DELIMITERS.search(text):
        username = _USERNAME_DELIMITERS.split(text, maxsplit=1)[0].strip()
    if "gmail" in username.lower():
        username = _GMAIL_TAIL.sub("", username).strip()
    return username.strip()


def synthesize_address(username: str) -> str:
    local_part = re.sub(r"\s+", "", username.lower())
    if not local_part:
        raise ValueError("Cannot build an address from an empty name.")
    return f"{local_part}@{DEFAULT_DOMAIN}"


class RecipientResolver:
    """
    Resolves a spoken or typed recipient reference to an email address.

    Stages run in order and the first usable address wins:
    direct address, Google Contacts, Gmail history. With
    ``NotFoundPolicy.SYNTHESIZE_DEFAULT`` speech artifacts are cleaned first,
    history is skipped, and a ``<username>@gmail.com`` guess is returned
    instead of ``None``.
    """

    def __init__(
        self,
        client: GmailClient,
        *,
        directory: Optional[ContactDirectory] = None,
        history: Optional[HistorySearch] = None,
        contacts_page_size: int = 500,
    ):
        self._directory = directory or ContactDirectory(client, page_size=contacts_page_size)
        self._history = history or HistorySearch(client)

    def resolve(
        self, query: str, on_not_found: NotFoundPolicy = NotFoundPolicy.FAIL
    ) -> Optional[RecipientResolution]:
        if not (query or "").strip():
            raise BadRequestError("Recipient is required.")
        if on_not_found is NotFoundPolicy.SYNTHESIZE_DEFAULT:
            return self._resolve_or_synthesize(query)
        return self._resolve_strict(query)

    def resolve_email(self, query: str) -> str:
        """Lenient resolution, address only. Raises only for a blank query."""
        return self.resolve(query, NotFoundPolicy.SYNTHESIZE_DEFAULT).email

    def _resolve_strict(self, query: str) -> Optional[RecipientResolution]:
        logger.info("Searching for recipient %r", query)

        if looks_like_email(query):
            logger.info("Recipient %r is already an email address", query)
            return RecipientResolution(query, Confidence.HIGH, Source.DIRECT_EMAIL)

        contact_email = self._directory.find_email_by_name(query)
        if contact_email:
            return RecipientResolution(contact_email, Confidence.HIGH, Source.GOOGLE_CONTACTS)

        history_match = self._history.find_recipient(query)
        if history_match:
            return history_match

        logger.info("No recipient found for %r in contacts or email history", query)
        return None

    def _resolve_or_synthesize(self, query: str) -> RecipientResolution:
        try:
            cleaned = clean_speech_artifacts(query)
            if looks_like_email(cleaned):
                if cleaned == query:
                    return RecipientResolution(query, Confidence.HIGH, Source.DIRECT_EMAIL)
                return RecipientResolution(cleaned.lower(), Confidence.MEDIUM, Source.DIRECT_EMAIL)

            # "gmail" alone strips down to nothing; keep the spoken text then.
            username = extract_username(cleaned) or cleaned.strip()
            contact_email = self._directory.find_email_by_name(username)
            if contact_email:
                return RecipientResolution(contact_email, Confidence.HIGH, Source.GOOGLE_CONTACTS)

            address = synthesize_address(username)
            logger.info("No contact found for %r, using default email %s", username, address)
            return RecipientResolution(address, Confidence.LOW, Source.SYNTHESIZED_DEFAULT)
        except Exception as exc:
            # Expired access must reach TokenLifecycleManager for a refresh.
            if is_unauthorized(exc):
                raise
            logger.exception("Error resolving recipient %r, falling back to default", query)
            address = synthesize_address(extract_username(query) or query)
            return RecipientResolution(address, Confidence.LOW, Source.SYNTHESIZED_DEFAULT)
