from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from mail_copilot.errors import is_unauthorized
from mail_copilot.gmail.client import GmailClient
from mail_copilot.models import Confidence, RecipientResolution, Source

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[\w.-]+@[\w.-]+\.\w+")
HISTORY_LIST_LIMIT = 10
HISTORY_DETAIL_LIMIT = 5
_ADDRESS_HEADERS = ("To", "From")


def history_query(term: str) -> str:
    return f"(to:{term} OR from:{term})"


def _is_candidate(address: str) -> bool:
    lowered = address.lower()
    return address != "me" and "noreply" not in lowered and "no-reply" not in lowered


def extract_addresses(messages: List[Dict]) -> List[str]:
    """All To/From addresses across messages, in order of first appearance."""
    found: Dict[str, None] = {}
    for msg in messages:
        headers = (msg.get("payload") or {}).get("headers", []) or []
        for header in headers:
            if header.get("name") not in _ADDRESS_HEADERS:
                continue
            for address in EMAIL_PATTERN.findall(header.get("value") or ""):
                if _is_candidate(address):
                    found.setdefault(address, None)
    return list(found)


def pick_best_address(addresses: List[str], term: str) -> Optional[RecipientResolution]:
    if not addresses:
        return None

    needle = term.lower()
    for address in addresses:
        username = address.split("@", 1)[0].lower()
        if username in needle or needle in username:
            return RecipientResolution(address, Confidence.HIGH, Source.EMAIL_HISTORY)

    # Provider ordering decides here; nothing ranks by recency or frequency.
    return RecipientResolution(addresses[0], Confidence.MEDIUM, Source.EMAIL_HISTORY)


class HistorySearch:
    """Mines past correspondence for addresses matching a search term."""

    def __init__(self, client: GmailClient):
        self._client = client

    def find_recipient(self, term: str) -> Optional[RecipientResolution]:
        query = history_query(term)
        logger.info("Searching Gmail history with query: %s", query)

        try:
            message_ids = self._client.list_messages(query=query, max_results=HISTORY_LIST_LIMIT)
        except Exception as exc:
            if is_unauthorized(exc):
                raise
            logger.warning("History search for %r failed: %s", term, exc, exc_info=True)
            return None

        if not message_ids:
            logger.info("No email history found for %r", term)
            return None

        messages = []
        for message_id in message_ids[:HISTORY_DETAIL_LIMIT]:
            try:
                messages.append(
                    self._client.get_message(
                        message_id, fmt="metadata", metadata_headers=_ADDRESS_HEADERS
                    )
                )
            except Exception as exc:
                if is_unauthorized(exc):
                    raise
                logger.warning("Skipping message %s: %s", message_id, exc)

        result = pick_best_address(extract_addresses(messages), term)
        if result is None:
            logger.info("No usable email addresses in history for %r", term)
        else:
            logger.info(
                "History match for %r: %s (confidence=%s)", term, result.email, result.confidence.value
            )
        return result
