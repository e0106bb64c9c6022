from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from mail_copilot.errors import is_unauthorized
from mail_copilot.gmail.client import GmailClient
from mail_copilot.models import Contact

logger = logging.getLogger(__name__)


def normalize_contact(person: Dict[str, Any]) -> Contact:
    """Flatten a People API person into a Contact."""
    display: List[str] = []
    given: List[str] = []
    family: List[str] = []
    for name in person.get("names", []) or []:
        if name.get("displayName"):
            display.append(str(name["displayName"]))
        if name.get("givenName"):
            given.append(str(name["givenName"]))
        if name.get("familyName"):
            family.append(str(name["familyName"]))

    emails = [
        str(entry["value"])
        for entry in person.get("emailAddresses", []) or []
        if entry.get("value")
    ]
    return Contact(display_names=display, given_names=given, family_names=family, emails=emails)


class ContactDirectory:
    """
    Read-only view of the user's Google Contacts.

    The connection listing is fetched lazily, once per instance, so a single
    request can ask for phrases and lookups without a second round-trip.
    """

    def __init__(self, client: GmailClient, *, page_size: int = 500):
        self._client = client
        self._page_size = page_size
        self._contacts: Optional[List[Contact]] = None

    def contacts(self) -> List[Contact]:
        if self._contacts is None:
            people = self._client.list_connections(page_size=self._page_size)
            self._contacts = [normalize_contact(p) for p in people]
            logger.debug("Loaded %d contacts", len(self._contacts))
        return self._contacts

    def phrases(self) -> List[str]:
        """Names and addresses used to bias speech recognition."""
        phrases: List[str] = []
        for contact in self.contacts():
            for display in contact.display_names:
                phrases.append(display)
            for name in [*contact.given_names, *contact.family_names]:
                if name not in contact.display_names:
                    phrases.append(name)
            for email in contact.emails:
                phrases.append(email)
                username = email.split("@", 1)[0]
                if username and username != email:
                    phrases.append(username)

        # dict keeps first-seen order
        unique = [p for p in dict.fromkeys(phrases) if len(p) > 1]
        logger.info("Loaded %d unique contact phrases for speech recognition", len(unique))
        return unique

    def find_email_by_name(self, name: str) -> Optional[str]:
        needle = (name or "").strip().lower()
        if not needle:
            return None

        try:
            contacts = self.contacts()
        except Exception as exc:
            if is_unauthorized(exc):
                raise
            logger.warning("Contact lookup for %r failed: %s", name, exc, exc_info=True)
            return None

        # First match in provider order wins, no relevance ranking.
        match = next(
            (c for c in contacts if any(needle in n.lower() for n in c.all_names())),
            None,
        )
        if match is None:
            logger.info("No contact found with name %r", name)
            return None
        if not match.emails:
            logger.info("Contact %r found but has no email address", name)
            return None

        logger.info("Found contact %r with email %s", name, match.emails[0])
        return match.emails[0]
