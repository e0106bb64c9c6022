from __future__ import annotations

import base64
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Dict, List, Optional, Sequence

import google_auth_httplib2
import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from mail_copilot.models import TokenPair


@dataclass(frozen=True)
class GmailClientConfig:
    tokens: TokenPair
    # Gmail userId, "me" refers to the authenticated user.
    user_id: str = "me"


class GmailClient:
    """Gmail + People API access for one user's access token."""

    def __init__(self, cfg: GmailClientConfig):
        self._cfg = cfg
        self._gmail = None
        self._people = None

    def connect(self) -> None:
        """Create authenticated Gmail and People service clients."""
        # Access token only, library refresh off: an expired token surfaces as
        # a 401 HttpError and is refreshed by TokenLifecycleManager.
        creds = Credentials(token=self._cfg.tokens.access_token)
        http = google_auth_httplib2.AuthorizedHttp(
            creds,
            http=httplib2.Http(),
            refresh_status_codes=(),
            max_refresh_attempts=0,
        )
        self._gmail = build("gmail", "v1", http=http, cache_discovery=False)
        self._people = build("people", "v1", http=http, cache_discovery=False)

    @property
    def service(self):
        if self._gmail is None:
            raise RuntimeError("GmailClient is not connected. Call connect() first.")
        return self._gmail

    @property
    def people(self):
        if self._people is None:
            raise RuntimeError("GmailClient is not connected. Call connect() first.")
        return self._people

    def list_connections(self, page_size: int = 500) -> List[Dict[str, Any]]:
        """List the user's contacts with names and email addresses."""
        resp = (
            self.people.people()
            .connections()
            .list(
                resourceName="people/me",
                personFields="names,emailAddresses",
                pageSize=page_size,
            )
            .execute()
        )
        return list(resp.get("connections", []) or [])

    def list_messages(self, query: Optional[str] = None, max_results: int = 10) -> List[str]:
        """
        List message IDs matching a Gmail search query.
        Example query: 'from:"john smith"'
        """
        params: Dict[str, Any] = {"userId": self._cfg.user_id, "maxResults": max_results}
        if query:
            params["q"] = query
        resp = self.service.users().messages().list(**params).execute()
        msgs = resp.get("messages", []) or []
        return [m["id"] for m in msgs if m.get("id")]

    def get_message(
        self,
        message_id: str,
        fmt: str = "full",
        metadata_headers: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """
        Fetch a message resource.
        fmt: 'full' | 'metadata' | 'minimal' | 'raw'
        """
        params: Dict[str, Any] = {"userId": self._cfg.user_id, "id": message_id, "format": fmt}
        if metadata_headers:
            params["metadataHeaders"] = list(metadata_headers)
        return self.service.users().messages().get(**params).execute()

    def send_message(self, msg: EmailMessage) -> Dict[str, Any]:
        """Send a composed message as the authenticated user."""
        raw = base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii")
        return (
            self.service.users()
            .messages()
            .send(userId=self._cfg.user_id, body={"raw": raw})
            .execute()
        )

    def get_profile(self) -> Dict[str, Any]:
        """Get the Gmail profile of the authenticated user."""
        return self.service.users().getProfile(userId=self._cfg.user_id).execute()


def connect_client(tokens: TokenPair) -> GmailClient:
    client = GmailClient(GmailClientConfig(tokens=tokens))
    client.connect()
    return client
