from __future__ import annotations

import logging
import secrets
import time
from threading import Lock
from typing import Any, Callable, Dict, MutableMapping, Optional, Tuple

import requests
from google_auth_oauthlib.flow import Flow

from mail_copilot.auth.tokens import TokenStore
from mail_copilot.config.settings import GOOGLE_REVOKE_URI, Settings
from mail_copilot.errors import AccountNotConnectedError, BadRequestError, InvalidOAuthStateError
from mail_copilot.models import TokenPair

logger = logging.getLogger(__name__)


class ExpiringStateStore:
    """
    Key-value store whose entries expire after a fixed TTL.

    The clock and the backing mapping are injectable so expiry can be tested
    without timers and the mapping can live outside the process.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        backing: Optional[MutableMapping[str, Tuple[float, Any]]] = None,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: MutableMapping[str, Tuple[float, Any]] = backing if backing is not None else {}
        self._lock = Lock()

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._purge_locked()
            self._entries[key] = (self._clock() + self._ttl, value)

    def get(self, key: str) -> Any:
        with self._lock:
            return self._get_locked(key)

    def pop(self, key: str) -> Any:
        with self._lock:
            value = self._get_locked(key)
            self._entries.pop(key, None)
            return value

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked()

    def _get_locked(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def _purge_locked(self) -> int:
        now = self._clock()
        expired = [k for k, (expires_at, _) in list(self._entries.items()) if now >= expires_at]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)


class GoogleOAuthFlow:
    """Connects and disconnects a user's Google account."""

    def __init__(
        self,
        settings: Settings,
        token_store: TokenStore,
        state_store: ExpiringStateStore,
        *,
        http_post: Callable[..., requests.Response] = requests.post,
    ) -> None:
        self._settings = settings
        self._tokens = token_store
        self._states = state_store
        self._http_post = http_post

    def _flow(self, **kwargs: Any) -> Flow:
        return Flow.from_client_config(
            self._settings.google_client_config(),
            scopes=self._settings.scopes,
            redirect_uri=self._settings.redirect_uri,
            **kwargs,
        )

    def authorization_url(self, user_id: str) -> str:
        state = secrets.token_hex(16)
        flow = self._flow(state=state)
        auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")
        # The PKCE verifier must reach the callback together with the user id.
        self._states.put(state, {"user_id": user_id, "code_verifier": flow.code_verifier})
        return auth_url

    def complete(self, state: str, code: str) -> str:
        """Exchange the callback code for tokens. Returns the connected user id."""
        if not state:
            raise InvalidOAuthStateError("State parameter is missing.")
        entry: Optional[Dict[str, Any]] = self._states.pop(state)
        if not entry:
            raise InvalidOAuthStateError()
        user_id = entry["user_id"]

        flow = self._flow(
            state=state,
            code_verifier=entry.get("code_verifier"),
            autogenerate_code_verifier=False,
        )
        try:
            flow.fetch_token(code=code)
        except Exception as exc:
            raise BadRequestError(f"Failed to exchange authorization code: {exc}") from exc

        creds = flow.credentials
        if not creds.token:
            raise BadRequestError("Failed to retrieve access token from Google.")

        previous = self._tokens.get(user_id)
        refresh_token = creds.refresh_token or (previous.refresh_token if previous else "")
        if creds.refresh_token:
            logger.info("Received a new refresh token for user %s", user_id)
        self._tokens.put(user_id, TokenPair(access_token=creds.token, refresh_token=refresh_token))
        logger.info("Saved Google tokens for user %s", user_id)
        return user_id

    def disconnect(self, user_id: str) -> Dict[str, Any]:
        tokens = self._tokens.get(user_id)
        if tokens is None:
            raise AccountNotConnectedError()

        revoked = False
        try:
            resp = self._http_post(
                GOOGLE_REVOKE_URI,
                data={"token": tokens.access_token},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=10,
            )
            revoked = resp.ok
            if not revoked:
                logger.warning(
                    "Failed to revoke Google token for user %s (status=%s)", user_id, resp.status_code
                )
        except requests.RequestException as exc:
            logger.warning("Error revoking Google token for user %s: %s", user_id, exc)

        self._tokens.delete(user_id)
        logger.info("Disconnected Google account for user %s", user_id)
        return {"user_id": user_id, "tokens_revoked": revoked, "credentials_removed": True}
