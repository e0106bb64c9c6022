from __future__ import annotations

import logging
from typing import Callable, TypeVar

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from mail_copilot.auth.tokens import TokenStore
from mail_copilot.config.settings import GOOGLE_TOKEN_URI, Settings
from mail_copilot.errors import (
    AccountNotConnectedError,
    AuthorizationExpiredError,
    TokenRefreshError,
    is_unauthorized,
)
from mail_copilot.gmail.client import GmailClient, connect_client
from mail_copilot.models import TokenPair

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GoogleTokenRefresher:
    """Exchanges a refresh token for a new access token at Google's token endpoint."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def __call__(self, refresh_token: str) -> TokenPair:
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self._settings.google_client_id,
            client_secret=self._settings.google_client_secret,
        )
        try:
            creds.refresh(Request())
        except GoogleAuthError as exc:
            raise TokenRefreshError() from exc

        if not creds.token:
            raise TokenRefreshError()
        # Google usually omits the refresh token on refresh; keep the old one.
        return TokenPair(access_token=creds.token, refresh_token=creds.refresh_token or refresh_token)


class TokenLifecycleManager:
    """
    Hands out authenticated clients and recovers from one expired access token.

    ``with_auth`` runs an operation against the user's Gmail client; on a 401
    it refreshes once, persists the new pair and retries once. A second
    failure propagates as-is.
    """

    def __init__(
        self,
        token_store: TokenStore,
        *,
        refresher: Callable[[str], TokenPair],
        client_factory: Callable[[TokenPair], GmailClient] = connect_client,
    ):
        self._store = token_store
        self._refresher = refresher
        self._client_factory = client_factory

    def tokens_for(self, user_id: str) -> TokenPair:
        tokens = self._store.get(user_id)
        if tokens is None:
            raise AccountNotConnectedError()
        return tokens

    def refresh(self, user_id: str, tokens: TokenPair) -> TokenPair:
        try:
            refreshed = self._refresher(tokens.refresh_token)
        except TokenRefreshError:
            raise
        except Exception as exc:
            raise TokenRefreshError() from exc

        if not refreshed.refresh_token:
            refreshed = TokenPair(refreshed.access_token, tokens.refresh_token)
        self._store.put(user_id, refreshed)
        logger.info("Refreshed Google access token for user %s", user_id)
        return refreshed

    def with_auth(self, user_id: str, operation: Callable[[GmailClient], T]) -> T:
        tokens = self.tokens_for(user_id)
        try:
            return operation(self._client_factory(tokens))
        except Exception as exc:
            if not is_unauthorized(exc):
                raise
            if not tokens.refresh_token:
                logger.warning("Access expired for user %s and no refresh token is stored", user_id)
                raise AuthorizationExpiredError() from exc
            logger.info("Access token rejected for user %s, refreshing once", user_id)

        refreshed = self.refresh(user_id, tokens)
        try:
            return operation(self._client_factory(refreshed))
        except Exception as exc:
            logger.warning("Retry after token refresh failed for user %s: %s", user_id, exc)
            raise
