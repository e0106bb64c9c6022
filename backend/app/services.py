from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from openai import OpenAI

from backend.app.history import CommandHistoryStore
from mail_copilot.actions.executor import CommandExecutor, default_executor
from mail_copilot.auth.oauth import ExpiringStateStore, GoogleOAuthFlow
from mail_copilot.auth.session import GoogleTokenRefresher, TokenLifecycleManager
from mail_copilot.auth.tokens import JsonTokenStore, TokenStore
from mail_copilot.config.settings import Settings, load_settings
from mail_copilot.errors import BadRequestError, UnauthenticatedError
from mail_copilot.nlu.interpreter import CommandInterpreter
from mail_copilot.nlu.speech import SpeechTranscriber


@dataclass
class Services:
    settings: Settings
    token_store: TokenStore
    auth: TokenLifecycleManager
    oauth: GoogleOAuthFlow
    executor: CommandExecutor
    history: CommandHistoryStore
    interpreter: Optional[CommandInterpreter] = None
    transcriber: Optional[SpeechTranscriber] = None

    def require_interpreter(self) -> CommandInterpreter:
        if self.interpreter is None:
            raise BadRequestError("OpenAI API key is not configured.")
        return self.interpreter

    def require_transcriber(self) -> SpeechTranscriber:
        if self.transcriber is None:
            raise BadRequestError("OpenAI API key is not configured.")
        return self.transcriber


def build_services(settings: Settings) -> Services:
    token_store = JsonTokenStore(settings.token_store_path)
    openai_client = OpenAI(api_key=settings.openai_api_key) if settings.openai_api_key else None
    return Services(
        settings=settings,
        token_store=token_store,
        auth=TokenLifecycleManager(token_store, refresher=GoogleTokenRefresher(settings)),
        oauth=GoogleOAuthFlow(
            settings,
            token_store,
            ExpiringStateStore(settings.oauth_state_ttl_seconds),
        ),
        executor=default_executor(settings),
        history=CommandHistoryStore(),
        interpreter=(
            CommandInterpreter(openai_client, model=settings.nlu_model) if openai_client else None
        ),
        transcriber=(
            SpeechTranscriber(openai_client, model=settings.stt_model, language=settings.language)
            if openai_client
            else None
        ),
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services(load_settings())


def current_user_id(request: Request, services: Services = Depends(get_services)) -> str:
    """User id verified upstream by the identity provider and forwarded as a header."""
    user_id = (request.headers.get(services.settings.identity_header) or "").strip()
    if not user_id:
        raise UnauthenticatedError()
    return user_id
