from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from mail_copilot.actions.handlers import (
    CommandHandler,
    CreateEventHandler,
    FetchEmailHandler,
    SendEmailHandler,
)
from mail_copilot.config.settings import Settings
from mail_copilot.contacts.resolver import RecipientResolver
from mail_copilot.errors import MailCopilotError, ProviderError, is_unauthorized
from mail_copilot.gmail.client import GmailClient
from mail_copilot.models import Command, Intent

logger = logging.getLogger(__name__)


@dataclass
class CommandExecutor:
    handlers: Dict[Intent, CommandHandler]

    def execute(self, client: GmailClient, command: Command, *, user_id: str) -> Dict[str, Any]:
        try:
            intent = Intent(command.intent)
        except (TypeError, ValueError):
            intent = None

        handler = self.handlers.get(intent) if intent else None
        if handler is None:
            logger.info("Unknown intent %r for user %s", command.intent, user_id)
            return {"success": False, "message": f"Unknown intent: {command.intent}"}

        logger.info("Executing %s for user %s", intent.value, user_id)
        try:
            return handler.handle(client, command.entities or {}, user_id=user_id)
        except MailCopilotError:
            raise
        except Exception as exc:
            # 401s stay raw so TokenLifecycleManager can refresh and retry.
            if is_unauthorized(exc):
                raise
            logger.error("Command %s failed for user %s: %s", intent.value, user_id, exc)
            raise ProviderError(f"Mail provider request failed: {exc}") from exc


def default_executor(settings: Optional[Settings] = None) -> CommandExecutor:
    settings = settings or Settings()
    return CommandExecutor(
        handlers={
            Intent.SEND_EMAIL: SendEmailHandler(
                resolver_factory=lambda client: RecipientResolver(
                    client, contacts_page_size=settings.contacts_page_size
                )
            ),
            Intent.FETCH_EMAIL: FetchEmailHandler(settings.email),
            Intent.CREATE_EVENT: CreateEventHandler(),
        },
    )
