from __future__ import annotations

import json
import logging
from typing import Any, Dict

from openai import OpenAI, OpenAIError

from mail_copilot.errors import BadRequestError, InterpretationError
from mail_copilot.models import Command
from mail_copilot.nlu.prompts import COMMAND_SCHEMA, build_input

logger = logging.getLogger(__name__)


def parse_command(output_text: str) -> Command:
    try:
        payload = json.loads(output_text)
    except json.JSONDecodeError as exc:
        raise InterpretationError("Failed to parse NLU result.") from exc
    if not isinstance(payload, dict) or not payload.get("intent"):
        raise InterpretationError("NLU result is missing an intent.")

    raw_entities = payload.get("entities") or {}
    entities: Dict[str, Any] = {}
    if isinstance(raw_entities, dict):
        # Absent entities are sent back as null; drop them.
        entities = {k: v for k, v in raw_entities.items() if v is not None}
    return Command(intent=str(payload["intent"]), entities=entities)


class CommandInterpreter:
    """Classifies a command transcript into an intent plus entities."""

    def __init__(self, client: OpenAI, *, model: str = "gpt-4.1-mini"):
        self._client = client
        self._model = model

    def interpret(self, command_text: str) -> Command:
        text = (command_text or "").strip()
        if not text:
            raise BadRequestError("Command text is required.")

        try:
            resp = self._client.responses.create(
                model=self._model,
                input=build_input(text),
                text={
                    "format": {
                        "type": "json_schema",
                        "name": "command",
                        "schema": COMMAND_SCHEMA,
                        "strict": True,
                    }
                },
            )
        except OpenAIError as exc:
            raise InterpretationError(f"NLU request failed: {exc}") from exc

        output_text = getattr(resp, "output_text", None)
        if not output_text:
            raise InterpretationError("NLU response was empty.")

        command = parse_command(output_text)
        logger.info("NLU result: intent=%s entities=%s", command.intent, sorted(command.entities))
        return command
