from __future__ import annotations

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from openai import OpenAI  # noqa: E402

from mail_copilot.actions.executor import default_executor  # noqa: E402
from mail_copilot.auth.session import GoogleTokenRefresher, TokenLifecycleManager  # noqa: E402
from mail_copilot.auth.tokens import JsonTokenStore  # noqa: E402
from mail_copilot.config.settings import Settings, load_settings  # noqa: E402
from mail_copilot.errors import BadRequestError, MailCopilotError  # noqa: E402
from mail_copilot.models import Command  # noqa: E402
from mail_copilot.nlu.interpreter import CommandInterpreter  # noqa: E402


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run one assistant command for a connected user. "
        "Needs the mail-copilot package installed (pip install -e .)."
    )
    parser.add_argument("--user", required=True, help="User id the tokens are stored under.")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--text", help="Natural-language command, classified by the NLU model.")
    group.add_argument("--intent", help="Intent to run directly, e.g. fetch_email.")
    parser.add_argument(
        "--entities",
        default="{}",
        help='Entities as JSON when --intent is used, e.g. \'{"sender": "sarah", "count": 3}\'.',
    )
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def interpret(settings: Settings, text: str) -> Command:
    if not settings.openai_api_key:
        raise BadRequestError("OpenAI API key is not configured.")
    client = OpenAI(api_key=settings.openai_api_key)
    return CommandInterpreter(client, model=settings.nlu_model).interpret(text)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    )

    settings = load_settings()
    token_store = JsonTokenStore(settings.token_store_path)
    auth = TokenLifecycleManager(token_store, refresher=GoogleTokenRefresher(settings))
    executor = default_executor(settings)

    try:
        if args.text:
            command = interpret(settings, args.text)
        else:
            command = Command(intent=args.intent, entities=json.loads(args.entities))

        result = auth.with_auth(
            args.user,
            lambda client: executor.execute(client, command, user_id=args.user),
        )
    except MailCopilotError as exc:
        print(f"[ERROR] {exc.kind.value}: {exc.message}", file=sys.stderr)
        return 1

    print(json.dumps({"nlu": command.to_dict(), "result": result}, indent=2, ensure_ascii=False))
    return 0 if result.get("success") else 2


if __name__ == "__main__":
    sys.exit(main())
