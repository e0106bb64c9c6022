from __future__ import annotations

SYSTEM_PROMPT = (
    "You turn voice commands for an email assistant into JSON. "
    "Return the intent and the entities you are confident about. "
    "Intents: send_email (recipient, body, subject), fetch_email (sender, count), "
    "create_event (title, date, time). "
    "The recipient may be a name, a description such as 'my boss', or an email address. "
    "Transcripts render '@' as 'at' and '.' as 'dot'; turn 'manan at gmail dot com' into "
    "'manan@gmail.com' and join letters that were spelled out one by one. "
    "If no subject is given for send_email, write a short one from the body. "
    "Use null for every entity that does not apply or was not mentioned."
)

_NULLABLE_STRING = {"type": ["string", "null"]}

COMMAND_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "intent": {
            "type": "string",
            "enum": ["send_email", "fetch_email", "create_event", "unknown"],
        },
        "entities": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "recipient": _NULLABLE_STRING,
                "body": _NULLABLE_STRING,
                "subject": _NULLABLE_STRING,
                "sender": _NULLABLE_STRING,
                "count": {"type": ["integer", "null"]},
                "title": _NULLABLE_STRING,
                "date": _NULLABLE_STRING,
                "time": _NULLABLE_STRING,
            },
            "required": ["recipient", "body", "subject", "sender", "count", "title", "date", "time"],
        },
    },
    "required": ["intent", "entities"],
}


def build_input(command_text: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": f"User command: {command_text}"},
    ]
