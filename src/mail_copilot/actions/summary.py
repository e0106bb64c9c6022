from __future__ import annotations

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, List, Optional

from mail_copilot.models import EmailSummary

SPOKEN_EMAIL_LIMIT = 3
ELLIPSIS = "…"


def _clean_text(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def sanitize_snippet(snippet: Optional[str], max_length: int = 160) -> str:
    """Collapse whitespace and cap at max_length characters (ellipsis included)."""
    if not snippet:
        return ""
    cleaned = _clean_text(snippet)
    if len(cleaned) <= max_length:
        return cleaned
    return f"{cleaned[: max_length - 1]}{ELLIPSIS}"


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_date_iso(
    internal_date: Any,
    header_date: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> str:
    """
    Message date as ISO-8601 UTC.
    Prefers Gmail's internalDate (epoch ms), then the Date header, then now.
    """
    if internal_date:
        try:
            millis = int(internal_date)
        except (TypeError, ValueError):
            millis = None
        if millis is not None:
            return _iso(datetime.fromtimestamp(millis / 1000, tz=timezone.utc))

    if header_date:
        try:
            parsed = parsedate_to_datetime(header_date)
        except (TypeError, ValueError):
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return _iso(parsed)

    return _iso(now or datetime.now(timezone.utc))


def _date_label(iso_date: str) -> str:
    try:
        received = datetime.fromisoformat(iso_date.replace("Z", "+00:00"))
    except ValueError:
        return "recently"
    return f"on {received:%b} {received.day}"


def build_speech_summary(emails: List[EmailSummary], *, sender: Optional[str] = None) -> str:
    """Short read-aloud version of a fetch result."""
    if not emails:
        if sender:
            return f"I could not find any recent emails from {sender}."
        return "I could not find any recent emails."

    if len(emails) == 1:
        intro = f"Here is the latest email from {sender}." if sender else "Here is your latest email."
    elif sender:
        intro = f"Here are the latest {len(emails)} emails from {sender}."
    else:
        intro = f"Here are your latest {len(emails)} emails."

    spoken = emails[:SPOKEN_EMAIL_LIMIT]
    details = []
    for index, email in enumerate(spoken, start=1):
        snippet = f" {email.snippet}" if email.snippet else ""
        details.append(
            f"{index}. From {email.sender}, subject {email.subject}, {_date_label(email.date)}.{snippet}"
        )

    tail = ""
    if len(emails) > len(spoken):
        tail = f" Showing the first {len(spoken)} of {len(emails)} emails."

    return f"{intro} {' '.join(details)}{tail}".strip()
