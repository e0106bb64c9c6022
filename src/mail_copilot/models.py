from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Source(str, Enum):
    DIRECT_EMAIL = "direct_email"
    GOOGLE_CONTACTS = "google_contacts"
    EMAIL_HISTORY = "email_history"
    # Only produced by the lenient pipeline.
    SYNTHESIZED_DEFAULT = "synthesized_default"


class Intent(str, Enum):
    SEND_EMAIL = "send_email"
    FETCH_EMAIL = "fetch_email"
    CREATE_EVENT = "create_event"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    # Empty when the user never granted offline access.
    refresh_token: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"access_token": self.access_token, "refresh_token": self.refresh_token}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TokenPair":
        return cls(
            access_token=str(data.get("access_token") or ""),
            refresh_token=str(data.get("refresh_token") or ""),
        )


@dataclass(frozen=True)
class RecipientResolution:
    email: str
    confidence: Confidence
    source: Source

    def to_dict(self) -> Dict[str, str]:
        return {
            "email": self.email,
            "confidence": self.confidence.value,
            "source": self.source.value,
        }


@dataclass(frozen=True)
class Contact:
    display_names: List[str] = field(default_factory=list)
    given_names: List[str] = field(default_factory=list)
    family_names: List[str] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)

    def all_names(self) -> List[str]:
        return [*self.display_names, *self.given_names, *self.family_names]


@dataclass(frozen=True)
class EmailSummary:
    id: str
    subject: str
    sender: str
    snippet: str
    # ISO-8601, UTC
    date: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "subject": self.subject,
            "from": self.sender,
            "snippet": self.snippet,
            "date": self.date,
        }


@dataclass(frozen=True)
class SendEmailEntities:
    recipient: str
    body: str
    subject: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SendEmailEntities":
        subject = data.get("subject")
        return cls(
            recipient=str(data.get("recipient") or ""),
            body=str(data.get("body") or ""),
            subject=str(subject) if subject else None,
        )


@dataclass(frozen=True)
class FetchEmailEntities:
    sender: Optional[str] = None
    # int, float or str, exactly as the NLU step produced it.
    count: Any = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "FetchEmailEntities":
        data = data or {}
        sender = data.get("sender")
        return cls(
            sender=sender if isinstance(sender, str) else None,
            count=data.get("count"),
        )


@dataclass(frozen=True)
class Command:
    intent: str
    entities: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"intent": self.intent, "entities": dict(self.entities)}
