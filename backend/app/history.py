from __future__ import annotations

from dataclasses import asdict, dataclass, field
from threading import Lock
from time import time
from typing import Any, Dict, List, Optional

from mail_copilot.models import Command


@dataclass
class CommandRecord:
    intent: str
    entities: Dict[str, Any]
    result: Dict[str, Any]
    transcript: Optional[str] = None
    created_at: float = field(default_factory=time)


class CommandHistoryStore:
    """Rolling window of executed commands per user, newest first."""

    def __init__(self, limit: int = 50) -> None:
        self._lock = Lock()
        self._limit = limit
        self._records: Dict[str, List[CommandRecord]] = {}

    def record(
        self,
        user_id: str,
        *,
        command: Command,
        result: Dict[str, Any],
        transcript: Optional[str] = None,
    ) -> None:
        entry = CommandRecord(
            intent=command.intent,
            entities=dict(command.entities),
            result=dict(result),
            transcript=transcript,
        )
        # Lock keeps concurrent requests from dropping each other's entries.
        with self._lock:
            current = self._records.get(user_id, [])
            self._records[user_id] = ([entry] + current)[: self._limit]

    def snapshot(self, user_id: str) -> List[Dict[str, Any]]:
        # Return copies to avoid mutation by callers.
        with self._lock:
            return [asdict(r) for r in self._records.get(user_id, [])]

    def clear(self, user_id: str) -> None:
        with self._lock:
            self._records.pop(user_id, None)
