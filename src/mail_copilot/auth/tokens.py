from __future__ import annotations

import json
import os
from pathlib import Path
from threading import Lock
from typing import Dict, Optional, Protocol

from mail_copilot.models import TokenPair


class TokenStore(Protocol):
    def get(self, user_id: str) -> Optional[TokenPair]: ...
    def put(self, user_id: str, tokens: TokenPair) -> None: ...
    def delete(self, user_id: str) -> bool: ...


class JsonTokenStore:
    """
    Token pairs per user in a single JSON file.

    Writes replace the whole file atomically; the last writer wins when two
    requests refresh the same user at once.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = Lock()

    def _load(self) -> Dict[str, Dict[str, str]]:
        if not self._path.exists():
            return {}
        data = json.loads(self._path.read_text(encoding="utf-8"))
        # Keep load resilient to a hand-edited or legacy top-level shape.
        users = data.get("users", data) if isinstance(data, dict) else {}
        return {str(k): v for k, v in users.items() if isinstance(v, dict)}

    def _save(self, users: Dict[str, Dict[str, str]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps({"users": users}, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)

    def get(self, user_id: str) -> Optional[TokenPair]:
        with self._lock:
            entry = self._load().get(user_id)
        if not entry or not entry.get("access_token"):
            return None
        return TokenPair.from_dict(entry)

    def put(self, user_id: str, tokens: TokenPair) -> None:
        with self._lock:
            users = self._load()
            users[user_id] = tokens.to_dict()
            self._save(users)

    def delete(self, user_id: str) -> bool:
        with self._lock:
            users = self._load()
            if user_id not in users:
                return False
            del users[user_id]
            self._save(users)
            return True
