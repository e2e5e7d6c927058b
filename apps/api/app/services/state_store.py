from __future__ import annotations

import json
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class StateStore(Protocol):
    def get(self, user_key: str) -> dict[str, Any] | None: ...

    def set(self, user_key: str, data: dict[str, Any]) -> None: ...


def user_key_for(user_id: str) -> str:
    return f"user_{user_id.strip().lower()}"


class MemoryStateStore:
    """
    JSON-text key-value store for one process.

    Values are kept serialized so every ``get`` returns a fresh copy and a
    record that cannot be parsed behaves exactly like a missing one.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, user_key: str) -> dict[str, Any] | None:
        raw = self._data.get(user_key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.error("Stored user record is not valid JSON", extra={"user_key": user_key})
            return None
        if not isinstance(data, dict):
            logger.error("Stored user record is not an object", extra={"user_key": user_key})
            return None
        return data

    def set(self, user_key: str, data: dict[str, Any]) -> None:
        self._data[user_key] = json.dumps(data, separators=(",", ":"), default=str)

    def put_raw(self, user_key: str, raw: str) -> None:
        self._data[user_key] = raw
