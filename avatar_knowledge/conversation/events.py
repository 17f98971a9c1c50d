"""
Avatar session events and message-text extraction from their payloads.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Sequence, Tuple

KeyPath = Tuple[str, ...]


class SessionEvent(str, Enum):
    USER_START = "user_start"
    USER_TALKING_MESSAGE = "user_talking_message"
    USER_STOP = "user_stop"
    USER_END_MESSAGE = "user_end_message"
    STREAM_READY = "stream_ready"
    STREAM_DISCONNECTED = "stream_disconnected"

    @classmethod
    def parse(cls, name: "str | SessionEvent") -> "SessionEvent | None":
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).lower())
        except ValueError:
            return None


# Tried in order; the first non-blank string wins.
INTERIM_MESSAGE_KEYS: Sequence[KeyPath] = (
    ("detail", "message"),
    ("detail", "text"),
)
COMMIT_MESSAGE_KEYS: Sequence[KeyPath] = (
    ("detail", "message"),
    ("detail", "text"),
    ("message",),
)


def _lookup(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def extract_message(payload: Any, key_paths: Sequence[KeyPath] = COMMIT_MESSAGE_KEYS) -> str:
    """Return the first non-blank string found along `key_paths`, or ""."""
    if payload is None:
        return ""
    for path in key_paths:
        value = payload
        for key in path:
            value = _lookup(value, key)
            if value is None:
                break
        if isinstance(value, str) and value.strip():
            return value
    return ""


__all__ = ["SessionEvent", "INTERIM_MESSAGE_KEYS", "COMMIT_MESSAGE_KEYS", "extract_message"]
