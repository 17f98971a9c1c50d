"""
Outbound channel into the live avatar session.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol


class TaskType(str, Enum):
    TALK = "talk"
    REPEAT = "repeat"


class TaskMode(str, Enum):
    SYNC = "sync"
    ASYNC = "async"


class AvatarChannel(Protocol):
    async def speak(self, text: str) -> None:
        ...

    async def send_message(self, text: str, sync: bool = False) -> None:
        ...

    async def repeat_message(self, text: str, sync: bool = False) -> None:
        ...


__all__ = ["TaskType", "TaskMode", "AvatarChannel"]
