"""
Session and turn state for one avatar connection.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TurnState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    COMMITTED = "committed"


class TransportState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass
class Turn:
    sequence: int
    is_voice_turn: bool
    utterance_text: str = ""
    state: TurnState = TurnState.CAPTURING
    # set once retrieval has been dispatched for this turn
    processed: bool = False


@dataclass
class Session:
    """
    Owns at most one turn. The latest turn stays attached after it is
    processed so a late duplicate commit can be recognised; the next
    utterance start replaces it.
    """

    voice_mode: bool
    transport_state: TransportState = TransportState.CONNECTING
    active_turn: Turn | None = None
    last_committed_utterance: str = ""
    turn_sequence: int = 0

    @property
    def closed(self) -> bool:
        return self.transport_state is TransportState.DISCONNECTED

    def open_turn(self, is_voice_turn: bool | None = None) -> Turn:
        self.turn_sequence += 1
        voice = self.voice_mode if is_voice_turn is None else is_voice_turn
        self.active_turn = Turn(sequence=self.turn_sequence, is_voice_turn=voice)
        return self.active_turn

    def is_current(self, sequence: int) -> bool:
        return not self.closed and sequence == self.turn_sequence

    def close(self) -> None:
        self.transport_state = TransportState.DISCONNECTED
        self.active_turn = None


__all__ = ["TurnState", "TransportState", "Turn", "Session"]
