"""
Turn orchestration: decides when to search the knowledge base during a live
avatar session and how the result is fed back into the conversation.

Turn flow: IDLE -> CAPTURING -> COMMITTED -> IDLE

- utterance start opens a fresh turn and clears the buffered text
- interim transcripts overwrite the buffer (each one carries the full hypothesis);
  once a turn is committed they are ignored until the next utterance start
- utterance stop and end-of-message both commit; only the first one that
  finds text dispatches a search
- voice turns search in a background task and speak the context as an
  auxiliary message; text sends search first and append the context
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Set

from avatar_knowledge.conversation.channel import AvatarChannel, TaskMode, TaskType
from avatar_knowledge.conversation.events import (
    COMMIT_MESSAGE_KEYS,
    INTERIM_MESSAGE_KEYS,
    SessionEvent,
    extract_message,
)
from avatar_knowledge.conversation.session import Session, TransportState, Turn, TurnState
from avatar_knowledge.retrieval.service import RetrievalFailure, RetrievalResult, Retriever

logger = logging.getLogger(__name__)

VOICE_CONTEXT_TEMPLATE = "\n\n【参考情報】: {context}"
TEXT_CONTEXT_TEMPLATE = "{message}\n\n以下の情報を参考にしてください:\n{context}"


class TurnOrchestrator:
    def __init__(
        self,
        retriever: Retriever,
        channel: AvatarChannel,
        voice_mode: bool,
        logger_: logging.Logger | None = None,
    ) -> None:
        self.retriever = retriever
        self.channel = channel
        self.session = Session(voice_mode=voice_mode)
        self.logger = logger_ or logging.getLogger(__name__)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> TurnState:
        turn = self.session.active_turn
        return turn.state if turn else TurnState.IDLE

    @property
    def buffered_text(self) -> str:
        turn = self.session.active_turn
        return turn.utterance_text if turn else ""

    def bind(self, on: Callable[[str, Callable[[Any], Any]], Any]) -> None:
        """Register handlers with a transport's `on(event_name, callback)`."""
        for event in SessionEvent:
            on(event.value, lambda payload=None, _event=event: self.handle_event(_event, payload))

    # --- Event intake ---
    async def handle_event(self, event: "str | SessionEvent", payload: Any = None) -> None:
        kind = SessionEvent.parse(event)
        if kind is None:
            self.logger.debug("Ignoring unknown session event", extra={"event": str(event)})
            return
        if self.session.closed and kind is not SessionEvent.STREAM_READY:
            return

        if kind is SessionEvent.STREAM_READY:
            self.session.transport_state = TransportState.CONNECTED
            self.logger.info("Stream ready", extra={"voice_mode": self.session.voice_mode})
        elif kind is SessionEvent.STREAM_DISCONNECTED:
            self.close()
        elif kind is SessionEvent.USER_START:
            self._start_turn()
        elif kind is SessionEvent.USER_TALKING_MESSAGE:
            self._capture(payload)
        else:
            self._commit(kind, payload)

    def _start_turn(self) -> Turn:
        previous = self.session.active_turn
        if previous is not None and previous.state is TurnState.CAPTURING:
            self.logger.info("Abandoning uncommitted turn", extra={"turn": previous.sequence})
        turn = self.session.open_turn()
        self.logger.info("User started talking", extra={"turn": turn.sequence})
        return turn

    def _capture(self, payload: Any) -> None:
        message = extract_message(payload, INTERIM_MESSAGE_KEYS)
        if not message:
            return
        turn = self.session.active_turn
        if turn is None:
            turn = self.session.open_turn()
        elif turn.processed or turn.state is TurnState.COMMITTED:
            # only utterance start opens the next turn
            self.logger.debug("Ignoring transcript for committed turn", extra={"turn": turn.sequence})
            return
        turn.state = TurnState.CAPTURING
        turn.utterance_text = message

    def _commit(self, trigger: SessionEvent, payload: Any) -> None:
        turn = self.session.active_turn
        message = extract_message(payload, COMMIT_MESSAGE_KEYS)

        if turn is not None and turn.processed:
            self.logger.info("Turn already processed", extra={"turn": turn.sequence, "trigger": trigger.value})
            return
        if turn is None:
            if not message:
                return
            turn = self.session.open_turn()

        text = message or turn.utterance_text
        turn.utterance_text = text
        turn.state = TurnState.COMMITTED

        if not text:
            # Leave the turn unprocessed so a later commit carrying text still counts.
            turn.state = TurnState.IDLE
            return

        turn.processed = True
        self.session.last_committed_utterance = text
        if not self.session.voice_mode:
            turn.state = TurnState.IDLE
            return

        self.logger.info("Processing user message", extra={"turn": turn.sequence, "trigger": trigger.value})
        task = asyncio.create_task(self._augment_voice_turn(turn.sequence, text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # --- Voice augmentation ---
    async def _augment_voice_turn(self, sequence: int, text: str) -> None:
        result = await self._safe_retrieve(text)

        if not self.session.is_current(sequence):
            self.logger.info(
                "Dropping stale knowledge result",
                extra={"turn": sequence, "current": self.session.turn_sequence},
            )
            return

        turn = self.session.active_turn
        try:
            if result.has_context:
                await self.channel.speak(VOICE_CONTEXT_TEMPLATE.format(context=result.context))
                self.logger.info("Knowledge sent to avatar", extra={"turn": sequence, "context_len": len(result.context)})
            else:
                self.logger.info("No knowledge found", extra={"turn": sequence, "failure": result.failure})
        except Exception:
            self.logger.exception("Error sending knowledge", extra={"turn": sequence})
        finally:
            if turn is not None and self.session.is_current(sequence):
                turn.state = TurnState.IDLE

    async def _safe_retrieve(self, text: str) -> RetrievalResult:
        try:
            return await self.retriever.retrieve(text)
        except Exception as exc:
            self.logger.exception("Knowledge search raised")
            return RetrievalResult.failed(RetrievalFailure.INTERNAL_ERROR, str(exc))

    # --- Text chat ---
    async def send_text(
        self,
        message: str,
        task_type: TaskType = TaskType.TALK,
        task_mode: TaskMode = TaskMode.ASYNC,
    ) -> str:
        """
        Send a typed message, appending knowledge context for TALK tasks.

        Returns the text that was actually sent ("" when nothing was sent).
        """
        if not message or not message.strip():
            return ""

        turn = self.session.open_turn(is_voice_turn=False)
        turn.utterance_text = message
        turn.state = TurnState.COMMITTED
        turn.processed = True
        self.session.last_committed_utterance = message

        final_message = message
        if task_type is TaskType.TALK:
            result = await self._safe_retrieve(message)
            if result.has_context:
                final_message = TEXT_CONTEXT_TEMPLATE.format(message=message, context=result.context)
                self.logger.info("Enhanced message with knowledge", extra={"turn": turn.sequence})

        sync = task_mode is TaskMode.SYNC
        try:
            await self._dispatch_text(final_message, task_type, sync)
        except Exception:
            if final_message == message:
                raise
            self.logger.exception("Error sending enhanced message, falling back to original")
            final_message = message
            await self._dispatch_text(final_message, task_type, sync)
        finally:
            turn.state = TurnState.IDLE
        return final_message

    async def _dispatch_text(self, text: str, task_type: TaskType, sync: bool) -> None:
        if task_type is TaskType.TALK:
            await self.channel.send_message(text, sync=sync)
        else:
            await self.channel.repeat_message(text, sync=sync)

    # --- Lifecycle ---
    async def drain(self) -> None:
        """Wait for in-flight background searches."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        # In-flight searches finish on their own; their results are dropped.
        self.session.close()
        self.logger.info("Session closed", extra={"pending": len(self._tasks)})


__all__ = ["TurnOrchestrator", "VOICE_CONTEXT_TEMPLATE", "TEXT_CONTEXT_TEMPLATE"]
