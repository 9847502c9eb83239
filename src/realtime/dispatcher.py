"""
Event Dispatcher Module

Routes decoded control channel events to the transcript store and the tool
invoker. One call to dispatch() handles one message, in arrival order.

Routing:
- conversation.item.created: create the entry, then replace with the given text
- input transcription delta: create user entry if unseen, append
- input transcription completed: create if unseen, replace (placeholder when
  blank), then request a response
- response.audio_transcript.delta: create assistant entry if unseen, append
- response.done: schedule one tool invocation per function call output
- anything else: logged only

Failures are isolated per message: a malformed event is logged and the next
one is processed normally.
"""

import asyncio
from typing import Any, Callable, Dict, Set, Union

from src.logger import get_logger, summarize
from src.messages import msg

from .events import (
    AssistantTranscriptDeltaEvent,
    EventDecodeError,
    InboundEvent,
    InputTranscriptCompletedEvent,
    InputTranscriptDeltaEvent,
    ItemCreatedEvent,
    ResponseDoneEvent,
    ServerErrorEvent,
    UnrecognizedEvent,
    decode_event,
    response_create,
)
from .tools import Sender, ToolInvoker
from .transcript import Role, TranscriptStore, UpdateMode

logger = get_logger(__name__)


class EventDispatcher:
    """
    Applies inbound events to the conversation.

    Tool calls run as tasks so the dispatch loop keeps receiving events while
    a tool performs network I/O. Use drain_tool_calls() to wait for them.

    Usage:
        dispatcher = EventDispatcher(store, invoker, send, is_open)
        await dispatcher.dispatch(raw_message)
    """

    def __init__(
        self,
        transcript: TranscriptStore,
        invoker: ToolInvoker,
        send: Sender,
        is_open: Callable[[], bool],
    ):
        self._transcript = transcript
        self._invoker = invoker
        self._send = send
        self._is_open = is_open
        self._tool_tasks: Set[asyncio.Task] = set()
        self._event_count = 0
        self._ignored_count = 0

    async def dispatch(self, message: Union[str, bytes, Dict[str, Any]]) -> None:
        """Decode and route one control channel message. Never raises."""
        self._event_count += 1
        try:
            event = decode_event(message)
        except EventDecodeError as e:
            self._ignored_count += 1
            logger.warning(f"Dropping malformed event: {e} ({summarize(message, 120)})")
            return

        logger.debug(f"<= {event.type or '?'} {summarize(event.raw, 200)}")

        try:
            self._route(event)
        except Exception:
            self._ignored_count += 1
            logger.exception(f"Error handling {event.type} event")

    def _route(self, event: InboundEvent) -> None:
        if isinstance(event, ItemCreatedEvent):
            self._on_item_created(event)
        elif isinstance(event, InputTranscriptDeltaEvent):
            self._append(event.item_id, Role.USER, event.delta)
        elif isinstance(event, InputTranscriptCompletedEvent):
            self._on_input_transcript_completed(event)
        elif isinstance(event, AssistantTranscriptDeltaEvent):
            self._append(event.item_id, Role.ASSISTANT, event.delta)
        elif isinstance(event, ResponseDoneEvent):
            self._on_response_done(event)
        elif isinstance(event, ServerErrorEvent):
            logger.warning(f"Realtime service error [{event.code or 'unknown'}]: {event.message}")
        elif isinstance(event, UnrecognizedEvent):
            self._ignored_count += 1
            logger.debug(f"Unhandled event type: {event.type or '<missing>'}")

    # ========================================================================
    # Handlers
    # ========================================================================

    def _on_item_created(self, event: ItemCreatedEvent) -> None:
        if not event.item_id:
            logger.debug("Ignoring created item without id")
            return
        if not event.text:
            return
        if event.role not in (Role.USER.value, Role.ASSISTANT.value):
            logger.debug(f"Ignoring item {event.item_id} with role '{event.role}'")
            return
        self._transcript.create(event.item_id, Role(event.role), event.text)
        self._transcript.update(event.item_id, event.text, UpdateMode.REPLACE)

    def _append(self, item_id: str, role: Role, delta: str) -> None:
        if not item_id:
            logger.debug(f"Ignoring {role.value} transcript delta without item_id")
            return
        if not self._transcript.exists(item_id):
            self._transcript.create(item_id, role, "")
        self._transcript.update(item_id, delta, UpdateMode.APPEND)

    def _on_input_transcript_completed(self, event: InputTranscriptCompletedEvent) -> None:
        if not event.item_id:
            logger.debug("Ignoring completed transcript without item_id")
            return

        final_text = event.transcript
        if not final_text.strip():
            final_text = msg("transcript.inaudible")

        if not self._transcript.exists(event.item_id):
            self._transcript.create(event.item_id, Role.USER, "")
        self._transcript.update(event.item_id, final_text, UpdateMode.REPLACE)

        if self._is_open():
            self._send(response_create())

    def _on_response_done(self, event: ResponseDoneEvent) -> None:
        for call in event.function_calls:
            task = asyncio.create_task(
                self._invoker.invoke(call.name, call.arguments, call.call_id),
                name=f"tool-{call.name}-{call.call_id}",
            )
            self._tool_tasks.add(task)
            task.add_done_callback(self._tool_tasks.discard)

    # ========================================================================
    # Tool task management
    # ========================================================================

    @property
    def pending_tool_calls(self) -> int:
        return len(self._tool_tasks)

    async def drain_tool_calls(self, timeout: float = 30.0) -> None:
        """Wait for scheduled tool invocations to finish."""
        if not self._tool_tasks:
            return
        done, pending = await asyncio.wait(set(self._tool_tasks), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} tool call(s) still running after {timeout}s")

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "events": self._event_count,
            "ignored": self._ignored_count,
            "pending_tool_calls": self.pending_tool_calls,
            "tools": self._invoker.stats,
        }
