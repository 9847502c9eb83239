"""
Control Channel Event Module

Typed views of the JSON messages exchanged over the `oai-events` data
channel.

Inbound messages are decoded into a closed set of event variants, one per
server event type the client acts on. Anything else becomes an
UnrecognizedEvent so new server event types never break decoding.

Outbound messages are built by the small helper functions at the bottom.
"""

import json
import time
from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from src.logger import get_logger

logger = get_logger(__name__)


# Inbound event type discriminators
ITEM_CREATED = "conversation.item.created"
INPUT_TRANSCRIPT_DELTA = "conversation.item.input_audio_transcription.delta"
INPUT_TRANSCRIPT_COMPLETED = "conversation.item.input_audio_transcription.completed"
ASSISTANT_TRANSCRIPT_DELTA = "response.audio_transcript.delta"
RESPONSE_DONE = "response.done"
SERVER_ERROR = "error"

# Outbound event type discriminators
SESSION_UPDATE = "session.update"
ITEM_CREATE = "conversation.item.create"
RESPONSE_CREATE = "response.create"


class EventDecodeError(ValueError):
    """Raised when a control channel message is not a JSON object with a type."""


@dataclass
class ServerEvent(ABC):
    """Base class for decoded inbound events."""
    type: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)
    received_at: float = field(default_factory=time.time)


@dataclass
class ItemCreatedEvent(ServerEvent):
    """A conversation item was added (typed text or a transcript carried inline)."""
    item_id: str = ""
    role: str = ""
    text: str = ""


@dataclass
class InputTranscriptDeltaEvent(ServerEvent):
    """Partial transcription of user audio."""
    item_id: str = ""
    delta: str = ""


@dataclass
class InputTranscriptCompletedEvent(ServerEvent):
    """Final transcription of user audio."""
    item_id: str = ""
    transcript: str = ""


@dataclass
class AssistantTranscriptDeltaEvent(ServerEvent):
    """Partial transcript of the assistant's spoken response."""
    item_id: str = ""
    delta: str = ""


@dataclass
class FunctionCall:
    """A tool call requested by the remote agent."""
    name: str
    arguments: str
    call_id: str


@dataclass
class ResponseDoneEvent(ServerEvent):
    """Terminal event of a response, carrying its output items."""
    response_id: str = ""
    status: str = ""
    function_calls: List[FunctionCall] = field(default_factory=list)


@dataclass
class ServerErrorEvent(ServerEvent):
    """Error reported by the realtime service."""
    code: str = ""
    message: str = ""


@dataclass
class UnrecognizedEvent(ServerEvent):
    """Any event type the client does not act on."""


InboundEvent = Union[
    ItemCreatedEvent,
    InputTranscriptDeltaEvent,
    InputTranscriptCompletedEvent,
    AssistantTranscriptDeltaEvent,
    ResponseDoneEvent,
    ServerErrorEvent,
    UnrecognizedEvent,
]


# ============================================================================
# Decoding
# ============================================================================

def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _decode_item_created(payload: Dict[str, Any]) -> ItemCreatedEvent:
    item = payload.get("item") or {}
    text = ""
    content = item.get("content") if isinstance(item, dict) else None
    if isinstance(content, list) and content and isinstance(content[0], dict):
        first = content[0]
        text = _text(first.get("text")) or _text(first.get("transcript"))
    return ItemCreatedEvent(
        type=ITEM_CREATED,
        raw=payload,
        item_id=_text(item.get("id")) if isinstance(item, dict) else "",
        role=_text(item.get("role")) if isinstance(item, dict) else "",
        text=text,
    )


def _decode_response_done(payload: Dict[str, Any]) -> ResponseDoneEvent:
    response = payload.get("response") or {}
    calls: List[FunctionCall] = []
    for output in response.get("output") or []:
        if not isinstance(output, dict) or output.get("type") != "function_call":
            continue
        name = _text(output.get("name"))
        arguments = _text(output.get("arguments"))
        if not name or not arguments:
            continue
        calls.append(FunctionCall(name=name, arguments=arguments, call_id=_text(output.get("call_id"))))
    return ResponseDoneEvent(
        type=RESPONSE_DONE,
        raw=payload,
        response_id=_text(response.get("id")),
        status=_text(response.get("status")),
        function_calls=calls,
    )


def _decode_error(payload: Dict[str, Any]) -> ServerErrorEvent:
    error = payload.get("error") or {}
    return ServerErrorEvent(
        type=SERVER_ERROR,
        raw=payload,
        code=_text(error.get("code")),
        message=_text(error.get("message")),
    )


def decode_event(message: Union[str, bytes, Dict[str, Any]]) -> InboundEvent:
    """
    Decode one control channel message.

    Args:
        message: Raw JSON text from the data channel, or an already parsed dict

    Returns:
        The matching event variant, or UnrecognizedEvent for unknown types

    Raises:
        EventDecodeError: If the message is not a JSON object
    """
    if isinstance(message, (str, bytes)):
        try:
            payload = json.loads(message)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise EventDecodeError(f"Invalid JSON: {e}") from e
    else:
        payload = message

    if not isinstance(payload, dict):
        raise EventDecodeError(f"Expected a JSON object, got {type(payload).__name__}")

    event_type = _text(payload.get("type"))

    if event_type == ITEM_CREATED:
        return _decode_item_created(payload)
    if event_type == INPUT_TRANSCRIPT_DELTA:
        return InputTranscriptDeltaEvent(
            type=event_type,
            raw=payload,
            item_id=_text(payload.get("item_id")),
            delta=_text(payload.get("delta")),
        )
    if event_type == INPUT_TRANSCRIPT_COMPLETED:
        return InputTranscriptCompletedEvent(
            type=event_type,
            raw=payload,
            item_id=_text(payload.get("item_id")),
            transcript=_text(payload.get("transcript")),
        )
    if event_type == ASSISTANT_TRANSCRIPT_DELTA:
        return AssistantTranscriptDeltaEvent(
            type=event_type,
            raw=payload,
            item_id=_text(payload.get("item_id")),
            delta=_text(payload.get("delta")),
        )
    if event_type == RESPONSE_DONE:
        return _decode_response_done(payload)
    if event_type == SERVER_ERROR:
        return _decode_error(payload)

    return UnrecognizedEvent(type=event_type, raw=payload)


# ============================================================================
# Outbound messages
# ============================================================================

def response_create() -> Dict[str, Any]:
    """Ask the remote agent to generate a response."""
    return {"type": RESPONSE_CREATE}


def user_text_item(text: str, item_id: Optional[str] = None) -> Dict[str, Any]:
    """A typed user message."""
    return {
        "type": ITEM_CREATE,
        "item": {
            "id": item_id or f"user_{int(time.time() * 1000)}",
            "type": "message",
            "role": "user",
            "content": [{"type": "input_text", "text": text}],
        },
    }


def function_call_output(call_id: str, result: Any) -> Dict[str, Any]:
    """The result of a tool call, correlated by call id."""
    return {
        "type": ITEM_CREATE,
        "item": {
            "type": "function_call_output",
            "call_id": call_id,
            "output": json.dumps(result),
        },
    }


def session_update(session: Dict[str, Any]) -> Dict[str, Any]:
    """A full session configuration replace."""
    return {"type": SESSION_UPDATE, "session": session}
