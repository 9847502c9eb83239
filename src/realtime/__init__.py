"""
Realtime Conversation Module

Session controller for a voice-and-text conversation with the OpenAI
Realtime API over WebRTC.

Architecture:
- Transcript: Ordered, incrementally built conversation entries
- Negotiator: Credential fetch, microphone, peer connection, SDP exchange
- Session Config: Full session.update and microphone gating
- Dispatcher: Typed routing of inbound control channel events
- Tools: Tool registry and invoker for function calls
- Session: Per-conversation owner of all of the above with a single
  in-order dispatch loop

Usage:
    from src.agents import build_inventory_agent
    from src.realtime import RealtimeSession

    session = RealtimeSession(build_inventory_agent())
    await session.connect()
"""

from .errors import (
    RealtimeError,
    CredentialError,
    MediaError,
    TransportError,
    ArgumentParseError,
    UnknownToolError,
    ChannelNotOpenError,
    ConnectCancelledError,
)
from .events import (
    ServerEvent,
    ItemCreatedEvent,
    InputTranscriptDeltaEvent,
    InputTranscriptCompletedEvent,
    AssistantTranscriptDeltaEvent,
    ResponseDoneEvent,
    ServerErrorEvent,
    UnrecognizedEvent,
    FunctionCall,
    decode_event,
)
from .transcript import Role, UpdateMode, TranscriptEntry, TranscriptStore, TextSpan, parse_emphasis
from .tools import ToolSpec, ToolRegistry, ToolInvoker
from .session_config import TurnDetectionMode, SessionConfig, SessionConfigurator, VADParameters
from .dispatcher import EventDispatcher
from .negotiator import ConnectionState, ControlChannel, SessionNegotiator
from .session import RealtimeSession

__all__ = [
    # Errors
    "RealtimeError",
    "CredentialError",
    "MediaError",
    "TransportError",
    "ArgumentParseError",
    "UnknownToolError",
    "ChannelNotOpenError",
    "ConnectCancelledError",
    # Events
    "ServerEvent",
    "ItemCreatedEvent",
    "InputTranscriptDeltaEvent",
    "InputTranscriptCompletedEvent",
    "AssistantTranscriptDeltaEvent",
    "ResponseDoneEvent",
    "ServerErrorEvent",
    "UnrecognizedEvent",
    "FunctionCall",
    "decode_event",
    # Transcript
    "Role",
    "UpdateMode",
    "TranscriptEntry",
    "TranscriptStore",
    "TextSpan",
    "parse_emphasis",
    # Tools
    "ToolSpec",
    "ToolRegistry",
    "ToolInvoker",
    # Session config
    "TurnDetectionMode",
    "SessionConfig",
    "SessionConfigurator",
    "VADParameters",
    # Dispatcher
    "EventDispatcher",
    # Negotiator
    "ConnectionState",
    "ControlChannel",
    "SessionNegotiator",
    # Session
    "RealtimeSession",
]
