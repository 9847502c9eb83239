"""
Realtime Session Errors

Connect-path failures (credential, media, transport) are fatal to a single
connect() call and surface as one user notice. Dispatch-path failures
(argument parsing, unknown tools) drop one tool call and never stop the
event loop. ChannelNotOpenError never leaves the channel wrapper.
"""


class RealtimeError(Exception):
    """Base class for realtime session errors."""


class CredentialError(RealtimeError):
    """No ephemeral credential could be obtained."""


class MediaError(RealtimeError):
    """Local audio capture could not be acquired."""


class TransportError(RealtimeError):
    """Peer connection setup or the SDP offer/answer exchange failed."""


class ArgumentParseError(RealtimeError):
    """Tool-call arguments were not valid JSON."""

    def __init__(self, tool_name: str, raw_arguments: str, reason: str):
        self.tool_name = tool_name
        self.raw_arguments = raw_arguments
        super().__init__(f"Invalid arguments for '{tool_name}': {reason}")


class UnknownToolError(RealtimeError):
    """The remote agent asked for a tool that is not registered."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Unhandled tool: {tool_name}")


class ChannelNotOpenError(RealtimeError):
    """A send was attempted while the control channel was not open."""


class ConnectCancelledError(RealtimeError):
    """disconnect() was called while connect() was still in progress."""
