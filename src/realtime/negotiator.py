"""
Session Negotiator Module

Establishes and supervises the WebRTC connection to the realtime service:
an outbound microphone track, the remote assistant audio track, and the
`oai-events` data channel used as the control channel.

State machine:
    IDLE -> CONNECTING -> OPEN -> CLOSED
    ERROR is reachable from any non-idle state.

The connection only counts as OPEN once the data channel fires its own
"open" event; finishing the offer/answer exchange is not enough.

Channel callbacks are forwarded to a ChannelListener. They are the only
upward notifications; everything else is a state read or a fire-and-forget
send.
"""

import asyncio
import json
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional, Protocol, Set, Union

from aiortc import RTCPeerConnection, RTCSessionDescription
from aiortc.exceptions import InvalidStateError

from src.logger import get_logger, summarize

from .errors import (
    ChannelNotOpenError,
    ConnectCancelledError,
    MediaError,
    RealtimeError,
    TransportError,
)
from .media import Microphone, PlaybackSink, open_microphone
from .signaling import CredentialProvider, SdpExchanger

logger = get_logger(__name__)

CONTROL_CHANNEL_LABEL = "oai-events"


class ConnectionState(Enum):
    """Lifecycle of the realtime connection."""
    IDLE = auto()
    CONNECTING = auto()
    OPEN = auto()
    CLOSED = auto()
    ERROR = auto()


class ChannelListener(Protocol):
    """Receiver of control channel lifecycle and message callbacks."""

    def channel_opened(self) -> None: ...

    def channel_closed(self) -> None: ...

    def channel_error(self, error: Exception) -> None: ...

    def channel_message(self, data: Union[str, bytes]) -> None: ...


class ControlChannel:
    """
    JSON message wrapper around the data channel.

    send() never raises: messages sent while the channel is not open are
    logged and dropped.
    """

    def __init__(self, channel: Any):
        self._channel = channel

    @property
    def is_open(self) -> bool:
        return getattr(self._channel, "readyState", None) == "open"

    def _require_open(self) -> None:
        if not self.is_open:
            raise ChannelNotOpenError(f"Control channel is {getattr(self._channel, 'readyState', 'gone')}")

    def send(self, message: Dict[str, Any]) -> bool:
        """Serialize and send one message. Returns False if it was dropped."""
        try:
            self._require_open()
            self._channel.send(json.dumps(message))
        except (ChannelNotOpenError, InvalidStateError) as e:
            logger.debug(f"Dropped {message.get('type', '?')}: {e}")
            return False
        logger.debug(f"=> {summarize(message, 200)}")
        return True

    def close(self) -> None:
        self._channel.close()


@dataclass
class Connection:
    """Resources of one connect() attempt. Fields fill in as setup progresses."""
    peer: Optional[Any] = None
    channel: Optional[ControlChannel] = None
    microphone: Optional[Microphone] = None


class SessionNegotiator:
    """
    Owns the realtime Connection and its state.

    Args:
        listener: Receives channel open/close/error/message callbacks
        credentials: Ephemeral credential source
        exchanger: SDP offer/answer exchange with the realtime service
        peer_factory: Creates the peer connection (RTCPeerConnection)
        microphone_factory: Opens local capture
        playback: Sink for the assistant's audio

    Usage:
        negotiator = SessionNegotiator(listener)
        await negotiator.connect()
        ...
        await negotiator.disconnect()
    """

    def __init__(
        self,
        listener: ChannelListener,
        credentials: Optional[CredentialProvider] = None,
        exchanger: Optional[SdpExchanger] = None,
        peer_factory: Callable[[], Any] = RTCPeerConnection,
        microphone_factory: Callable[[], Microphone] = open_microphone,
        playback: Optional[PlaybackSink] = None,
    ):
        self._listener = listener
        self._credentials = credentials or CredentialProvider()
        self._exchanger = exchanger or SdpExchanger()
        self._peer_factory = peer_factory
        self._microphone_factory = microphone_factory
        self.playback = playback or PlaybackSink()

        self._state = ConnectionState.IDLE
        self._connection: Optional[Connection] = None
        self._playback_tasks: Set[asyncio.Future] = set()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        connection = self._connection
        return (
            self._state is ConnectionState.OPEN
            and connection is not None
            and connection.channel is not None
            and connection.channel.is_open
        )

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug(f"Connection state {self._state.name} -> {state.name}")
            self._state = state

    # ========================================================================
    # Connect / disconnect
    # ========================================================================

    async def connect(self) -> None:
        """
        Negotiate a new connection.

        Returns once the remote answer is applied; the state moves to OPEN
        later, when the control channel opens.

        Raises:
            CredentialError: No ephemeral credential
            MediaError: Local capture unavailable
            TransportError: Peer setup or SDP exchange failed
            ConnectCancelledError: disconnect() was called meanwhile
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            raise TransportError(f"Cannot connect while {self._state.name.lower()}")

        if self._connection is not None:
            # Leftovers from a failed attempt
            await self.disconnect()

        self._set_state(ConnectionState.CONNECTING)
        connection = Connection()
        self._connection = connection

        try:
            secret = await self._credentials.fetch()
            await self._ensure_current(connection)

            try:
                connection.microphone = self._microphone_factory()
            except MediaError:
                raise
            except Exception as e:
                raise MediaError(f"Audio capture unavailable: {e}") from e

            await self._negotiate(connection, secret)
        except ConnectCancelledError:
            logger.debug("Connect cancelled by disconnect")
            raise
        except Exception as e:
            # A failure that lands after disconnect() is still a cancellation
            await self._ensure_current(connection)
            self._set_state(ConnectionState.ERROR)
            if isinstance(e, RealtimeError):
                logger.debug(f"Connect failed: {e}")
                raise
            logger.debug("Connect failed", exc_info=True)
            raise TransportError(str(e)) from e

    async def _ensure_current(self, connection: Connection) -> None:
        """Release an attempt that disconnect() has already abandoned."""
        if not self._is_current(connection):
            await self._release(connection)
            raise ConnectCancelledError("Disconnected while connecting")

    async def _negotiate(self, connection: Connection, secret: str) -> None:
        peer = self._peer_factory()
        connection.peer = peer

        peer.on("track", lambda track: self._on_track(connection, track))
        peer.on("connectionstatechange", lambda: self._on_peer_state(connection))

        peer.addTrack(connection.microphone.track)

        channel = peer.createDataChannel(CONTROL_CHANNEL_LABEL)
        connection.channel = ControlChannel(channel)
        channel.on("open", lambda: self._on_channel_open(connection))
        channel.on("close", lambda: self._on_channel_close(connection))
        channel.on("message", lambda data: self._on_channel_message(connection, data))

        offer = await peer.createOffer()
        await self._ensure_current(connection)
        await peer.setLocalDescription(offer)
        await self._ensure_current(connection)

        answer_sdp = await self._exchanger.exchange(peer.localDescription.sdp, secret)
        await self._ensure_current(connection)
        await peer.setRemoteDescription(RTCSessionDescription(sdp=answer_sdp, type="answer"))
        await self._ensure_current(connection)
        logger.info("SDP answer applied, waiting for control channel")

    async def disconnect(self) -> None:
        """
        Release the connection. Idempotent and safe in any state, including
        while connect() is suspended; that connect() then fails with
        ConnectCancelledError.
        """
        connection, self._connection = self._connection, None

        if connection is not None:
            await self._release(connection)
            try:
                await self.playback.stop()
            except Exception as e:
                logger.debug(f"Error stopping playback: {e}")

        for task in list(self._playback_tasks):
            task.cancel()

        self._set_state(ConnectionState.CLOSED)

    async def _release(self, connection: Connection) -> None:
        # Fields are cleared so a second release is a no-op
        channel, connection.channel = connection.channel, None
        microphone, connection.microphone = connection.microphone, None
        peer, connection.peer = connection.peer, None

        if channel is not None:
            try:
                channel.close()
            except Exception as e:
                logger.debug(f"Error closing control channel: {e}")

        if microphone is not None:
            try:
                microphone.stop()
            except Exception as e:
                logger.debug(f"Error stopping microphone: {e}")

        if peer is not None:
            try:
                await peer.close()
            except Exception as e:
                logger.debug(f"Error closing peer connection: {e}")

    # ========================================================================
    # Sends and local controls
    # ========================================================================

    def send(self, message: Dict[str, Any]) -> bool:
        """Send a control message. Dropped (returns False) unless open."""
        connection = self._connection
        if connection is None or connection.channel is None:
            logger.debug(f"Dropped {message.get('type', '?')}: no connection")
            return False
        return connection.channel.send(message)

    def set_microphone_enabled(self, enabled: bool) -> None:
        connection = self._connection
        if connection is not None and connection.microphone is not None:
            connection.microphone.set_enabled(enabled)

    @property
    def microphone_enabled(self) -> bool:
        connection = self._connection
        return bool(connection and connection.microphone and connection.microphone.enabled)

    # ========================================================================
    # Transport callbacks
    # ========================================================================

    def _is_current(self, connection: Connection) -> bool:
        return connection is self._connection

    def _on_channel_open(self, connection: Connection) -> None:
        if not self._is_current(connection):
            return
        self._set_state(ConnectionState.OPEN)
        logger.info("Control channel open")
        self._listener.channel_opened()

    def _on_channel_close(self, connection: Connection) -> None:
        if not self._is_current(connection):
            return
        self._set_state(ConnectionState.CLOSED)
        logger.info("Control channel closed")
        self._listener.channel_closed()

    def _on_channel_message(self, connection: Connection, data: Union[str, bytes]) -> None:
        if not self._is_current(connection):
            return
        self._listener.channel_message(data)

    def _on_peer_state(self, connection: Connection) -> None:
        if not self._is_current(connection) or connection.peer is None:
            return
        peer_state = getattr(connection.peer, "connectionState", "")
        logger.debug(f"Peer connection state: {peer_state}")
        if peer_state == "failed":
            self._set_state(ConnectionState.ERROR)
            self._listener.channel_error(TransportError("Peer connection failed"))

    def _on_track(self, connection: Connection, track: Any) -> None:
        if not self._is_current(connection) or getattr(track, "kind", None) != "audio":
            return
        logger.debug("Remote audio track received")
        task = asyncio.ensure_future(self.playback.attach(track))
        self._playback_tasks.add(task)
        task.add_done_callback(self._on_playback_attached)

    def _on_playback_attached(self, task: asyncio.Future) -> None:
        self._playback_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Assistant audio playback failed: {error}")
