"""
Realtime Session Module

One RealtimeSession per conversation. It owns the negotiator (and through
it the Connection), the current turn detection mode and the transcript,
and it exposes the user-facing controls: connect, disconnect, send text,
toggle audio playback, toggle turn detection.

All channel callbacks (open, close, error, message) are queued onto a
single inbox consumed by one dispatch task, so events are handled one at a
time in arrival order and the transcript is only mutated from that task.
"""

import asyncio
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple, Union

from src.config import settings
from src.logger import get_logger
from src.messages import msg

from .dispatcher import EventDispatcher
from .errors import ConnectCancelledError, RealtimeError
from .events import response_create, user_text_item
from .negotiator import ChannelListener, ConnectionState, SessionNegotiator
from .session_config import SessionConfigurator, TurnDetectionMode
from .tools import ToolInvoker
from .transcript import TranscriptStore

if TYPE_CHECKING:
    from src.agents.profile import AgentProfile

logger = get_logger(__name__)

NoticeHandler = Callable[[str], None]


class ChannelSignal(Enum):
    """Kinds of items on the session inbox."""
    OPEN = auto()
    MESSAGE = auto()
    CLOSE = auto()
    ERROR = auto()


class RealtimeSession:
    """
    Conversation session controller.

    Args:
        agent: Instructions and tools for the remote agent
        transcript: Transcript store (a new one by default)
        turn_detection: Initial turn detection mode
        negotiator_factory: Builds the negotiator given this session as listener
        on_notice: Receives short user-visible status lines

    Usage:
        session = RealtimeSession(build_inventory_agent())
        if await session.connect():
            await session.wait_until_open()
            session.send_text("Do you have running shoes under $100?")
        ...
        await session.disconnect()
    """

    def __init__(
        self,
        agent: "AgentProfile",
        transcript: Optional[TranscriptStore] = None,
        turn_detection: Optional[Union[TurnDetectionMode, str]] = None,
        negotiator_factory: Callable[[ChannelListener], SessionNegotiator] = SessionNegotiator,
        on_notice: Optional[NoticeHandler] = None,
    ):
        self._agent = agent
        self.transcript = transcript if transcript is not None else TranscriptStore()
        self._mode = TurnDetectionMode(turn_detection or settings.realtime.turn_detection_mode)
        self._on_notice = on_notice

        self._negotiator = negotiator_factory(self)
        self._invoker = ToolInvoker(agent.registry, self._send)
        self._configurator = SessionConfigurator(
            send=self._send,
            is_open=self.is_open,
            set_microphone=self._negotiator.set_microphone_enabled,
            instructions=agent.instructions,
            tools=agent.registry.specs(),
        )
        self._dispatcher = EventDispatcher(
            self.transcript,
            self._invoker,
            self._send,
            self.is_open,
        )

        self._inbox: "asyncio.Queue[Tuple[ChannelSignal, Any]]" = asyncio.Queue()
        self._loop_task: Optional[asyncio.Task] = None
        self._opened = asyncio.Event()

    # ========================================================================
    # State
    # ========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._negotiator.state

    @property
    def mode(self) -> TurnDetectionMode:
        return self._mode

    @property
    def playback_enabled(self) -> bool:
        return self._negotiator.playback.enabled

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def configurator(self) -> SessionConfigurator:
        return self._configurator

    def is_open(self) -> bool:
        return self._negotiator.is_open

    def _send(self, message: Dict[str, Any]) -> bool:
        return self._negotiator.send(message)

    def _notice(self, text: str) -> None:
        logger.info(text)
        if self._on_notice is not None:
            try:
                self._on_notice(text)
            except Exception as e:
                logger.error(f"Notice handler error: {e}")

    # ========================================================================
    # Controls
    # ========================================================================

    async def connect(self) -> bool:
        """
        Connect to the realtime service.

        Failures are reported as one notice and leave the session in the
        ERROR state; call disconnect() to release partial resources.

        Returns:
            True once the transport is negotiated (the channel opens later);
            False on failure or when disconnect() interrupted the attempt
        """
        if self.state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            self._notice(msg("session.already_connected"))
            return False

        self._opened.clear()
        self._start_dispatch_loop()

        try:
            await self._negotiator.connect()
        except ConnectCancelledError:
            # disconnect() already reported the outcome
            return False
        except RealtimeError as e:
            self._notice(msg("session.connect_failed", error=e))
            return False

        self._notice(msg("session.established"))
        return True

    async def wait_until_open(self, timeout: Optional[float] = None) -> bool:
        """Wait for the control channel to open. Returns False on timeout."""
        timeout = settings.realtime.connect_timeout_s if timeout is None else timeout
        try:
            await asyncio.wait_for(self._opened.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def disconnect(self) -> None:
        """Close the connection and stop event processing. Idempotent."""
        await self._negotiator.disconnect()
        self._opened.clear()
        await self._stop_dispatch_loop()
        self._notice(msg("session.disconnected"))

    def send_text(self, text: str) -> bool:
        """
        Send a typed user message and ask for a response.

        Returns:
            False if the text is empty or the channel is not open
        """
        text = text.strip()
        if not text or not self.is_open():
            return False
        if not self._send(user_text_item(text)):
            return False
        self._send(response_create())
        return True

    def set_audio_playback(self, enabled: bool) -> None:
        self._negotiator.playback.set_enabled(enabled)
        self._notice(msg("session.playback_changed", state="on" if enabled else "muted"))

    def toggle_audio_playback(self) -> bool:
        """Mute or unmute the assistant's audio. Returns the new state."""
        enabled = not self.playback_enabled
        self.set_audio_playback(enabled)
        return enabled

    def set_turn_detection(self, mode: Union[TurnDetectionMode, str]) -> None:
        """Switch turn detection and resend the configuration if open."""
        self._mode = TurnDetectionMode(mode)
        self._configurator.apply(self._mode)
        self._notice(msg("session.mode_changed", mode=self._mode.value))

    def toggle_turn_detection(self) -> TurnDetectionMode:
        """Flip between server VAD and manual turn taking. Returns the new mode."""
        self.set_turn_detection(self._mode.toggled())
        return self._mode

    # ========================================================================
    # ChannelListener
    # ========================================================================

    def channel_opened(self) -> None:
        self._inbox.put_nowait((ChannelSignal.OPEN, None))

    def channel_closed(self) -> None:
        self._inbox.put_nowait((ChannelSignal.CLOSE, None))

    def channel_error(self, error: Exception) -> None:
        self._inbox.put_nowait((ChannelSignal.ERROR, error))

    def channel_message(self, data: Union[str, bytes]) -> None:
        self._inbox.put_nowait((ChannelSignal.MESSAGE, data))

    # ========================================================================
    # Dispatch loop
    # ========================================================================

    def _start_dispatch_loop(self) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self._run_dispatch_loop(), name="realtime-dispatch")

    async def _stop_dispatch_loop(self) -> None:
        task, self._loop_task = self._loop_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await asyncio.wait_for(task, timeout=1.0)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
        # Nothing queued before disconnect is processed afterwards
        self._inbox = asyncio.Queue()

    async def _run_dispatch_loop(self) -> None:
        logger.debug("Dispatch loop started")
        while True:
            signal, payload = await self._inbox.get()
            try:
                await self._handle_signal(signal, payload)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Error handling {signal.name}")
            finally:
                self._inbox.task_done()

    async def _handle_signal(self, signal: ChannelSignal, payload: Any) -> None:
        if signal is ChannelSignal.MESSAGE:
            await self._dispatcher.dispatch(payload)
        elif signal is ChannelSignal.OPEN:
            self._opened.set()
            self._notice(msg("session.connected"))
            self._configurator.apply(self._mode)
        elif signal is ChannelSignal.CLOSE:
            self._opened.clear()
            self._notice(msg("session.channel_closed"))
        elif signal is ChannelSignal.ERROR:
            self._notice(msg("session.channel_error", error=payload))

    async def drain(self) -> None:
        """Wait until every queued channel callback has been handled."""
        await self._inbox.join()

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "state": self.state.name,
            "mode": self._mode.value,
            "transcript_entries": len(self.transcript),
            "dispatcher": self._dispatcher.stats,
        }
