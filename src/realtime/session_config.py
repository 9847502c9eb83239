"""
Session Configuration Module

Builds the full session.update message and keeps the microphone gate in
line with the turn detection mode.

In server VAD mode the microphone streams live and the service segments
speech into turns; response creation stays with the client (after each
final user transcript), so the turn detection block never sets
create_response. In manual mode turn detection is null and the microphone
is muted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from src.config import settings
from src.logger import get_logger

from .events import session_update
from .tools import Sender, ToolSpec

logger = get_logger(__name__)

AUDIO_FORMATS: Tuple[str, str] = ("pcm16", "pcm16")


class TurnDetectionMode(str, Enum):
    """Who decides when a user turn ends."""
    SERVER_VAD = "server_vad"
    MANUAL = "manual"

    def toggled(self) -> "TurnDetectionMode":
        if self is TurnDetectionMode.SERVER_VAD:
            return TurnDetectionMode.MANUAL
        return TurnDetectionMode.SERVER_VAD


@dataclass
class VADParameters:
    """Server VAD timing parameters."""
    threshold: float = field(default_factory=lambda: settings.realtime.vad_threshold)
    prefix_padding_ms: int = field(default_factory=lambda: settings.realtime.vad_prefix_padding_ms)
    silence_duration_ms: int = field(default_factory=lambda: settings.realtime.vad_silence_duration_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": TurnDetectionMode.SERVER_VAD.value,
            "threshold": self.threshold,
            "prefix_padding_ms": self.prefix_padding_ms,
            "silence_duration_ms": self.silence_duration_ms,
        }


@dataclass
class SessionConfig:
    """Desired session state, always sent as a full replace."""
    turn_detection_mode: TurnDetectionMode
    instructions: str
    tools: List[ToolSpec] = field(default_factory=list)
    audio_formats: Tuple[str, str] = AUDIO_FORMATS
    transcription_model: str = field(default_factory=lambda: settings.realtime.transcription_model)
    vad: VADParameters = field(default_factory=VADParameters)

    @property
    def mic_enabled(self) -> bool:
        """The microphone streams only when the server detects turns."""
        return self.turn_detection_mode is TurnDetectionMode.SERVER_VAD

    def to_session(self) -> Dict[str, Any]:
        """Session object for the session.update message."""
        turn_detection: Optional[Dict[str, Any]] = None
        if self.turn_detection_mode is TurnDetectionMode.SERVER_VAD:
            turn_detection = self.vad.to_dict()

        input_format, output_format = self.audio_formats
        return {
            "modalities": ["text", "audio"],
            "input_audio_format": input_format,
            "output_audio_format": output_format,
            "input_audio_transcription": {"model": self.transcription_model},
            "turn_detection": turn_detection,
            "instructions": self.instructions,
            "tools": [tool.to_dict() for tool in self.tools],
        }

    def to_message(self) -> Dict[str, Any]:
        return session_update(self.to_session())


class SessionConfigurator:
    """
    Sends the session configuration whenever the channel opens or the
    turn detection mode changes.

    Args:
        send: Control channel send callable
        is_open: Returns True while the control channel is open
        set_microphone: Enables or mutes the local microphone track
        instructions: Agent instructions
        tools: Tool manifest, in order
        vad: Server VAD parameters
    """

    def __init__(
        self,
        send: Sender,
        is_open: Callable[[], bool],
        set_microphone: Callable[[bool], None],
        instructions: str,
        tools: Optional[List[ToolSpec]] = None,
        vad: Optional[VADParameters] = None,
    ):
        self._send = send
        self._is_open = is_open
        self._set_microphone = set_microphone
        self._instructions = instructions
        self._tools = list(tools or [])
        self._vad = vad or VADParameters()
        self._last_config: Optional[SessionConfig] = None

    @property
    def last_config(self) -> Optional[SessionConfig]:
        """The most recently sent configuration."""
        return self._last_config

    def build(self, mode: TurnDetectionMode) -> SessionConfig:
        return SessionConfig(
            turn_detection_mode=TurnDetectionMode(mode),
            instructions=self._instructions,
            tools=self._tools,
            vad=self._vad,
        )

    def apply(self, mode: TurnDetectionMode) -> bool:
        """
        Send the configuration for ``mode`` and gate the microphone.

        Returns:
            False without side effects if the channel is not open
        """
        if not self._is_open():
            logger.debug(f"Channel not open, deferring session configuration ({mode})")
            return False

        config = self.build(mode)
        self._set_microphone(config.mic_enabled)
        self._send(config.to_message())
        self._last_config = config

        logger.info(
            f"Session configured: turn_detection={config.turn_detection_mode.value}, "
            f"mic={'on' if config.mic_enabled else 'off'}, tools={len(config.tools)}"
        )
        return True
