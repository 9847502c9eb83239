"""
Local Audio Module

Microphone capture and assistant audio playback on top of aiortc's media
helpers (FFmpeg devices via PyAV).

WebRTC tracks in aiortc have no "enabled" flag, so both directions go
through GatedAudioTrack: while disabled it keeps the frame cadence but
zeroes the samples, which is what a muted browser track sends.
"""

from typing import Optional

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaBlackhole, MediaPlayer, MediaRecorder

from src.config import settings
from src.logger import get_logger

from .errors import MediaError

logger = get_logger(__name__)


class GatedAudioTrack(MediaStreamTrack):
    """
    Audio track that forwards a source track, silenced while disabled.

    Args:
        source: Track to read frames from
        enabled: Initial gate state
    """

    kind = "audio"

    def __init__(self, source: MediaStreamTrack, enabled: bool = False):
        super().__init__()
        self._source = source
        self.enabled = enabled

    async def recv(self):
        frame = await self._source.recv()
        if not self.enabled:
            for plane in frame.planes:
                plane.update(bytes(plane.buffer_size))
        return frame

    def stop(self) -> None:
        super().stop()
        self._source.stop()


class Microphone:
    """
    Local capture device exposed as a gated WebRTC track.

    The track starts muted; the session configurator opens it when the
    turn detection mode calls for live audio.
    """

    def __init__(self, player: MediaPlayer):
        if player.audio is None:
            raise MediaError("Capture device has no audio stream")
        self._player = player
        self.track = GatedAudioTrack(player.audio, enabled=False)

    @property
    def enabled(self) -> bool:
        return self.track.enabled

    def set_enabled(self, enabled: bool) -> None:
        self.track.enabled = enabled

    def stop(self) -> None:
        """Stop capture. Safe to call more than once."""
        if self.track.readyState != "ended":
            self.track.stop()


def open_microphone(device: Optional[str] = None, fmt: Optional[str] = None) -> Microphone:
    """
    Open the configured capture device.

    Raises:
        MediaError: If FFmpeg cannot open the device
    """
    device = device or settings.audio.input_device
    fmt = fmt if fmt is not None else settings.audio.input_format
    try:
        player = MediaPlayer(device, format=fmt or None)
    except Exception as e:
        raise MediaError(f"Could not open audio input '{device}' ({fmt or 'auto'}): {e}") from e

    logger.debug(f"Microphone opened: {device} ({fmt or 'auto'})")
    return Microphone(player)


class PlaybackSink:
    """
    Plays the assistant's remote audio track.

    Output goes to an FFmpeg device through MediaRecorder, or to a
    MediaBlackhole when no output device is configured (the track still has
    to be consumed). Muting gates the track instead of stopping the sink.
    """

    def __init__(
        self,
        device: Optional[str] = None,
        fmt: Optional[str] = None,
        enabled: Optional[bool] = None,
    ):
        self._device = device if device is not None else settings.audio.output_device
        self._format = fmt if fmt is not None else settings.audio.output_format
        self._enabled = settings.audio.playback_enabled if enabled is None else enabled
        self._track: Optional[GatedAudioTrack] = None
        self._recorder = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        if self._track is not None:
            self._track.enabled = enabled

    async def attach(self, remote: MediaStreamTrack) -> None:
        """Start playing a remote audio track."""
        await self.stop()
        self._track = GatedAudioTrack(remote, enabled=self._enabled)
        if self._device:
            try:
                self._recorder = MediaRecorder(self._device, format=self._format or None)
            except Exception as e:
                logger.warning(f"Audio output '{self._device}' unavailable, discarding assistant audio: {e}")
                self._recorder = MediaBlackhole()
        else:
            self._recorder = MediaBlackhole()
        self._recorder.addTrack(self._track)
        await self._recorder.start()
        logger.debug("Assistant audio attached")

    async def stop(self) -> None:
        """Stop playback. Safe to call more than once."""
        recorder, self._recorder = self._recorder, None
        track, self._track = self._track, None
        if recorder is not None:
            try:
                await recorder.stop()
            except Exception as e:
                logger.debug(f"Error stopping playback: {e}")
        if track is not None:
            track.stop()
