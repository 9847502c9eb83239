"""
Configuration Management Module

This module handles all application configuration using environment variables
with sensible defaults. It follows the 12-factor app methodology for configuration.

Usage:
    from src.config import settings
    print(settings.openai.realtime_model)

Environment variables are loaded from .env file (if present) and can be
overridden by system environment variables.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
# This should be called before accessing any environment variables
load_dotenv()


def get_env(key: str, default: str = "", required: bool = False) -> str:
    """
    Get an environment variable with optional default and validation.

    Args:
        key: The environment variable name
        default: Default value if not set
        required: If True, raises ValueError when not set

    Returns:
        The environment variable value or default

    Raises:
        ValueError: If required=True and the variable is not set
    """
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable '{key}' is not set")
    return value


def get_env_int(key: str, default: int) -> int:
    """Get an environment variable as integer."""
    return int(get_env(key, str(default)))


def get_env_float(key: str, default: float) -> float:
    """Get an environment variable as float."""
    return float(get_env(key, str(default)))


def get_env_bool(key: str, default: bool) -> bool:
    """Get an environment variable as boolean."""
    value = get_env(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def get_env_list(key: str, default: str = "") -> List[str]:
    """Get a comma separated environment variable as a list of strings."""
    raw = get_env(key, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class OpenAIConfig:
    """
    OpenAI Realtime API configuration.

    The API key is only needed by the backend that mints ephemeral
    credentials; the voice client never sees it.

    Attributes:
        api_key: Server-side OpenAI API key
        realtime_model: Realtime model name used for sessions and SDP exchange
        realtime_url: Base URL that accepts the SDP offer
        sessions_url: Endpoint that issues ephemeral client secrets
    """
    api_key: str = field(default_factory=lambda: get_env("OPENAI_API_KEY"))
    realtime_model: str = field(default_factory=lambda: get_env("OPENAI_REALTIME_MODEL", "gpt-4o-realtime-preview-2024-12-17"))
    realtime_url: str = field(default_factory=lambda: get_env("OPENAI_REALTIME_URL", "https://api.openai.com/v1/realtime"))
    sessions_url: str = field(default_factory=lambda: get_env("OPENAI_SESSIONS_URL", "https://api.openai.com/v1/realtime/sessions"))

    def validate(self) -> bool:
        """Validate that required OpenAI settings are configured."""
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY is required")
        return True

    @property
    def sdp_url(self) -> str:
        """Get the full URL the SDP offer is posted to."""
        base = self.realtime_url.rstrip("/")
        return f"{base}?model={self.realtime_model}"


@dataclass
class RealtimeConfig:
    """
    Realtime voice client configuration.

    Attributes:
        session_endpoint: Backend endpoint returning an ephemeral credential
        recommend_endpoint: Backend endpoint for product recommendations
        turn_detection_mode: Initial turn detection mode (server_vad or manual)
        vad_threshold: Server VAD activation threshold
        vad_prefix_padding_ms: Audio kept before detected speech
        vad_silence_duration_ms: Silence that ends a user turn
        transcription_model: Model used for input audio transcription
        http_timeout_s: Total timeout for credential, SDP and tool HTTP calls
        connect_timeout_s: Time to wait for the control channel to open
    """
    session_endpoint: str = field(default_factory=lambda: get_env("SESSION_ENDPOINT", "http://localhost:3000/api/session"))
    recommend_endpoint: str = field(default_factory=lambda: get_env("RECOMMEND_ENDPOINT", "http://localhost:3000/api/recommend"))
    turn_detection_mode: str = field(default_factory=lambda: get_env("TURN_DETECTION_MODE", "server_vad"))
    vad_threshold: float = field(default_factory=lambda: get_env_float("VAD_THRESHOLD", 0.5))
    vad_prefix_padding_ms: int = field(default_factory=lambda: get_env_int("VAD_PREFIX_PADDING_MS", 300))
    vad_silence_duration_ms: int = field(default_factory=lambda: get_env_int("VAD_SILENCE_DURATION_MS", 300))
    transcription_model: str = field(default_factory=lambda: get_env("TRANSCRIPTION_MODEL", "whisper-1"))
    http_timeout_s: float = field(default_factory=lambda: get_env_float("HTTP_TIMEOUT_S", 30.0))
    connect_timeout_s: float = field(default_factory=lambda: get_env_float("CONNECT_TIMEOUT_S", 15.0))

    def validate(self) -> bool:
        """Validate realtime settings."""
        if self.turn_detection_mode not in ("server_vad", "manual"):
            raise ValueError("TURN_DETECTION_MODE must be 'server_vad' or 'manual'")
        if not 0.0 <= self.vad_threshold <= 1.0:
            raise ValueError("VAD_THRESHOLD must be between 0 and 1")
        if self.vad_prefix_padding_ms < 0 or self.vad_silence_duration_ms < 0:
            raise ValueError("VAD timings cannot be negative")
        return True


@dataclass
class AudioConfig:
    """
    Local audio device configuration.

    Device and format strings are passed straight to FFmpeg through aiortc's
    MediaPlayer / MediaRecorder (e.g. device "default" with format "pulse",
    or ":0" with format "avfoundation"). An empty output device discards
    the assistant audio.

    Attributes:
        input_device: Microphone device name
        input_format: FFmpeg input format for the microphone
        output_device: Speaker device name
        output_format: FFmpeg output format for playback
        playback_enabled: Whether assistant audio starts unmuted
    """
    input_device: str = field(default_factory=lambda: get_env("AUDIO_INPUT_DEVICE", "default"))
    input_format: str = field(default_factory=lambda: get_env("AUDIO_INPUT_FORMAT", "pulse"))
    output_device: str = field(default_factory=lambda: get_env("AUDIO_OUTPUT_DEVICE", "default"))
    output_format: str = field(default_factory=lambda: get_env("AUDIO_OUTPUT_FORMAT", "pulse"))
    playback_enabled: bool = field(default_factory=lambda: get_env_bool("AUDIO_PLAYBACK", True))


@dataclass
class CatalogConfig:
    """
    Product catalog configuration.

    Attributes:
        csv_path: Path to the inventory CSV served by /api/recommend
    """
    csv_path: str = field(default_factory=lambda: get_env("INVENTORY_CSV", "./data/inventory.csv"))

    @property
    def path(self) -> Path:
        """Get the inventory CSV as a Path object."""
        return Path(self.csv_path)


@dataclass
class ServerConfig:
    """
    Backend HTTP server configuration.

    Attributes:
        host: Bind address
        port: Bind port
        cors_origins: Allowed CORS origins
        rate_limit_requests: Requests allowed per client per window
        rate_limit_window: Rate limit window in seconds
    """
    host: str = field(default_factory=lambda: get_env("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: get_env_int("PORT", 3000))
    cors_origins: List[str] = field(default_factory=lambda: get_env_list("CORS_ORIGINS", "*"))
    rate_limit_requests: int = field(default_factory=lambda: get_env_int("RATE_LIMIT_REQUESTS", 60))
    rate_limit_window: int = field(default_factory=lambda: get_env_int("RATE_LIMIT_WINDOW_S", 60))


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        file: Optional log file path
    """
    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE") or None)


@dataclass
class Settings:
    """
    Main settings container aggregating all configuration sections.

    This is the primary configuration interface for the application.
    Access via the singleton `settings` instance.

    Example:
        from src.config import settings

        url = settings.openai.sdp_url
        mode = settings.realtime.turn_detection_mode
    """
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    realtime: RealtimeConfig = field(default_factory=RealtimeConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Application-level settings
    app_env: str = field(default_factory=lambda: get_env("APP_ENV", "development"))

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    def validate_all(self) -> bool:
        """
        Validate all configuration sections.

        Returns:
            True if all validations pass

        Raises:
            ValueError: If any validation fails
        """
        self.openai.validate()
        self.realtime.validate()
        return True


# Singleton settings instance
# Import this in other modules: from src.config import settings
settings = Settings()
