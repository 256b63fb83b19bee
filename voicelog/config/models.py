"""
Configuration models for the voicelog application.

This module defines dataclasses for different configuration domains,
providing type safety and validation for all application settings.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from voicelog.config.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_BITS_PER_SAMPLE,
    DEFAULT_CAPTURE_START_TIMEOUT,
    DEFAULT_CHANNELS,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_FRAME_SIZE,
    DEFAULT_MODEL,
    DEFAULT_NOTIFICATION_GROUP,
    DEFAULT_SAMPLE_RATE,
    DEFAULT_SLOT_DURATION_MINUTES,
    DEFAULT_TEMPERATURE,
    DEFAULT_TRANSCRIPTION_MODEL,
    DEFAULT_VAD_PREFIX_PADDING_MS,
    DEFAULT_VAD_SILENCE_DURATION_MS,
    DEFAULT_VAD_THRESHOLD,
    DEFAULT_VAD_TYPE,
    VOICE,
)


class LogLevel(Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class OpenAIConfig:
    """OpenAI API configuration."""

    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL

    def get_websocket_url(self) -> str:
        """Get the OpenAI Realtime API WebSocket URL."""
        return f"{self.base_url}/v1/realtime?model={self.model}"

    def get_headers(self) -> Dict[str, str]:
        """Get headers for OpenAI API authentication."""
        if not self.api_key:
            raise ValueError("OpenAI API key is required")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }


@dataclass
class AudioConfig:
    """Audio capture and playback configuration."""

    sample_rate: int = DEFAULT_SAMPLE_RATE
    channels: int = DEFAULT_CHANNELS
    bits_per_sample: int = DEFAULT_BITS_PER_SAMPLE
    frame_size: int = DEFAULT_FRAME_SIZE
    start_muted: bool = False


@dataclass
class RealtimeConfig:
    """Realtime session behaviour."""

    voice: str = VOICE
    temperature: float = DEFAULT_TEMPERATURE
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    vad_type: str = DEFAULT_VAD_TYPE
    vad_threshold: float = DEFAULT_VAD_THRESHOLD
    vad_prefix_padding_ms: int = DEFAULT_VAD_PREFIX_PADDING_MS
    vad_silence_duration_ms: int = DEFAULT_VAD_SILENCE_DURATION_MS
    use_function_calling: bool = True
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    capture_start_timeout: float = DEFAULT_CAPTURE_START_TIMEOUT
    # None keeps an unfinished command forever
    pending_command_ttl: Optional[float] = None
    slot_duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES


@dataclass
class BootstrapConfig:
    """Remote session bootstrap endpoint (optional)."""

    url: Optional[str] = None
    auth_token: Optional[str] = None
    timeout: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.url)


@dataclass
class NotificationConfig:
    """Outbound chat notification webhook."""

    webhook_url: Optional[str] = None
    enabled: bool = True
    group_name: str = DEFAULT_NOTIFICATION_GROUP
    timeout: float = 10.0


@dataclass
class LedgerConfig:
    """Tenant identity used when storing records."""

    sheet_id: str = "default"
    user_id: str = "local"
    user_name: str = "Voice User"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_dir: Path = field(default_factory=lambda: Path("logs"))
    log_filename: str = "voicelog.log"
    max_file_size: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5


@dataclass
class ApplicationConfig:
    """Main application configuration combining all domains."""

    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    realtime: RealtimeConfig = field(default_factory=RealtimeConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
