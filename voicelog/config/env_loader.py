"""
Environment variable loader for voicelog configuration.

This module handles loading configuration from environment variables,
with type conversion, validation, and fallback to defaults.
"""

import os
from pathlib import Path
from typing import Optional, Type, TypeVar, cast

from dotenv import load_dotenv

from .constants import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    DEFAULT_NOTIFICATION_GROUP,
    VOICE,
)
from .models import (
    ApplicationConfig,
    AudioConfig,
    BootstrapConfig,
    LedgerConfig,
    LoggingConfig,
    LogLevel,
    NotificationConfig,
    OpenAIConfig,
    RealtimeConfig,
)


def load_env_file(env_file: Optional[str] = None) -> None:
    """Load environment variables from a .env file.

    Args:
        env_file: Path to the .env file. If None, uses default behavior.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()


T = TypeVar("T")


def safe_convert(value: Optional[str], target_type: Type[T], default: T) -> T:
    """Safely convert environment variable string to target type."""
    if value is None:
        return default

    try:
        if target_type == bool:
            return cast(T, value.strip().lower() in ("true", "1", "yes", "on"))
        elif target_type == int:
            return cast(T, int(value))
        elif target_type == float:
            return cast(T, float(value))
        elif target_type == str:
            return cast(T, value)
        elif target_type == Path:
            return cast(T, Path(value))
        else:
            return default
    except (ValueError, TypeError):
        return default


def safe_string_or_none(value: Optional[str]) -> Optional[str]:
    """Convert environment variable to string or None if empty."""
    if value is None or value.strip() == "":
        return None
    return value.strip()


def load_openai_config() -> OpenAIConfig:
    """Load OpenAI configuration from environment variables."""
    return OpenAIConfig(
        api_key=safe_string_or_none(os.getenv("OPENAI_API_KEY")),
        model=os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_MODEL),
        base_url=os.getenv("OPENAI_BASE_URL", DEFAULT_BASE_URL),
    )


def load_audio_config() -> AudioConfig:
    """Load audio configuration from environment variables."""
    defaults = AudioConfig()
    return AudioConfig(
        sample_rate=safe_convert(os.getenv("AUDIO_SAMPLE_RATE"), int, defaults.sample_rate),
        frame_size=safe_convert(os.getenv("AUDIO_FRAME_SIZE"), int, defaults.frame_size),
        start_muted=safe_convert(os.getenv("AUDIO_START_MUTED"), bool, False),
    )


def load_realtime_config() -> RealtimeConfig:
    """Load realtime session configuration from environment variables."""
    defaults = RealtimeConfig()
    ttl = safe_string_or_none(os.getenv("PENDING_COMMAND_TTL"))
    return RealtimeConfig(
        voice=os.getenv("VOICE", VOICE),
        temperature=safe_convert(
            os.getenv("REALTIME_TEMPERATURE"), float, defaults.temperature
        ),
        transcription_model=os.getenv(
            "TRANSCRIPTION_MODEL", defaults.transcription_model
        ),
        vad_threshold=safe_convert(
            os.getenv("VAD_THRESHOLD"), float, defaults.vad_threshold
        ),
        vad_prefix_padding_ms=safe_convert(
            os.getenv("VAD_PREFIX_PADDING_MS"), int, defaults.vad_prefix_padding_ms
        ),
        vad_silence_duration_ms=safe_convert(
            os.getenv("VAD_SILENCE_DURATION_MS"), int, defaults.vad_silence_duration_ms
        ),
        use_function_calling=safe_convert(
            os.getenv("USE_FUNCTION_CALLING"), bool, defaults.use_function_calling
        ),
        connect_timeout=safe_convert(
            os.getenv("CONNECT_TIMEOUT"), float, defaults.connect_timeout
        ),
        capture_start_timeout=safe_convert(
            os.getenv("CAPTURE_START_TIMEOUT"), float, defaults.capture_start_timeout
        ),
        pending_command_ttl=safe_convert(ttl, float, None) if ttl else None,
        slot_duration_minutes=safe_convert(
            os.getenv("SLOT_DURATION_MINUTES"), int, defaults.slot_duration_minutes
        ),
    )


def load_bootstrap_config() -> BootstrapConfig:
    """Load the session bootstrap endpoint configuration."""
    return BootstrapConfig(
        url=safe_string_or_none(os.getenv("VOICE_BOOTSTRAP_URL")),
        auth_token=safe_string_or_none(os.getenv("VOICE_BOOTSTRAP_TOKEN")),
        timeout=safe_convert(os.getenv("VOICE_BOOTSTRAP_TIMEOUT"), float, 10.0),
    )


def load_notification_config() -> NotificationConfig:
    """Load notification webhook configuration."""
    return NotificationConfig(
        webhook_url=safe_string_or_none(os.getenv("N8N_WEBHOOK_URL")),
        enabled=safe_convert(os.getenv("NOTIFICATIONS_ENABLED"), bool, True),
        group_name=os.getenv("NOTIFICATION_GROUP", DEFAULT_NOTIFICATION_GROUP),
        timeout=safe_convert(os.getenv("NOTIFICATION_TIMEOUT"), float, 10.0),
    )


def load_ledger_config() -> LedgerConfig:
    """Load tenant identity configuration."""
    defaults = LedgerConfig()
    return LedgerConfig(
        sheet_id=os.getenv("GOOGLE_SHEET_ID", defaults.sheet_id),
        user_id=os.getenv("LEDGER_USER_ID", defaults.user_id),
        user_name=os.getenv("LEDGER_USER_NAME", defaults.user_name),
    )


def load_logging_config() -> LoggingConfig:
    """Load logging configuration from environment variables."""
    level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    try:
        level = LogLevel(level_str)
    except ValueError:
        level = LogLevel.INFO

    return LoggingConfig(
        level=level,
        log_dir=safe_convert(os.getenv("LOG_DIR"), Path, Path("logs")),
    )


def load_application_config() -> ApplicationConfig:
    """Load complete application configuration from environment variables."""
    return ApplicationConfig(
        openai=load_openai_config(),
        audio=load_audio_config(),
        realtime=load_realtime_config(),
        bootstrap=load_bootstrap_config(),
        notification=load_notification_config(),
        ledger=load_ledger_config(),
        logging=load_logging_config(),
    )
