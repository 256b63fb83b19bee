"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for configuration values and making it easier to
maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "voicelog"

# Realtime model and voice defaults
DEFAULT_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_BASE_URL = "wss://api.openai.com"
VOICE = "alloy"
DEFAULT_TEMPERATURE = 0.8
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"

# Audio constants (OpenAI Realtime API wire format)
DEFAULT_SAMPLE_RATE = 24000  # 24kHz
DEFAULT_CHANNELS = 1  # Mono
DEFAULT_BITS_PER_SAMPLE = 16  # 16-bit PCM
DEFAULT_FRAME_SIZE = 2400  # samples per capture frame, 100ms at 24kHz
WIRE_AUDIO_FORMAT = "pcm16"

# Server VAD defaults
DEFAULT_VAD_TYPE = "server_vad"
DEFAULT_VAD_THRESHOLD = 0.5
DEFAULT_VAD_PREFIX_PADDING_MS = 300
DEFAULT_VAD_SILENCE_DURATION_MS = 500

# Session timing
DEFAULT_CONNECT_TIMEOUT = 15.0  # seconds
DEFAULT_CAPTURE_START_TIMEOUT = 20.0  # seconds

# Time log slots
DEFAULT_SLOT_DURATION_MINUTES = 60

# Ledger vocabularies offered to the assistant
EXPENSE_CATEGORIES = [
    "TRANSPORTATION",
    "FOOD & DINING",
    "ACCOMMODATION",
    "COMMUNICATION",
    "ENTERTAINMENT",
    "HEALTHCARE",
    "OFFICE SUPPLIES",
    "TRAVEL",
    "UTILITIES",
    "MISCELLANEOUS",
]

INCOME_SOURCES = [
    "COMPANY",
    "INVESTMENT",
    "ALLOWANCE",
    "REIMBURSEMENT",
    "BONUS",
    "OTHER",
]

PAYMENT_MODES = [
    "CASH",
    "CREDIT CARD",
    "DEBIT CARD",
    "BANK TRANSFER",
    "MOBILE PAYMENT",
    "SBM ACC",
    "IDFC",
    "OTHER",
]

RECEIVED_IN_ACCOUNTS = ["SBM ACC", "IDFC", "CASH", "OTHERS"]

NEED_WANT_VALUES = ["NEED", "WANT"]

# Notification defaults
DEFAULT_NOTIFICATION_GROUP = "Company Expenses"
