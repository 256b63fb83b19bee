"""Realtime session and its bootstrap."""

from .config_provider import (
    HttpSessionConfigProvider,
    SessionBootstrap,
    SessionConfigProvider,
    StaticSessionConfigProvider,
)
from .session import ConnectionState, RealtimeSession

__all__ = [
    "ConnectionState",
    "HttpSessionConfigProvider",
    "RealtimeSession",
    "SessionBootstrap",
    "SessionConfigProvider",
    "StaticSessionConfigProvider",
]
