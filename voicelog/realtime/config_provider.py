"""
Session bootstrap providers.

Before every connection attempt the session asks a provider for a fresh
``SessionBootstrap``: the WebSocket URL, the credential and the session
configuration. Nothing is cached between attempts, so a rotated key or
changed settings take effect on the next connect.

- ``StaticSessionConfigProvider`` builds it from the application config.
- ``HttpSessionConfigProvider`` fetches it from the ledger backend, which
  answers ``{"success": true, "data": {"url", "apiKey", "sessionConfig"}}``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from voicelog.config.logging_config import configure_logging
from voicelog.config.models import ApplicationConfig, BootstrapConfig
from voicelog.errors import SessionBootstrapError
from voicelog.models.openai_api import (
    InputAudioTranscription,
    SessionConfig,
    TurnDetection,
)
from voicelog.models.tool_models import get_ledger_tools
from voicelog.realtime.prompts import build_instructions

logger = configure_logging("voicelog.config_provider")


@dataclass(frozen=True)
class SessionBootstrap:
    """Everything needed to open one realtime connection."""

    url: str
    credential: str
    session: SessionConfig

    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.credential}",
            "OpenAI-Beta": "realtime=v1",
        }


class SessionConfigProvider(ABC):
    @abstractmethod
    async def fetch(self) -> SessionBootstrap:
        """
        Produce the bootstrap for a new connection attempt.

        Raises:
            SessionBootstrapError: If no usable configuration is available
        """


def build_session_config(config: ApplicationConfig) -> SessionConfig:
    """Session configuration derived from local settings."""
    realtime = config.realtime
    use_functions = realtime.use_function_calling
    return SessionConfig(
        modalities=["text", "audio"],
        instructions=build_instructions(use_functions),
        voice=realtime.voice,
        input_audio_transcription=InputAudioTranscription(
            model=realtime.transcription_model
        ),
        turn_detection=TurnDetection(
            type=realtime.vad_type,
            threshold=realtime.vad_threshold,
            prefix_padding_ms=realtime.vad_prefix_padding_ms,
            silence_duration_ms=realtime.vad_silence_duration_ms,
        ),
        tools=get_ledger_tools() if use_functions else [],
        tool_choice="auto" if use_functions else "none",
        temperature=realtime.temperature,
    )


class StaticSessionConfigProvider(SessionConfigProvider):
    """Bootstrap from ``ApplicationConfig`` (``OPENAI_API_KEY`` and friends)."""

    def __init__(self, config: ApplicationConfig):
        self.config = config

    async def fetch(self) -> SessionBootstrap:
        openai_config = self.config.openai
        if not openai_config.api_key:
            raise SessionBootstrapError("OpenAI API key not configured")
        return SessionBootstrap(
            url=openai_config.get_websocket_url(),
            credential=openai_config.api_key,
            session=build_session_config(self.config),
        )


class HttpSessionConfigProvider(SessionConfigProvider):
    """Bootstrap from the ledger backend's voice endpoint."""

    def __init__(
        self,
        bootstrap: BootstrapConfig,
        fallback_session: Optional[SessionConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not bootstrap.url:
            raise ValueError("Bootstrap URL is required")
        self.bootstrap = bootstrap
        self.fallback_session = fallback_session or SessionConfig()
        self._transport = transport
        self.last_payload: Optional[Dict[str, Any]] = None

    async def fetch(self) -> SessionBootstrap:
        headers = {"Accept": "application/json"}
        if self.bootstrap.auth_token:
            headers["Authorization"] = f"Bearer {self.bootstrap.auth_token}"

        try:
            async with httpx.AsyncClient(
                timeout=self.bootstrap.timeout, transport=self._transport
            ) as client:
                response = await client.get(self.bootstrap.url, headers=headers)
                try:
                    response.raise_for_status()
                except httpx.HTTPStatusError as e:
                    raise SessionBootstrapError(
                        _server_error(response)
                        or f"Bootstrap failed with HTTP {response.status_code}"
                    ) from e
                payload = response.json()
        except httpx.HTTPError as e:
            raise SessionBootstrapError(f"Could not reach bootstrap endpoint: {e}") from e
        except ValueError as e:
            raise SessionBootstrapError(f"Bootstrap endpoint returned invalid JSON: {e}") from e

        if not isinstance(payload, dict) or not payload.get("success"):
            error = payload.get("error") if isinstance(payload, dict) else None
            raise SessionBootstrapError(error or "Bootstrap endpoint reported failure")

        data = payload.get("data") or {}
        url = data.get("url")
        credential = data.get("apiKey")
        if not url or not credential:
            raise SessionBootstrapError("Bootstrap response is missing url or apiKey")

        session_data = data.get("sessionConfig")
        try:
            session = (
                SessionConfig.model_validate(session_data)
                if session_data
                else self.fallback_session
            )
        except ValidationError as e:
            raise SessionBootstrapError(f"Invalid session configuration: {e}") from e

        self.last_payload = data
        logger.info(f"Fetched session bootstrap for {data.get('username') or 'unknown user'}")
        return SessionBootstrap(url=url, credential=credential, session=session)


def _server_error(response: httpx.Response) -> Optional[str]:
    """The ``error`` text of a failed bootstrap response, if it has one."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return None
