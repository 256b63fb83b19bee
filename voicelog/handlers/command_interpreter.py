"""
Slot-filling interpreter for voice commands.

The assistant collects the fields of an expense, income or time-log entry
over several turns. It reports the finished entry in one of two ways, and
this module handles both:

1. Text completion: the assistant writes a JSON object such as
   ``{"type":"expense","amount":500,...}`` into its response text. Text
   deltas are accumulated until a balanced object appears; the object is
   validated and staged as a complete ``PendingCommand``. ``flush()``, called
   when the response ends, hands staged commands to the host.
2. Function calls: the model calls ``log_expense`` / ``log_income`` /
   ``log_time``. The arguments are parsed tolerantly and returned as a
   ``FunctionCall`` for the ``FunctionHandler`` to execute.

Incomplete payloads are dropped. Missing required fields are never filled
with defaults; the assistant is expected to ask the user again.
"""

import json
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from voicelog.config.constants import DEFAULT_SLOT_DURATION_MINUTES
from voicelog.config.logging_config import configure_logging
from voicelog.handlers.error_handler import ErrorContext, ErrorHandler, ErrorSeverity
from voicelog.handlers.host_bridge import FunctionCall, HostBridge
from voicelog.models.records import CommandKind, parse_kind, validate_fields

logger = configure_logging("voicelog.interpreter")

FUNCTION_KINDS: Dict[str, CommandKind] = {
    "log_expense": CommandKind.EXPENSE,
    "log_income": CommandKind.INCOME,
    "log_time": CommandKind.TIME_LOG,
}

_TYPE_FIELD_RE = re.compile(r'"type"\s*:\s*"([^"]+)"')


class PendingState(Enum):
    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    COMPLETE = "complete"


@dataclass
class PendingCommand:
    """Fields collected so far for one kind of command."""

    kind: CommandKind
    fields: Dict[str, Any] = field(default_factory=dict)
    state: PendingState = PendingState.EMPTY
    updated_at: float = 0.0

    def clear(self) -> None:
        self.fields = {}
        self.state = PendingState.EMPTY
        self.updated_at = 0.0


def parse_function_args(args_json: Any) -> Dict[str, Any]:
    """Parse a function argument string, returning {} when it is unusable."""
    if isinstance(args_json, dict):
        return args_json
    if not args_json:
        return {}
    try:
        parsed = json.loads(args_json)
    except (TypeError, ValueError) as e:
        logger.warning(f"Could not parse function arguments {args_json!r}: {e}")
        return {}
    if not isinstance(parsed, dict):
        logger.warning(f"Function arguments are not an object: {args_json!r}")
        return {}
    return parsed


def scan_json_objects(text: str) -> Tuple[List[str], str]:
    """Split balanced top-level JSON objects out of free text.

    Braces inside string literals are ignored. Text outside objects is
    dropped.

    Returns:
        (complete object texts, unfinished object text or "")
    """
    objects = []
    depth = 0
    in_string = False
    escaped = False
    start = -1

    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            if depth > 0:
                in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                objects.append(text[start : index + 1])
                start = -1

    remainder = text[start:] if depth > 0 else ""
    return objects, remainder


class CommandInterpreter:
    """
    Turns assistant output into completed commands.

    Attributes:
        host_bridge: Receives completed text-strategy commands on ``flush()``
        pending_ttl_seconds: Seconds after which an unfinished command is
            dropped. None keeps it until the response ends.
        last_user_transcript: Most recent user utterance
    """

    def __init__(
        self,
        host_bridge: Optional[HostBridge] = None,
        pending_ttl_seconds: Optional[float] = None,
        slot_duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES,
        error_handler: Optional[ErrorHandler] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.host_bridge = host_bridge
        self.pending_ttl_seconds = pending_ttl_seconds
        self.slot_duration_minutes = slot_duration_minutes
        self.error_handler = error_handler
        self._clock = clock
        self._buffer = ""
        self._last_text_at: Optional[float] = None
        self._pending: Dict[CommandKind, PendingCommand] = {
            kind: PendingCommand(kind) for kind in CommandKind
        }
        self.last_user_transcript: Optional[str] = None

    def pending(self, kind: CommandKind) -> PendingCommand:
        return self._pending[CommandKind(kind)]

    @property
    def buffer(self) -> str:
        return self._buffer

    def note_user_transcript(self, text: str) -> None:
        """Remember what the user last said."""
        self.last_user_transcript = text
        logger.debug(f"User said: {text}")

    # Text-completion strategy

    def feed_text(self, delta: str) -> List[CommandKind]:
        """
        Add a fragment of assistant text.

        Returns:
            Kinds whose pending command became complete during this call
        """
        now = self._clock()
        self._expire_stale(now)
        self._last_text_at = now

        self._buffer += delta
        objects, remainder = scan_json_objects(self._buffer)
        self._buffer = remainder

        completed = []
        for text in objects:
            kind = self._accept_object(text, now)
            if kind is not None:
                completed.append(kind)

        if remainder:
            self._mark_accumulating(remainder, now)
        return completed

    def _mark_accumulating(self, partial: str, now: float) -> None:
        match = _TYPE_FIELD_RE.search(partial)
        if not match:
            return
        kind = parse_kind(match.group(1))
        if kind is None:
            return
        pending = self._pending[kind]
        if pending.state == PendingState.EMPTY:
            pending.state = PendingState.ACCUMULATING
            pending.updated_at = now

    def _accept_object(self, text: str, now: float) -> Optional[CommandKind]:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Dropping malformed command JSON: {e}")
            return None

        kind = parse_kind(data.get("type")) if isinstance(data, dict) else None
        if kind is None:
            logger.debug(f"Ignoring JSON object without a known command type: {text}")
            return None

        pending = self._pending[kind]
        try:
            fields = validate_fields(kind, data, self.slot_duration_minutes)
        except (ValidationError, ValueError) as e:
            logger.info(f"Discarding incomplete {kind.value} command: {e}")
            if pending.state == PendingState.ACCUMULATING:
                pending.clear()
            return None

        if pending.state == PendingState.COMPLETE:
            logger.info(f"Replacing staged {kind.value} command with a newer one")
        pending.fields = fields
        pending.state = PendingState.COMPLETE
        pending.updated_at = now
        logger.info(f"{kind.value} command complete: {fields}")
        return kind

    def _expire_stale(self, now: float) -> None:
        if self.pending_ttl_seconds is None or self._last_text_at is None:
            return
        if now - self._last_text_at <= self.pending_ttl_seconds:
            return
        expired = False
        for pending in self._pending.values():
            if pending.state == PendingState.ACCUMULATING:
                pending.clear()
                expired = True
        if self._buffer:
            self._buffer = ""
            expired = True
        if expired:
            logger.info("Dropped unfinished command text after inactivity")

    async def flush(self) -> List[Tuple[CommandKind, Dict[str, Any]]]:
        """
        Deliver every complete command to the host exactly once.

        Unfinished text is discarded. Returns the delivered (kind, fields)
        pairs.
        """
        self._buffer = ""
        delivered = []
        for kind, pending in self._pending.items():
            if pending.state == PendingState.ACCUMULATING:
                pending.clear()
                continue
            if pending.state != PendingState.COMPLETE:
                continue

            fields = pending.fields
            pending.clear()
            delivered.append((kind, fields))
            if self.host_bridge is None:
                continue
            try:
                await self.host_bridge.on_command_ready(kind, fields)
            except Exception as e:
                if self.error_handler is None:
                    raise
                await self.error_handler.handle_error(
                    e,
                    ErrorContext.HOST,
                    ErrorSeverity.MEDIUM,
                    operation="on_command_ready",
                    kind=kind.value,
                )
        return delivered

    # Function-call strategy

    def interpret_function_call(
        self, call_id: str, name: str, args_json: str
    ) -> FunctionCall:
        """Build a ``FunctionCall`` from a finished argument stream."""
        kind = FUNCTION_KINDS.get(name)
        if kind is not None:
            self.cancel(kind)
        return FunctionCall(
            call_id=call_id,
            name=name,
            args_json=args_json,
            arguments=parse_function_args(args_json),
            kind=kind,
        )

    # Cancellation

    def cancel(self, kind: Optional[CommandKind] = None) -> None:
        """Forget pending state for one kind, or for all kinds and the text buffer."""
        if kind is not None:
            self._pending[CommandKind(kind)].clear()
            return
        for pending in self._pending.values():
            pending.clear()
        self._buffer = ""

    def reset(self) -> None:
        self.cancel()
        self._last_text_at = None
        self.last_user_transcript = None
