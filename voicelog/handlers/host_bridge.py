"""
Contract between the voice pipeline and the application that stores records.

The session calls the host in two ways:

- ``on_command_ready(kind, fields)`` when the assistant's text stream
  produced a complete record
- ``execute_function(call)`` when the model invoked one of the ledger tools

Neither may block the dispatch loop for long. Slow persistence belongs in a
task the host schedules itself.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from voicelog.models.records import CommandKind


class FunctionCallStatus(Enum):
    """Lifecycle of a remote-invoked function call."""

    RECEIVED = "received"
    EXECUTED = "executed"
    RESULT_SENT = "result_sent"
    ABANDONED = "abandoned"


@dataclass
class FunctionResult:
    """Outcome of a function call, shown to the user and sent back to the model."""

    success: bool
    message: str

    def to_output(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message}


@dataclass
class FunctionCall:
    """One function invocation requested by the model.

    ``arguments`` is the parsed form of ``args_json``; it is empty when the
    argument string could not be parsed.
    """

    call_id: str
    name: str
    args_json: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    kind: Optional[CommandKind] = None
    status: FunctionCallStatus = FunctionCallStatus.RECEIVED
    result: Optional[FunctionResult] = None


class HostBridge(ABC):
    """Application side of the voice pipeline."""

    @abstractmethod
    async def on_command_ready(self, kind: CommandKind, fields: Dict[str, Any]) -> None:
        """Called once per completed text-strategy command."""

    @abstractmethod
    async def execute_function(self, call: FunctionCall) -> FunctionResult:
        """Run the named action and describe the outcome."""
