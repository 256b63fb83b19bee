"""
Handlers for realtime events.

Components:
- CommandInterpreter: Turns assistant text and function calls into commands
- FunctionHandler: Executes function calls and sends their results back
- HostBridge: Contract with the application that stores records
- ErrorHandler: Error callbacks and statistics
- parse_stream_event: Server frame deserialization
"""

from .command_interpreter import CommandInterpreter, PendingCommand, PendingState
from .error_handler import ErrorContext, ErrorHandler, ErrorInfo, ErrorSeverity
from .event_parser import parse_stream_event
from .function_handler import FunctionHandler
from .host_bridge import FunctionCall, FunctionCallStatus, FunctionResult, HostBridge

__all__ = [
    "CommandInterpreter",
    "ErrorContext",
    "ErrorHandler",
    "ErrorInfo",
    "ErrorSeverity",
    "FunctionCall",
    "FunctionCallStatus",
    "FunctionHandler",
    "FunctionResult",
    "HostBridge",
    "PendingCommand",
    "PendingState",
    "parse_stream_event",
]
