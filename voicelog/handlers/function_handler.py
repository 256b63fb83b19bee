"""
Function Call Handler for OpenAI Realtime API Integration

Manages the lifecycle of function calls made by the realtime model:

    1. ``response.function_call_arguments.done`` arrives with a call id, the
       function name and the argument string
    2. The ``CommandInterpreter`` turns it into a ``FunctionCall``
    3. The host executes it in a background task so the dispatch loop keeps
       reading events
    4. The result is sent back as a ``function_call_output`` conversation
       item with the same call id, followed by ``response.create`` so the
       assistant can confirm to the user

Each call id gets exactly one result. Calls still running when the session
closes are abandoned and their results are never sent.

Usage Example:
    ```python
    handler = FunctionHandler(session.send_event, host_bridge, interpreter)
    await handler.handle_arguments_done(event)
    ```
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from voicelog.config.logging_config import configure_logging
from voicelog.handlers.command_interpreter import CommandInterpreter
from voicelog.handlers.error_handler import ErrorContext, ErrorHandler, ErrorSeverity
from voicelog.handlers.host_bridge import (
    FunctionCall,
    FunctionCallStatus,
    FunctionResult,
    HostBridge,
)
from voicelog.models.openai_api import (
    ClientEvent,
    ConversationItemCreateEvent,
    FunctionCallOutputItem,
    ResponseCreateEvent,
)
from voicelog.models.stream_events import FunctionCallArgumentsDone

logger = configure_logging("voicelog.function_handler")


class FunctionHandler:
    """
    Executes model-invoked functions through the host and reports results.

    Attributes:
        calls: Every call seen this session, keyed by call id
        on_function_result: Optional callback receiving (call, result), used
            to show the outcome to the user
    """

    def __init__(
        self,
        send_event: Callable[[ClientEvent], Awaitable[None]],
        host_bridge: HostBridge,
        interpreter: CommandInterpreter,
        error_handler: Optional[ErrorHandler] = None,
        on_function_result: Optional[Callable[[FunctionCall, FunctionResult], Any]] = None,
    ):
        self.send_event = send_event
        self.host_bridge = host_bridge
        self.interpreter = interpreter
        self.error_handler = error_handler
        self.on_function_result = on_function_result
        self.calls: Dict[str, FunctionCall] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def active_calls(self) -> int:
        return len(self._tasks)

    async def handle_arguments_done(
        self, event: FunctionCallArgumentsDone
    ) -> Optional[FunctionCall]:
        """
        Start executing a finished function call.

        Returns:
            The new FunctionCall, or None if it was ignored (missing or
            repeated call id, or the handler is closed)
        """
        if self._closed:
            logger.warning(f"Ignoring function call {event.call_id} after close")
            return None
        if not event.call_id:
            logger.warning(f"Function call '{event.name}' received without call_id")
            return None
        if event.call_id in self.calls:
            logger.warning(f"Duplicate function call id {event.call_id}, ignoring")
            return None

        call = self.interpreter.interpret_function_call(
            event.call_id, event.name, event.args_json
        )
        self.calls[call.call_id] = call
        logger.info(f"Executing function {call.name} ({call.call_id}) with {call.arguments}")

        # Run function out-of-band
        task = asyncio.create_task(self._execute_and_respond(call))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return call

    async def _execute_and_respond(self, call: FunctionCall) -> None:
        try:
            result = await self.host_bridge.execute_function(call)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Function {call.name} failed: {e}")
            result = FunctionResult(success=False, message=str(e))

        if self._closed or call.status == FunctionCallStatus.ABANDONED:
            logger.info(f"Discarding result of abandoned call {call.call_id}")
            return

        call.result = result
        call.status = FunctionCallStatus.EXECUTED

        try:
            await self.send_event(
                ConversationItemCreateEvent(
                    item=FunctionCallOutputItem(
                        call_id=call.call_id,
                        output=json.dumps(result.to_output()),
                    )
                )
            )
            call.status = FunctionCallStatus.RESULT_SENT
            # Let the assistant continue the conversation
            await self.send_event(ResponseCreateEvent())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Could not send result of {call.call_id}: {e}")
            if self.error_handler is not None:
                await self.error_handler.handle_error(
                    e,
                    ErrorContext.TRANSPORT,
                    ErrorSeverity.MEDIUM,
                    operation="send_function_result",
                    call_id=call.call_id,
                )

        logger.info(f"Function {call.name} result: {result.message}")
        if self.on_function_result is not None:
            try:
                outcome = self.on_function_result(call, result)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Error in function result callback: {e}")

    async def wait_for_pending(self) -> None:
        """Wait until every running call has finished."""
        current = asyncio.current_task()
        while True:
            tasks = [task for task in self._tasks if task is not current]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def abandon_all(self) -> int:
        """Cancel running calls; their results will never be sent.

        Returns:
            Number of calls abandoned
        """
        self._closed = True
        abandoned = 0
        for call in self.calls.values():
            if call.status == FunctionCallStatus.RECEIVED:
                call.status = FunctionCallStatus.ABANDONED
                abandoned += 1

        # A result callback may close the session from inside its own call task
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

        if abandoned:
            logger.info(f"Abandoned {abandoned} in-flight function calls")
        return abandoned

    def reopen(self) -> None:
        """Accept calls again after a reconnect."""
        self._closed = False
        self.calls.clear()
