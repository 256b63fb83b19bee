"""
Host bridge that stores voice commands as ledger rows.

Both completion strategies end here:

- text completion: ``on_command_ready`` schedules persistence in a task and
  returns immediately
- function calls: ``execute_function`` validates, stores and reports back a
  short confirmation that the assistant reads to the user

A time log is stored as one row per slot. Rows are stamped with the date,
month, user and a generated id, appended to the ``RecordStore`` under the
user's sheet id and announced through the ``WebhookNotifier`` without
waiting for it.
"""

import asyncio
import uuid
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import ValidationError

from voicelog.config.constants import DEFAULT_SLOT_DURATION_MINUTES
from voicelog.config.logging_config import configure_logging
from voicelog.config.models import LedgerConfig
from voicelog.handlers.command_interpreter import FUNCTION_KINDS
from voicelog.handlers.host_bridge import FunctionCall, FunctionResult, HostBridge
from voicelog.models.records import CommandKind, validate_fields
from voicelog.services.notifier import Notification, WebhookNotifier, format_inr
from voicelog.services.record_store import RecordStore
from voicelog.utils.time_slots import format_slot_display

logger = configure_logging("voicelog.ledger_bridge")


def _missing_fields(error: ValidationError) -> List[str]:
    names = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        names.append(location or "payload")
    return names


class LedgerHostBridge(HostBridge):
    """
    Persists commands for one user.

    Attributes:
        store: Where rows are appended
        notifier: Optional group notifier
        ledger: Sheet id and user identity stamped on each row
        on_record: Optional callback receiving (kind, row) after each store
    """

    def __init__(
        self,
        store: RecordStore,
        ledger: Optional[LedgerConfig] = None,
        notifier: Optional[WebhookNotifier] = None,
        slot_duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES,
        on_record: Optional[Callable[[CommandKind, Dict[str, Any]], Any]] = None,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.ledger = ledger or LedgerConfig()
        self.notifier = notifier
        self.slot_duration_minutes = slot_duration_minutes
        self.on_record = on_record
        self._today = today
        self._tasks: Set[asyncio.Task] = set()

    async def on_command_ready(self, kind: CommandKind, fields: Dict[str, Any]) -> None:
        task = asyncio.create_task(self._persist_in_background(CommandKind(kind), fields))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _persist_in_background(self, kind: CommandKind, fields: Dict[str, Any]) -> None:
        try:
            await self.record(kind, fields)
        except (ValidationError, ValueError) as e:
            logger.error(f"Rejected {kind.value} command: {e}")

    async def execute_function(self, call: FunctionCall) -> FunctionResult:
        kind = call.kind or FUNCTION_KINDS.get(call.name)
        if kind is None:
            return FunctionResult(False, f"Unknown function '{call.name}'")
        try:
            rows = await self.record(kind, call.arguments)
        except ValidationError as e:
            missing = ", ".join(_missing_fields(e))
            return FunctionResult(False, f"Missing or invalid fields: {missing}")
        except ValueError as e:
            return FunctionResult(False, str(e))
        return FunctionResult(True, self.describe(kind, rows))

    async def record(self, kind: CommandKind, fields: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Validate, stamp and store one command.

        A time log becomes one row per slot; the other kinds store one row.

        Returns:
            The stored rows

        Raises:
            pydantic.ValidationError: If required fields are missing or invalid
        """
        kind = CommandKind(kind)
        normalized = validate_fields(kind, fields, self.slot_duration_minutes)
        if kind == CommandKind.TIME_LOG:
            items = [
                {
                    "timeSlot": entry["slot"],
                    "activity": entry["activity"],
                    "category": entry["category"],
                }
                for entry in normalized["entries"]
            ]
        else:
            items = [normalized]

        rows = []
        for item in items:
            rows.append(await self.store.append(self.ledger.sheet_id, kind, self._stamp(item)))
        logger.info(f"Recorded {len(rows)} {kind.value} row(s) for {self.ledger.user_name}")

        if self.notifier is not None:
            self.notifier.notify(self._notification(kind, rows))
        if self.on_record is not None:
            for row in rows:
                try:
                    outcome = self.on_record(kind, row)
                    if asyncio.iscoroutine(outcome):
                        await outcome
                except Exception as e:
                    logger.error(f"Error in record callback: {e}")
        return rows

    def _stamp(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        today = self._today()
        row = dict(fields)
        row.update(
            {
                "id": uuid.uuid4().hex,
                "date": today.isoformat(),
                "month": today.strftime("%B"),
                "userId": self.ledger.user_id,
                "userName": self.ledger.user_name,
            }
        )
        return row

    def _notification(self, kind: CommandKind, rows: List[Dict[str, Any]]) -> Notification:
        row = rows[0]
        if kind == CommandKind.EXPENSE:
            return Notification(
                type=kind.value,
                user_name=self.ledger.user_name,
                amount=row["amount"],
                category=row["category"],
                description=row["description"],
            )
        if kind == CommandKind.INCOME:
            return Notification(
                type=kind.value,
                user_name=self.ledger.user_name,
                amount=row["amount"],
                category=row["source"],
                description=row.get("notes"),
            )
        return Notification(
            type=kind.value,
            user_name=self.ledger.user_name,
            category=", ".join(sorted({r["category"] for r in rows})),
            description="; ".join(
                f"{format_slot_display(r['timeSlot'])} {r['activity']}" for r in rows
            ),
        )

    @staticmethod
    def describe(kind: CommandKind, rows: List[Dict[str, Any]]) -> str:
        """Short confirmation read back to the user."""
        row = rows[0]
        if kind == CommandKind.EXPENSE:
            return (
                f"Logged expense of ₹{format_inr(row['amount'])} for {row['description']} "
                f"({row['category']}, {row['paymentMode']})"
            )
        if kind == CommandKind.INCOME:
            return (
                f"Logged income of ₹{format_inr(row['amount'])} from {row['receivedFrom']} "
                f"into {row['receivedIn']}"
            )
        count = len(rows)
        return f"Logged {count} time slot{'s' if count != 1 else ''}"

    async def wait_pending(self) -> None:
        """Wait for background persistence started by ``on_command_ready``."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
