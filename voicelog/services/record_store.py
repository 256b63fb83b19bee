"""Record storage for ledger entries.

The ledger itself lives in an external spreadsheet per tenant; this module
defines the interface the voice pipeline writes through and an in-memory
implementation for local runs and tests.

Example:
    ```python
    store = MemoryRecordStore()
    await store.append("sheet-1", CommandKind.EXPENSE, {"amount": 500, ...})
    rows = await store.list_records("sheet-1", CommandKind.EXPENSE)
    ```
"""

import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from voicelog.config.logging_config import configure_logging
from voicelog.models.records import CommandKind

logger = configure_logging("voicelog.record_store")


class RecordStore(ABC):
    """Append-only store of ledger rows, partitioned by sheet id."""

    @abstractmethod
    async def append(
        self, sheet_id: str, kind: CommandKind, record: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Store one row and return it as stored."""

    @abstractmethod
    async def list_records(
        self, sheet_id: str, kind: Optional[CommandKind] = None
    ) -> List[Dict[str, Any]]:
        """Rows of one sheet, oldest first within each kind, optionally of one kind."""


class MemoryRecordStore(RecordStore):
    """In-memory record store.

    Rows are copied on the way in and out, so callers cannot mutate stored
    data.
    """

    def __init__(self):
        self._sheets: Dict[str, Dict[CommandKind, List[Dict[str, Any]]]] = {}
        self._lock = asyncio.Lock()

    async def append(
        self, sheet_id: str, kind: CommandKind, record: Dict[str, Any]
    ) -> Dict[str, Any]:
        kind = CommandKind(kind)
        stored = copy.deepcopy(record)
        async with self._lock:
            sheet = self._sheets.setdefault(sheet_id, {k: [] for k in CommandKind})
            sheet[kind].append(stored)
        logger.info(f"Stored {kind.value} row in sheet {sheet_id}")
        return copy.deepcopy(stored)

    async def list_records(
        self, sheet_id: str, kind: Optional[CommandKind] = None
    ) -> List[Dict[str, Any]]:
        async with self._lock:
            sheet = self._sheets.get(sheet_id)
            if sheet is None:
                return []
            if kind is not None:
                rows = list(sheet[CommandKind(kind)])
            else:
                rows = [row for k in CommandKind for row in sheet[k]]
        return copy.deepcopy(rows)
