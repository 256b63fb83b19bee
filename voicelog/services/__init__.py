"""Services package: record storage, notifications and the ledger host bridge."""

from .ledger_bridge import LedgerHostBridge
from .notifier import Notification, WebhookNotifier
from .record_store import MemoryRecordStore, RecordStore

__all__ = [
    "LedgerHostBridge",
    "MemoryRecordStore",
    "Notification",
    "RecordStore",
    "WebhookNotifier",
]
