"""
Group notifications for stored ledger entries.

Each stored record is announced to a chat group by POSTing to a workflow
webhook (n8n), which relays the formatted message. Notifications are best
effort: ``notify()`` never raises and never blocks the caller.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Set

import httpx

from voicelog.config.logging_config import configure_logging
from voicelog.config.models import NotificationConfig

logger = configure_logging("voicelog.notifier")


@dataclass
class Notification:
    type: str
    user_name: str
    amount: float = 0.0
    category: Optional[str] = None
    description: Optional[str] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


def format_inr(amount: float) -> str:
    """Format an amount with Indian digit grouping, e.g. ``1234567`` -> ``12,34,567``."""
    negative = amount < 0
    rounded = round(abs(amount), 2)
    whole = int(rounded)
    fraction = f"{rounded - whole:.2f}"[1:].rstrip("0").rstrip(".")

    digits = str(whole)
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    return f"{'-' if negative else ''}{digits}{fraction}"


def format_timestamp(timestamp: str) -> str:
    """Render an ISO timestamp like ``19 Oct 2026, 3:45 pm``."""
    try:
        moment = datetime.fromisoformat(timestamp)
    except (TypeError, ValueError):
        return str(timestamp)
    hour = moment.hour % 12 or 12
    period = "am" if moment.hour < 12 else "pm"
    return f"{moment.day} {moment.strftime('%b %Y')}, {hour}:{moment.minute:02d} {period}"


def format_notification_message(notification: Notification) -> str:
    """WhatsApp-style message text for one notification."""
    when = format_timestamp(notification.timestamp)
    amount = format_inr(notification.amount)
    category = notification.category or "N/A"
    description = notification.description or "N/A"

    if notification.type == "expense":
        return (
            "🎯 *EXPENSE LOGGED*\n\n"
            f"👤 Agent: {notification.user_name}\n"
            f"💰 Amount: ₹{amount}\n"
            f"📁 Category: {category}\n"
            f"📝 Description: {description}\n"
            f"🕐 Time: {when}\n\n"
            "_Logged via Agent Expense Tracker_"
        )
    if notification.type == "income":
        return (
            "💵 *INCOME RECEIVED*\n\n"
            f"👤 Agent: {notification.user_name}\n"
            f"💰 Amount: ₹{amount}\n"
            f"📁 Source: {category}\n"
            f"📝 Notes: {description}\n"
            f"🕐 Time: {when}\n\n"
            "_Logged via Agent Expense Tracker_"
        )
    if notification.type == "time_log":
        return (
            "⏱️ *TIME LOGGED*\n\n"
            f"👤 Agent: {notification.user_name}\n"
            f"📁 Category: {category}\n"
            f"📝 Slots: {description}\n"
            f"🕐 Time: {when}\n\n"
            "_Logged via Agent Expense Tracker_"
        )
    return (
        "📢 *NOTIFICATION*\n\n"
        f"👤 Agent: {notification.user_name}\n"
        f"💰 Amount: ₹{amount}\n"
        f"📝 {description}\n"
        f"🕐 Time: {when}"
    )


class WebhookNotifier:
    """Posts notifications to the workflow webhook."""

    def __init__(
        self,
        config: NotificationConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport
        self._tasks: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.config.enabled and self.config.webhook_url)

    def build_payload(self, notification: Notification) -> dict:
        return {
            "type": notification.type,
            "message": format_notification_message(notification),
            "userName": notification.user_name,
            "amount": notification.amount,
            "category": notification.category,
            "description": notification.description,
            "timestamp": notification.timestamp,
            "groupName": self.config.group_name,
        }

    async def send(self, notification: Notification) -> bool:
        """POST one notification. Returns False instead of raising on failure."""
        if not self.enabled:
            return False
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.config.webhook_url,
                    json=self.build_payload(notification),
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Notification webhook failed: {e}")
            return False
        logger.debug(f"Sent {notification.type} notification")
        return True

    def notify(self, notification: Notification) -> Optional[asyncio.Task]:
        """Send in the background. Returns the task, or None when disabled."""
        if not self.enabled:
            return None
        task = asyncio.create_task(self.send(notification))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_pending(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
