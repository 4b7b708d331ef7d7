"""Notification port: abstract interface for delivering reminders.

The reminder evaluator depends on this protocol, never on a specific
messaging provider.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from backoffice.data.models import ReminderDefinition, TelegramCredentials


class NotificationPort(Protocol):
    """Abstract notifier. Both calls report success as a bool and never retry."""

    async def send(
        self, credentials: TelegramCredentials, reminder: ReminderDefinition,
    ) -> bool: ...

    async def send_text(self, credentials: TelegramCredentials, text: str) -> bool: ...
