"""
Back-Office Reminder Evaluator.

Runs once per scheduler tick (nominally every minute). Each tick is
stateless: it reads the enabled reminders, picks the ones due at the
current minute, and delivers each at most once per calendar day. The only
state carried between ticks is the sent-marker ledger.

Matching is exact: a reminder set for 09:01 fires only on the tick that
sees 09:01. A tick that runs late or is skipped misses that reminder for
the day; there is no catch-up window.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from backoffice.data.models import ReminderDefinition, ReminderType, TelegramCredentials, Weekday

if TYPE_CHECKING:
    from backoffice.data.db import ReminderDB, SentReminderDB, SettingsDB
    from backoffice.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pure matching logic
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EvaluationInstant:
    """The current minute as reminders see it, in the configured timezone."""

    time: str          # HH:MM
    day: Weekday
    date: str          # DD/MM/YYYY
    epoch: float

    @classmethod
    def at(cls, now: datetime, tz: ZoneInfo | str) -> EvaluationInstant:
        """Resolve `now` in `tz`. Naive datetimes are taken as already local."""
        if isinstance(tz, str):
            tz = ZoneInfo(tz)
        local = now.astimezone(tz) if now.tzinfo else now.replace(tzinfo=tz)
        return cls(
            time=local.strftime("%H:%M"),
            day=Weekday.for_date(local.date()),
            date=local.strftime("%d/%m/%Y"),
            epoch=local.timestamp(),
        )

    @property
    def sent_key_date(self) -> str:
        return self.date.replace("/", "-")


def is_due(reminder: ReminderDefinition, instant: EvaluationInstant) -> bool:
    """True if `reminder` should fire at `instant`."""
    if not reminder.enabled or reminder.time != instant.time:
        return False
    if reminder.type == ReminderType.RECURRING:
        return instant.day.value in reminder.days
    if reminder.type == ReminderType.ONE_TIME:
        return reminder.date == instant.date
    return False


def sent_key(reminder_id: str, instant: EvaluationInstant) -> str:
    """Dedup key: reminder id + calendar date, e.g. 'rem-1-05-01-2025'."""
    return f"{reminder_id}-{instant.sent_key_date}"


def load_credentials(settings_db: SettingsDB) -> TelegramCredentials | None:
    """Saved credentials first, then the TELEGRAM_* environment fallback."""
    credentials = settings_db.get_telegram()
    if credentials is None:
        from backoffice.config import settings
        credentials = TelegramCredentials.from_dict({
            "botToken": settings.TELEGRAM_BOT_TOKEN,
            "chatId": settings.TELEGRAM_CHAT_ID,
        })
    return credentials


# ---------------------------------------------------------------------------
# Tick
# ---------------------------------------------------------------------------


@dataclass
class TickReport:
    """Counts reported at the end of every tick."""

    checked: int = 0
    due: int = 0
    sent: int = 0
    already_sent: int = 0
    failed: int = 0
    time: str = ""
    day: str = ""
    skipped_reason: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


class ReminderEvaluator:
    """Decides which reminders are due and hands them to the notifier."""

    def __init__(
        self,
        reminder_db: ReminderDB,
        sent_db: SentReminderDB,
        settings_db: SettingsDB,
        notifier: NotificationPort,
        timezone: str | None = None,
    ) -> None:
        if timezone is None:
            from backoffice.config import settings
            timezone = settings.TIMEZONE
        self._reminders = reminder_db
        self._sent = sent_db
        self._settings = settings_db
        self._notifier = notifier
        self._tz = ZoneInfo(timezone)

    async def tick(self, now: datetime | None = None) -> TickReport:
        """Run one evaluation pass.

        Storage errors propagate and abort the rest of the tick. Every
        reminder is processed independently, so a rerun is safe: reminders
        already marked sent today are skipped.
        """
        instant = EvaluationInstant.at(now or datetime.now(self._tz), self._tz)
        report = TickReport(time=instant.time, day=instant.day.value)
        logger.debug(
            "Reminder tick: time=%s day=%s date=%s", instant.time, instant.day.value, instant.date,
        )

        credentials = load_credentials(self._settings)
        if credentials is None:
            logger.info("Telegram not configured, skipping reminder tick")
            report.skipped_reason = "telegram not configured"
            return report

        reminders = self._reminders.list_enabled()
        report.checked = len(reminders)
        due = [r for r in reminders if is_due(r, instant)]
        report.due = len(due)

        for reminder in due:
            await self._deliver(reminder, instant, credentials, report)

        if report.due:
            logger.info(
                "Reminder tick %s: checked=%d due=%d sent=%d already_sent=%d failed=%d",
                instant.time, report.checked, report.due, report.sent,
                report.already_sent, report.failed,
            )
        return report

    async def _deliver(
        self,
        reminder: ReminderDefinition,
        instant: EvaluationInstant,
        credentials: TelegramCredentials,
        report: TickReport,
    ) -> None:
        key = sent_key(reminder.id, instant)
        if self._sent.was_sent(key, now=instant.epoch):
            logger.debug("Reminder %s already sent today, skipping", reminder.id)
            report.already_sent += 1
            return

        if not await self._notifier.send(credentials, reminder):
            # Not retried: the next tick no longer matches this minute.
            logger.warning("Failed to deliver reminder %s '%s'", reminder.id, reminder.title)
            report.failed += 1
            return

        self._sent.mark_sent(key, reminder.id, now=instant.epoch)
        report.sent += 1
        logger.info("Sent reminder %s '%s'", reminder.id, reminder.title)

        if reminder.type == ReminderType.ONE_TIME:
            self._reminders.disable(reminder.id)
            logger.info("Disabled one-time reminder %s", reminder.id)
