"""
Back-Office State Gateway.

Maps each resource operation to document-store calls. Validation is
shallow: required fields are checked, defaults are filled, nested
structures are stored as the client sent them. Missing documents read as
well-formed defaults rather than not-found errors, except for records
addressed by a generated id (reminders, suppliers).

All methods take and return plain wire dicts; the HTTP layer is a thin
adapter over this class.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from backoffice.core.errors import (
    CredentialsMissing,
    NotFoundError,
    UpstreamNotificationError,
    ValidationError,
)
from backoffice.core.reminder_evaluator import load_credentials
from backoffice.core.save_guard import SaveGuard
from backoffice.data.db import (
    BackupDB,
    DocumentStore,
    LocationDB,
    OrderDB,
    ReminderDB,
    ScheduleDB,
    SettingsDB,
    SupplierDB,
    utc_now_iso,
)
from backoffice.data.models import (
    LocationState,
    Order,
    OrderItem,
    ReminderDefinition,
    ReminderType,
    ScheduleConfig,
    ScheduleWeek,
    Supplier,
    TelegramCredentials,
    default_shift_hours,
    record_list,
)

if TYPE_CHECKING:
    from backoffice.config import Settings
    from backoffice.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


def new_id(prefix: str) -> str:
    """Opaque unique id, e.g. 'rem-1717171717171-3f9a0c2b1'."""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def _require_body(body: dict | None) -> dict:
    # An empty object is a valid body; only an absent one is missing
    if body is None:
        raise ValidationError("Missing data")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


class StateGateway:
    """Resource operations over the document store."""

    def __init__(
        self,
        store: DocumentStore,
        notifier: NotificationPort,
        config: Settings | None = None,
    ) -> None:
        if config is None:
            from backoffice.config import settings
            config = settings
        self._config = config
        self._notifier = notifier

        self.locations = LocationDB(store)
        self.backups = BackupDB(store, retention_days=config.BACKUP_RETENTION_DAYS)
        self.schedules = ScheduleDB(store)
        self.reminders = ReminderDB(store)
        self.suppliers = SupplierDB(store)
        self.orders = OrderDB(store)
        self.settings = SettingsDB(store)
        self.save_guard = SaveGuard(self.locations, self.backups)

    # -- locations ------------------------------------------------------------

    def _check_location(self, location_id: str) -> None:
        if location_id not in self._config.LOCATION_IDS:
            raise NotFoundError(f"Unknown location: {location_id}")

    def get_location(self, location_id: str) -> dict:
        self._check_location(location_id)
        state = self.locations.get(location_id)
        if state is None:
            state = LocationState(id=location_id)
        return state.to_dict()

    def save_location(self, location_id: str, body: dict | None) -> dict:
        self._check_location(location_id)
        body = _require_body(body)
        try:
            proposed = LocationState.from_dict(location_id, body)
        except ValueError as exc:
            raise ValidationError(str(exc))
        expected = body.get("version")
        saved = self.save_guard.save(
            location_id,
            proposed,
            expected_version=expected if isinstance(expected, int) else None,
        )
        return saved.to_dict()

    # -- schedules ------------------------------------------------------------

    def get_schedule_config(self) -> dict:
        config = self.schedules.get_config()
        if config is None:
            config = ScheduleConfig(shift_hours=default_shift_hours())
        return config.to_dict()

    def save_schedule_config(self, body: dict | None) -> dict:
        body = _require_body(body)
        return self.schedules.save_config(ScheduleConfig.from_dict(body)).to_dict()

    def get_schedule_week(self, week_id: str) -> dict:
        week = self.schedules.get_week(week_id)
        if week is None:
            week = ScheduleWeek(week_start=week_id)
        return week.to_dict()

    def save_schedule_week(self, week_id: str, body: dict | None) -> dict:
        body = _require_body(body)
        return self.schedules.save_week(ScheduleWeek.from_dict(week_id, body)).to_dict()

    # -- reminders ------------------------------------------------------------

    def list_reminders(self) -> list[dict]:
        return [r.to_dict() for r in self.reminders.list_all()]

    def get_reminder(self, reminder_id: str) -> dict:
        reminder = self.reminders.get(reminder_id)
        if reminder is None:
            raise NotFoundError("Reminder not found")
        return reminder.to_dict()

    @staticmethod
    def _parse_reminder(data: dict) -> ReminderDefinition:
        try:
            return ReminderDefinition.from_dict(data)
        except ValueError as exc:
            raise ValidationError(str(exc))

    def create_reminder(self, body: dict | None) -> dict:
        body = _require_body(body)
        if not body.get("title") or not body.get("time"):
            raise ValidationError("Missing required fields: title, time")

        reminder = self._parse_reminder({
            "id": new_id("rem"),
            "title": body["title"],
            "time": body["time"],
            "type": body.get("type") or ReminderType.RECURRING.value,
            "enabled": body.get("enabled"),
            "days": body.get("days"),
            "date": body.get("date"),
            "createdAt": utc_now_iso(),
        })
        self.reminders.put(reminder)
        logger.info("Reminder created: %s '%s' at %s", reminder.id, reminder.title, reminder.time)
        return reminder.to_dict()

    def update_reminder(self, reminder_id: str, body: dict | None) -> dict:
        body = _require_body(body)
        existing = self.reminders.get(reminder_id)
        if existing is None:
            raise NotFoundError("Reminder not found")

        merged = {**existing.to_dict(), **body, "id": reminder_id, "updatedAt": utc_now_iso()}
        reminder = self._parse_reminder(merged)
        self.reminders.put(reminder)
        return reminder.to_dict()

    def delete_reminder(self, reminder_id: str) -> dict:
        if not self.reminders.delete(reminder_id):
            raise NotFoundError("Reminder not found")
        return {"message": "Deleted"}

    # -- backups --------------------------------------------------------------

    def create_backup(self, body: dict | None) -> dict:
        return self.backups.create(_require_body(body))

    def list_backups(self) -> list[dict]:
        return self.backups.list_recent(limit=self._config.BACKUP_LIST_LIMIT)

    # -- telegram -------------------------------------------------------------

    def get_telegram_settings(self) -> dict:
        credentials = load_credentials(self.settings)
        if credentials is None:
            return {"configured": False, "chatId": None}
        return {"configured": True, "chatId": credentials.masked_chat_id}

    def save_telegram_settings(self, body: dict | None) -> dict:
        body = _require_body(body)
        credentials = TelegramCredentials.from_dict(body)
        if credentials is None:
            raise ValidationError("Missing required fields: botToken, chatId")
        self.settings.save_telegram(credentials)
        return {
            "success": True,
            "message": "Telegram settings saved",
            "chatId": credentials.masked_chat_id,
        }

    async def test_telegram(self) -> dict:
        credentials = load_credentials(self.settings)
        if credentials is None:
            raise CredentialsMissing("Telegram not configured. Save settings first.")

        now = datetime.now(timezone.utc).astimezone(ZoneInfo(self._config.TIMEZONE))
        message = (
            "✅ Business Manager Test\n\n"
            "Telegram notifications are working!\n\n"
            f"Time: {now.strftime('%d/%m/%Y %H:%M')}"
        )
        if not await self._notifier.send_text(credentials, message):
            raise UpstreamNotificationError("Telegram API error")
        return {"success": True, "message": "Test message sent successfully"}

    # -- suppliers ------------------------------------------------------------

    def list_suppliers(self, location: str | None = None) -> list[dict]:
        return [s.to_dict() for s in self.suppliers.list_all(location=location)]

    def create_supplier(self, body: dict | None) -> dict:
        body = _require_body(body)
        if not body.get("name"):
            raise ValidationError("Missing required field: name")

        supplier = Supplier(
            id=new_id("sup"),
            name=body["name"],
            phone=body.get("phone") or None,
            notes=body.get("notes") or None,
            location=body.get("location") or self._config.DEFAULT_LOCATION,
            created_at=utc_now_iso(),
        )
        self.suppliers.put(supplier)
        logger.info("Supplier created: %s '%s'", supplier.id, supplier.name)
        return supplier.to_dict()

    def update_supplier(self, supplier_id: str, body: dict | None) -> dict:
        body = _require_body(body)
        supplier = self.suppliers.get(supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier not found")

        supplier.name = body.get("name") or supplier.name
        if "phone" in body:
            supplier.phone = body["phone"]
        if "notes" in body:
            supplier.notes = body["notes"]
        supplier.location = body.get("location") or supplier.location
        supplier.updated_at = utc_now_iso()
        self.suppliers.put(supplier)
        return supplier.to_dict()

    def delete_supplier(self, supplier_id: str) -> dict:
        if not self.suppliers.delete(supplier_id):
            raise NotFoundError("Supplier not found")
        return {"message": "Deleted"}

    # -- orders ---------------------------------------------------------------

    def list_orders(
        self,
        location: str | None = None,
        month: str | None = None,
        supplier: str | None = None,
    ) -> list[dict]:
        orders = self.orders.list_all(location=location, month=month, supplier_id=supplier)
        return [o.to_dict() for o in orders]

    def create_order(self, body: dict | None) -> dict:
        body = _require_body(body)
        try:
            items = [OrderItem.from_dict(i) for i in record_list(body, "items")]
        except ValueError as exc:
            raise ValidationError(str(exc))
        if not items:
            raise ValidationError("Missing required field: items")

        now = datetime.now(timezone.utc)
        order = Order(
            id=new_id("ord"),
            date=body.get("date") or now.date().isoformat(),
            items=items,
            location=body.get("location") or self._config.DEFAULT_LOCATION,
            supplier_id=body.get("supplierId"),
            supplier_name=body.get("supplierName"),
            category_id=body.get("categoryId"),
            category_name=body.get("categoryName"),
            order_text=body.get("orderText"),
            shared_via=body.get("sharedVia") or "manual",
            created_at=now.isoformat(),
        )
        self.orders.put(order)
        logger.info("Order %s created for %s (%d items)", order.id, order.location, len(order.items))
        return order.to_dict()

    def delete_all_orders(self) -> dict:
        return {"deleted": self.orders.delete_all()}
