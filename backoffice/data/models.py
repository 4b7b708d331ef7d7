"""
Back-Office Data Models.

Every document the store holds is represented here as an explicit record.
Wire payloads use camelCase keys; `from_dict` fills defaults at the
boundary so business logic never sees a half-formed document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any


class Weekday(str, Enum):
    """Day names as the client sends them, Sunday first."""

    SUNDAY = "ראשון"
    MONDAY = "שני"
    TUESDAY = "שלישי"
    WEDNESDAY = "רביעי"
    THURSDAY = "חמישי"
    FRIDAY = "שישי"
    SATURDAY = "שבת"

    @classmethod
    def for_date(cls, d: date) -> Weekday:
        # date.weekday() is Monday=0; the enum is ordered Sunday first
        return list(cls)[(d.weekday() + 1) % 7]


class ReminderType(str, Enum):
    RECURRING = "recurring"
    ONE_TIME = "one-time"


class TaskListColor(str, Enum):
    BLUE = "blue"
    GREEN = "green"
    RED = "red"
    ORANGE = "orange"
    PURPLE = "purple"
    YELLOW = "yellow"
    PINK = "pink"
    TEAL = "teal"

    @classmethod
    def parse(cls, value: Any) -> TaskListColor:
        try:
            return cls(value)
        except ValueError:
            return cls.BLUE


def record_list(data: dict, key: str) -> list[dict]:
    """The list of objects under `key`; raises ValueError on any other shape."""
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise ValueError(f"'{key}' must be a list of objects")
    return value


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


# ---------------------------------------------------------------------------
# Location document: inventory + task lists
# ---------------------------------------------------------------------------


@dataclass
class Product:
    id: str
    name: str
    quantity: float = 0.0
    unit: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Product:
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            quantity=_as_float(data.get("quantity", 0)),
            unit=data.get("unit") or "",
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "quantity": self.quantity, "unit": self.unit}


@dataclass
class Category:
    id: str
    name: str
    products: list[Product] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> Category:
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            products=[Product.from_dict(p) for p in record_list(data, "products")],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "products": [p.to_dict() for p in self.products],
        }


@dataclass
class Task:
    id: str
    text: str
    note: str = ""
    done: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> Task:
        return cls(
            id=str(data.get("id", "")),
            text=data.get("text") or "",
            note=data.get("note") or "",
            done=bool(data.get("done", False)),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "text": self.text, "note": self.note, "done": self.done}


@dataclass
class TaskList:
    id: str
    name: str
    color: TaskListColor = TaskListColor.BLUE
    tasks: list[Task] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> TaskList:
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            color=TaskListColor.parse(data.get("color")),
            tasks=[Task.from_dict(t) for t in record_list(data, "tasks")],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color.value,
            "tasks": [t.to_dict() for t in self.tasks],
        }


@dataclass
class LocationState:
    """The shared inventory/task document of one location.

    `version` is a change-detection token for pollers, owned by the store.
    It is not used for conflict resolution: the last write wins.
    """

    id: str
    categories: list[Category] = field(default_factory=list)
    task_lists: list[TaskList] = field(default_factory=list)
    version: int = 0
    updated_at: str | None = None

    @property
    def product_count(self) -> int:
        return sum(len(c.products) for c in self.categories)

    @property
    def task_count(self) -> int:
        return sum(len(t.tasks) for t in self.task_lists)

    @property
    def is_empty(self) -> bool:
        return not self.categories and not self.task_lists

    @classmethod
    def from_dict(cls, location_id: str, data: dict) -> LocationState:
        try:
            version = int(data.get("version") or 0)
        except (TypeError, ValueError):
            version = 0
        return cls(
            id=location_id,
            categories=[Category.from_dict(c) for c in record_list(data, "categories")],
            task_lists=[TaskList.from_dict(t) for t in record_list(data, "taskLists")],
            version=version,
            updated_at=data.get("updatedAt"),
        )

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "categories": [c.to_dict() for c in self.categories],
            "taskLists": [t.to_dict() for t in self.task_lists],
            "version": self.version,
        }
        if self.updated_at:
            d["updatedAt"] = self.updated_at
        return d


@dataclass
class BackupSnapshot:
    """Copy of a location document taken right before it was overwritten."""

    id: str
    location: str
    categories: list[dict]
    task_lists: list[dict]
    version: int
    backup_time: str
    expires_at: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> BackupSnapshot:
        return cls(
            id=data["id"],
            location=data.get("location") or "unknown",
            categories=data.get("categories") or [],
            task_lists=data.get("taskLists") or [],
            version=int(data.get("version") or 0),
            backup_time=data.get("backupTime") or "",
            expires_at=data.get("expiresAt"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location": self.location,
            "categories": self.categories,
            "taskLists": self.task_lists,
            "version": self.version,
            "backupTime": self.backup_time,
            "expiresAt": self.expires_at,
        }


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------


@dataclass
class ReminderDefinition:
    """A Telegram reminder.

    Recurring reminders fire on every day listed in `days`; one-time
    reminders fire on `date` (DD/MM/YYYY) and are disabled once sent.
    """

    id: str
    title: str
    time: str                          # HH:MM in the configured timezone
    type: ReminderType = ReminderType.RECURRING
    enabled: bool = True
    days: list[str] = field(default_factory=list)   # Weekday values
    date: str | None = None            # DD/MM/YYYY, one-time only
    created_at: str = ""
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ReminderDefinition:
        """Build from a wire dict. Raises ValueError on an unusable field."""
        try:
            reminder_type = ReminderType(data.get("type") or ReminderType.RECURRING.value)
        except ValueError:
            raise ValueError(
                f"Invalid reminder type: {data.get('type')!r} (expected 'recurring' or 'one-time')"
            )

        # Only a real boolean counts; "false" as a string is not a flag
        enabled = data.get("enabled")
        if enabled is None:
            enabled = True
        elif not isinstance(enabled, bool):
            raise ValueError("'enabled' must be true or false")

        days = data.get("days")
        if days is None:
            days = []
        elif not isinstance(days, list) or not all(isinstance(d, str) for d in days):
            raise ValueError("'days' must be a list of day names")

        return cls(
            id=data["id"],
            title=data.get("title") or "",
            time=data.get("time") or "",
            type=reminder_type,
            enabled=enabled,
            days=list(days),
            date=data.get("date") or None,
            created_at=data.get("createdAt") or "",
            updated_at=data.get("updatedAt"),
        )

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "title": self.title,
            "time": self.time,
            "type": self.type.value,
            "enabled": self.enabled,
            "days": self.days,
            "date": self.date,
            "createdAt": self.created_at,
        }
        if self.updated_at:
            d["updatedAt"] = self.updated_at
        return d


@dataclass
class SentMarker:
    """Dedup ledger row: one per reminder per calendar day."""

    id: str              # "<reminderId>-<DD-MM-YYYY>"
    reminder_id: str
    sent_at: str         # ISO-8601
    expires_at: int      # epoch seconds

    @classmethod
    def from_dict(cls, data: dict) -> SentMarker:
        return cls(
            id=data["id"],
            reminder_id=data.get("reminderId") or "",
            sent_at=data.get("sentAt") or "",
            expires_at=int(data.get("expiresAt") or 0),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reminderId": self.reminder_id,
            "sentAt": self.sent_at,
            "expiresAt": self.expires_at,
        }


@dataclass
class TelegramCredentials:
    bot_token: str
    chat_id: str

    @property
    def masked_chat_id(self) -> str:
        return f"****{self.chat_id[-4:]}"

    @classmethod
    def from_dict(cls, data: dict) -> TelegramCredentials | None:
        token = data.get("botToken") or ""
        chat_id = str(data.get("chatId") or "")
        if not token or not chat_id:
            return None
        return cls(bot_token=token, chat_id=chat_id)

    def to_dict(self) -> dict:
        return {"botToken": self.bot_token, "chatId": self.chat_id}


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


def default_shift_hours() -> dict:
    return {
        "morning": {"start": "06:30", "end": "12:30"},
        "afternoon": {"start": "12:30", "end": "16:30"},
        "evening": {"start": "16:30", "end": "20:30"},
    }


@dataclass
class ScheduleConfig:
    """Employees and shift-hour template. Nested shapes are client-owned."""

    employees: list = field(default_factory=list)
    shift_hours: dict = field(default_factory=default_shift_hours)
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ScheduleConfig:
        return cls(
            employees=data.get("employees") or [],
            shift_hours=data.get("shiftHours") or {},
            updated_at=data.get("updatedAt"),
        )

    def to_dict(self) -> dict:
        d = {"id": "config", "employees": self.employees, "shiftHours": self.shift_hours}
        if self.updated_at:
            d["updatedAt"] = self.updated_at
        return d


@dataclass
class ScheduleWeek:
    week_start: str
    availability: dict = field(default_factory=dict)
    final_schedule: Any = None
    updated_at: str | None = None

    @property
    def doc_id(self) -> str:
        return f"week-{self.week_start}"

    @classmethod
    def from_dict(cls, week_start: str, data: dict) -> ScheduleWeek:
        return cls(
            week_start=week_start,
            availability=data.get("availability") or {},
            final_schedule=data.get("finalSchedule") or None,
            updated_at=data.get("updatedAt"),
        )

    def to_dict(self) -> dict:
        d = {
            "id": self.doc_id,
            "weekStart": self.week_start,
            "availability": self.availability,
            "finalSchedule": self.final_schedule,
        }
        if self.updated_at:
            d["updatedAt"] = self.updated_at
        return d


# ---------------------------------------------------------------------------
# Suppliers & orders
# ---------------------------------------------------------------------------


@dataclass
class Supplier:
    id: str
    name: str
    location: str
    phone: str | None = None
    notes: str | None = None
    created_at: str = ""
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Supplier:
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            location=data.get("location") or "",
            phone=data.get("phone"),
            notes=data.get("notes"),
            created_at=data.get("createdAt") or "",
            updated_at=data.get("updatedAt"),
        )

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "notes": self.notes,
            "location": self.location,
            "createdAt": self.created_at,
        }
        if self.updated_at:
            d["updatedAt"] = self.updated_at
        return d


@dataclass
class OrderItem:
    name: str
    quantity: float = 0.0
    unit: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> OrderItem:
        return cls(
            name=data.get("name") or "",
            quantity=_as_float(data.get("quantity", 0)),
            unit=data.get("unit") or "",
        )

    def to_dict(self) -> dict:
        return {"name": self.name, "quantity": self.quantity, "unit": self.unit}


@dataclass
class Order:
    """A supplier order that was shared from the inventory screen."""

    id: str
    date: str                          # YYYY-MM-DD
    items: list[OrderItem]
    location: str
    supplier_id: str | None = None
    supplier_name: str | None = None
    category_id: str | None = None
    category_name: str | None = None
    order_text: str | None = None
    shared_via: str = "manual"
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Order:
        return cls(
            id=data["id"],
            date=data.get("date") or "",
            items=[OrderItem.from_dict(i) for i in record_list(data, "items")],
            location=data.get("location") or "",
            supplier_id=data.get("supplierId"),
            supplier_name=data.get("supplierName"),
            category_id=data.get("categoryId"),
            category_name=data.get("categoryName"),
            order_text=data.get("orderText"),
            shared_via=data.get("sharedVia") or "manual",
            created_at=data.get("createdAt") or "",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplierId": self.supplier_id,
            "supplierName": self.supplier_name,
            "categoryId": self.category_id,
            "categoryName": self.category_name,
            "date": self.date,
            "items": [i.to_dict() for i in self.items],
            "orderText": self.order_text,
            "location": self.location,
            "sharedVia": self.shared_via,
            "createdAt": self.created_at,
        }
