"""
Back-Office Document Store.

A key-value store of whole JSON documents, one SQLite table per collection.
Documents are always read and written whole; there are no joins. Rows may
carry an `expires_at` (epoch seconds): expired rows are invisible to reads
and are deleted by `purge_expired`, the way a managed store's TTL would.

The typed repositories below wrap the store per collection and convert
between wire dicts and the records in `backoffice.data.models`.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path

from backoffice.data.models import (
    BackupSnapshot,
    LocationState,
    Order,
    ReminderDefinition,
    ScheduleConfig,
    ScheduleWeek,
    SentMarker,
    Supplier,
    TelegramCredentials,
)

logger = logging.getLogger(__name__)

_DAY_SECONDS = 24 * 60 * 60

TABLES = (
    "locations",
    "schedules",
    "reminders",
    "sent_reminders",
    "backups",
    "suppliers",
    "orders",
    "settings",
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DocumentStore:
    """SQLite-backed storage for whole JSON documents keyed by id."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from backoffice.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create one table per collection if missing."""
        with self._connect() as conn:
            for table in TABLES:
                conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id          TEXT PRIMARY KEY,
                        body        TEXT    NOT NULL,
                        expires_at  INTEGER
                    )
                """)
        logger.debug("Document tables initialized at %s", self._db_path)

    @staticmethod
    def _table(table: str) -> str:
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        return table

    @staticmethod
    def _now(now: float | None) -> int:
        return int(time.time() if now is None else now)

    def get(self, table: str, doc_id: str, now: float | None = None) -> dict | None:
        """Fetch one document, or None if missing or expired."""
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT body FROM {self._table(table)} "
                "WHERE id = ? AND (expires_at IS NULL OR expires_at > ?)",
                (doc_id, self._now(now)),
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["body"])

    def put(self, table: str, doc: dict, expires_at: int | None = None) -> None:
        """Insert or fully replace a document. `doc["id"]` is the key."""
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {self._table(table)} (id, body, expires_at) "
                "VALUES (?, ?, ?)",
                (doc["id"], json.dumps(doc, ensure_ascii=False), expires_at),
            )

    def put_versioned(self, table: str, doc: dict) -> dict:
        """Replace a document, setting `version` to the stored version + 1.

        Read and write happen in a single IMMEDIATE transaction, so the
        version sequence has no gaps or repeats. Whatever version the
        caller put in `doc` is ignored.
        """
        table = self._table(table)
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                f"SELECT body FROM {table} WHERE id = ?", (doc["id"],),
            ).fetchone()
            current = json.loads(row["body"]).get("version", 0) if row else 0
            stored = {**doc, "version": int(current or 0) + 1}
            conn.execute(
                f"INSERT OR REPLACE INTO {table} (id, body, expires_at) VALUES (?, ?, NULL)",
                (stored["id"], json.dumps(stored, ensure_ascii=False)),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return stored

    def delete(self, table: str, doc_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                f"DELETE FROM {self._table(table)} WHERE id = ?", (doc_id,),
            )
        return cursor.rowcount > 0

    def scan(self, table: str, now: float | None = None) -> list[dict]:
        """Return every live document in a collection (unordered)."""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT body FROM {self._table(table)} "
                "WHERE expires_at IS NULL OR expires_at > ?",
                (self._now(now),),
            ).fetchall()
        return [json.loads(r["body"]) for r in rows]

    def purge_expired(self, now: float | None = None) -> int:
        """Delete expired rows from every collection. Returns rows removed."""
        removed = 0
        cutoff = self._now(now)
        with self._connect() as conn:
            for table in TABLES:
                cursor = conn.execute(
                    f"DELETE FROM {table} WHERE expires_at IS NOT NULL AND expires_at <= ?",
                    (cutoff,),
                )
                removed += cursor.rowcount
        if removed:
            logger.info("Purged %d expired documents", removed)
        return removed


# ---------------------------------------------------------------------------
# Typed repositories
# ---------------------------------------------------------------------------


class LocationDB:
    """The per-location inventory/task document."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def get(self, location_id: str) -> LocationState | None:
        data = self._store.get("locations", location_id)
        if data is None:
            return None
        return LocationState.from_dict(location_id, data)

    def save(self, state: LocationState) -> LocationState:
        """Persist a full replacement; the store assigns the next version."""
        state.updated_at = utc_now_iso()
        stored = self._store.put_versioned("locations", state.to_dict())
        saved = LocationState.from_dict(state.id, stored)
        logger.info("Location '%s' saved at version %d", saved.id, saved.version)
        return saved


class BackupDB:
    """Append-only snapshots of location documents."""

    def __init__(self, store: DocumentStore, retention_days: int = 90) -> None:
        self._store = store
        self._retention_days = retention_days

    def _expires_at(self, now: float | None = None) -> int | None:
        if self._retention_days <= 0:
            return None
        return int(time.time() if now is None else now) + self._retention_days * _DAY_SECONDS

    @staticmethod
    def _new_id() -> str:
        return f"backup-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"

    def snapshot(self, state: LocationState) -> BackupSnapshot:
        """Copy a location document into the backup collection."""
        expires_at = self._expires_at()
        doc = state.to_dict()
        backup = BackupSnapshot(
            id=self._new_id(),
            location=state.id,
            categories=doc["categories"],
            task_lists=doc["taskLists"],
            version=state.version,
            backup_time=utc_now_iso(),
            expires_at=expires_at,
        )
        self._store.put("backups", backup.to_dict(), expires_at=expires_at)
        logger.info("Backup %s taken of '%s' v%d", backup.id, state.id, state.version)
        return backup

    def create(self, data: dict) -> dict:
        """Store a client-supplied backup payload as-is, stamped with id and time."""
        expires_at = self._expires_at()
        item = {
            **data,
            "id": self._new_id(),
            "backupTime": utc_now_iso(),
            "expiresAt": expires_at,
        }
        self._store.put("backups", item, expires_at=expires_at)
        return item

    def list_recent(self, limit: int = 50) -> list[dict]:
        items = self._store.scan("backups")
        items.sort(key=lambda b: b.get("backupTime") or "", reverse=True)
        return items[:limit]


class ScheduleDB:
    """Schedule config (single document) and per-week schedules."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def get_config(self) -> ScheduleConfig | None:
        data = self._store.get("schedules", "config")
        return ScheduleConfig.from_dict(data) if data else None

    def save_config(self, config: ScheduleConfig) -> ScheduleConfig:
        config.updated_at = utc_now_iso()
        self._store.put("schedules", config.to_dict())
        return config

    def get_week(self, week_id: str) -> ScheduleWeek | None:
        data = self._store.get("schedules", f"week-{week_id}")
        return ScheduleWeek.from_dict(week_id, data) if data else None

    def save_week(self, week: ScheduleWeek) -> ScheduleWeek:
        week.updated_at = utc_now_iso()
        self._store.put("schedules", week.to_dict())
        return week


class ReminderDB:
    """Reminder definitions."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def list_all(self) -> list[ReminderDefinition]:
        """All reminders, newest first."""
        reminders = [ReminderDefinition.from_dict(d) for d in self._store.scan("reminders")]
        reminders.sort(key=lambda r: r.created_at, reverse=True)
        return reminders

    def list_enabled(self) -> list[ReminderDefinition]:
        return [r for r in self.list_all() if r.enabled]

    def get(self, reminder_id: str) -> ReminderDefinition | None:
        data = self._store.get("reminders", reminder_id)
        return ReminderDefinition.from_dict(data) if data else None

    def put(self, reminder: ReminderDefinition) -> ReminderDefinition:
        self._store.put("reminders", reminder.to_dict())
        return reminder

    def delete(self, reminder_id: str) -> bool:
        deleted = self._store.delete("reminders", reminder_id)
        if deleted:
            logger.info("Reminder %s deleted", reminder_id)
        return deleted

    def disable(self, reminder_id: str) -> bool:
        """Flip `enabled` off. Returns False if the reminder no longer exists."""
        reminder = self.get(reminder_id)
        if reminder is None:
            return False
        reminder.enabled = False
        reminder.updated_at = utc_now_iso()
        self.put(reminder)
        return True


class SentReminderDB:
    """Dedup ledger: one row per reminder per calendar day, self-expiring."""

    def __init__(self, store: DocumentStore, ttl_days: int = 7) -> None:
        self._store = store
        self._ttl_days = ttl_days

    def was_sent(self, sent_key: str, now: float | None = None) -> bool:
        return self._store.get("sent_reminders", sent_key, now=now) is not None

    def mark_sent(
        self, sent_key: str, reminder_id: str, now: float | None = None,
    ) -> SentMarker:
        sent_epoch = time.time() if now is None else now
        marker = SentMarker(
            id=sent_key,
            reminder_id=reminder_id,
            sent_at=datetime.fromtimestamp(sent_epoch, tz=timezone.utc).isoformat(),
            expires_at=int(sent_epoch) + self._ttl_days * _DAY_SECONDS,
        )
        self._store.put("sent_reminders", marker.to_dict(), expires_at=marker.expires_at)
        return marker

    def get(self, sent_key: str, now: float | None = None) -> SentMarker | None:
        data = self._store.get("sent_reminders", sent_key, now=now)
        return SentMarker.from_dict(data) if data else None


class SupplierDB:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def list_all(self, location: str | None = None) -> list[Supplier]:
        """Suppliers sorted by name, optionally scoped to one location."""
        suppliers = [Supplier.from_dict(d) for d in self._store.scan("suppliers")]
        if location:
            suppliers = [s for s in suppliers if s.location == location]
        suppliers.sort(key=lambda s: s.name)
        return suppliers

    def get(self, supplier_id: str) -> Supplier | None:
        data = self._store.get("suppliers", supplier_id)
        return Supplier.from_dict(data) if data else None

    def put(self, supplier: Supplier) -> Supplier:
        self._store.put("suppliers", supplier.to_dict())
        return supplier

    def delete(self, supplier_id: str) -> bool:
        return self._store.delete("suppliers", supplier_id)


class OrderDB:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def list_all(
        self,
        location: str | None = None,
        month: str | None = None,
        supplier_id: str | None = None,
    ) -> list[Order]:
        """Orders newest first, filtered by location, YYYY-MM month and supplier."""
        orders = [Order.from_dict(d) for d in self._store.scan("orders")]
        if location:
            orders = [o for o in orders if o.location == location]
        if month:
            orders = [o for o in orders if o.date.startswith(month)]
        if supplier_id:
            orders = [o for o in orders if o.supplier_id == supplier_id]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders

    def put(self, order: Order) -> Order:
        self._store.put("orders", order.to_dict())
        return order

    def delete_all(self) -> int:
        orders = self._store.scan("orders")
        for doc in orders:
            self._store.delete("orders", doc["id"])
        logger.info("Deleted %d orders", len(orders))
        return len(orders)


class SettingsDB:
    """Small singleton documents such as Telegram credentials."""

    _TELEGRAM_ID = "telegram"

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def get_telegram(self) -> TelegramCredentials | None:
        data = self._store.get("settings", self._TELEGRAM_ID)
        if data is None:
            return None
        return TelegramCredentials.from_dict(data)

    def save_telegram(self, credentials: TelegramCredentials) -> None:
        self._store.put(
            "settings",
            {"id": self._TELEGRAM_ID, **credentials.to_dict(), "updatedAt": utc_now_iso()},
        )
        logger.info("Telegram credentials saved for chat %s", credentials.masked_chat_id)
