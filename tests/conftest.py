"""Shared test fixtures and configuration.

Sets up a fixed environment so backoffice.config loads deterministically,
and provides a temp document store plus repositories built on it.
"""

import os

# Patch env vars BEFORE any backoffice imports
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ["TIMEZONE"] = "Asia/Jerusalem"
os.environ["LOCATION_IDS"] = "isgav,frankfurt"
os.environ["REMINDER_CHECK_ENABLED"] = "false"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["TELEGRAM_CHAT_ID"] = ""

from unittest.mock import AsyncMock

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_backoffice.db")


@pytest.fixture
def store(tmp_db_path):
    """Return a DocumentStore backed by a temp file."""
    from backoffice.data.db import DocumentStore
    return DocumentStore(db_path=tmp_db_path)


@pytest.fixture
def location_db(store):
    from backoffice.data.db import LocationDB
    return LocationDB(store)


@pytest.fixture
def backup_db(store):
    from backoffice.data.db import BackupDB
    return BackupDB(store, retention_days=90)


@pytest.fixture
def reminder_db(store):
    from backoffice.data.db import ReminderDB
    return ReminderDB(store)


@pytest.fixture
def sent_db(store):
    from backoffice.data.db import SentReminderDB
    return SentReminderDB(store, ttl_days=7)


@pytest.fixture
def settings_db(store):
    from backoffice.data.db import SettingsDB
    return SettingsDB(store)


@pytest.fixture
def notifier():
    """A NotificationPort whose sends always succeed."""
    mock = AsyncMock()
    mock.send = AsyncMock(return_value=True)
    mock.send_text = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def gateway(store, notifier):
    from backoffice.core.gateway import StateGateway
    return StateGateway(store, notifier)


@pytest.fixture
def api_client(store, notifier):
    """TestClient over an app wired to the temp store, scheduler off."""
    from fastapi.testclient import TestClient

    from backoffice.api.http_api import build_app
    app = build_app(store=store, notifier=notifier, start_scheduler=False)
    return TestClient(app)
