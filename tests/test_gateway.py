"""Tests for StateGateway, called directly without HTTP."""

import re

import pytest

from backoffice.core.errors import (
    CredentialsMissing,
    EmptyStateRejected,
    NotFoundError,
    ValidationError,
)
from backoffice.core.gateway import new_id


def test_new_id_format():
    assert re.fullmatch(r"rem-\d{13}-[0-9a-f]{9}", new_id("rem"))


def test_new_ids_are_unique():
    assert len({new_id("sup") for _ in range(100)}) == 100


class TestLocations:
    def test_unknown_location(self, gateway):
        with pytest.raises(NotFoundError):
            gateway.get_location("paris")

    def test_save_overrides_body_id(self, gateway):
        body = {"id": "frankfurt", "categories": [{"id": "c", "name": "x", "products": []}]}
        saved = gateway.save_location("isgav", body)
        assert saved["id"] == "isgav"
        assert gateway.get_location("frankfurt")["version"] == 0

    def test_unknown_keys_dropped(self, gateway):
        body = {"categories": [{"id": "c", "name": "x", "products": [], "extra": 1}], "foo": 2}
        saved = gateway.save_location("isgav", body)
        assert "foo" not in saved
        assert "extra" not in saved["categories"][0]

    def test_unknown_color_defaults_to_blue(self, gateway):
        body = {"taskLists": [{"id": "t", "name": "x", "color": "magenta", "tasks": []}]}
        saved = gateway.save_location("isgav", body)
        assert saved["taskLists"][0]["color"] == "blue"

    def test_empty_state_error_type(self, gateway):
        with pytest.raises(EmptyStateRejected) as exc_info:
            gateway.save_location("isgav", {"categories": [], "taskLists": []})
        assert exc_info.value.status_code == 400


class TestReminders:
    def test_defaults(self, gateway):
        reminder = gateway.create_reminder({"title": "Close register", "time": "22:00"})
        assert reminder["type"] == "recurring"
        assert reminder["days"] == []
        assert reminder["enabled"] is True

    def test_one_time(self, gateway):
        reminder = gateway.create_reminder({
            "title": "Fridge repair", "time": "10:00", "type": "one-time", "date": "07/01/2030",
        })
        assert reminder["date"] == "07/01/2030"

    def test_update_cannot_change_id(self, gateway):
        created = gateway.create_reminder({"title": "a", "time": "08:00"})
        updated = gateway.update_reminder(created["id"], {"id": "other", "title": "b"})
        assert updated["id"] == created["id"]
        assert gateway.get_reminder(created["id"])["title"] == "b"

    def test_invalid_body(self, gateway):
        with pytest.raises(ValidationError):
            gateway.create_reminder(["not", "a", "dict"])


class TestTelegram:
    def test_env_fallback(self, gateway, monkeypatch):
        from backoffice.config import settings
        monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", "999:env")
        monkeypatch.setattr(settings, "TELEGRAM_CHAT_ID", "12345678")
        assert gateway.get_telegram_settings() == {"configured": True, "chatId": "****5678"}

    def test_saved_credentials_win_over_env(self, gateway, monkeypatch):
        from backoffice.config import settings
        monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", "999:env")
        monkeypatch.setattr(settings, "TELEGRAM_CHAT_ID", "12345678")
        gateway.save_telegram_settings({"botToken": "1:a", "chatId": "87654321"})
        assert gateway.get_telegram_settings()["chatId"] == "****4321"

    @pytest.mark.asyncio
    async def test_test_message_without_credentials(self, gateway):
        with pytest.raises(CredentialsMissing):
            await gateway.test_telegram()

    @pytest.mark.asyncio
    async def test_test_message_text(self, gateway, notifier):
        gateway.save_telegram_settings({"botToken": "1:a", "chatId": "87654321"})
        await gateway.test_telegram()
        _, text = notifier.send_text.await_args[0]
        assert "Telegram notifications are working!" in text
