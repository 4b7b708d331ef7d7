"""Tests for backoffice.data.models: wire conversion and defaults."""

from dataclasses import asdict
from datetime import date

import pytest

from backoffice.data.models import (
    LocationState,
    ReminderDefinition,
    ReminderType,
    ScheduleWeek,
    TaskListColor,
    TelegramCredentials,
    Weekday,
)


class TestWeekday:
    def test_sunday_first(self):
        assert list(Weekday)[0] == Weekday.SUNDAY
        assert Weekday.SUNDAY.value == "ראשון"

    @pytest.mark.parametrize("d, expected", [
        (date(2030, 1, 6), Weekday.SUNDAY),
        (date(2030, 1, 7), Weekday.MONDAY),
        (date(2030, 1, 8), Weekday.TUESDAY),
        (date(2030, 1, 12), Weekday.SATURDAY),
    ])
    def test_for_date(self, d, expected):
        assert Weekday.for_date(d) == expected


class TestLocationState:
    def test_from_dict_fills_defaults(self):
        state = LocationState.from_dict("isgav", {
            "categories": [{"id": "c1", "name": "Dairy", "products": [{"id": "p1", "name": "Milk"}]}],
        })
        assert state.id == "isgav"
        assert state.task_lists == []
        assert state.version == 0
        milk = state.categories[0].products[0]
        assert milk.quantity == 0.0
        assert milk.unit == ""

    def test_counts(self):
        state = LocationState.from_dict("isgav", {
            "categories": [
                {"id": "c1", "name": "A", "products": [{"id": "1"}, {"id": "2"}]},
                {"id": "c2", "name": "B", "products": [{"id": "3"}]},
            ],
            "taskLists": [{"id": "t1", "name": "Open", "tasks": [{"id": "x", "text": "Mop"}]}],
        })
        assert state.product_count == 3
        assert state.task_count == 1
        assert state.is_empty is False

    def test_unknown_color_defaults_to_blue(self):
        state = LocationState.from_dict("isgav", {
            "taskLists": [{"id": "t1", "name": "Close", "color": "chartreuse"}],
        })
        assert state.task_lists[0].color == TaskListColor.BLUE

    def test_to_dict_uses_wire_keys(self):
        state = LocationState.from_dict("isgav", {
            "taskLists": [{"id": "t1", "name": "Close", "color": "red", "tasks": []}],
            "version": 4,
        })
        d = state.to_dict()
        assert d["taskLists"][0]["color"] == "red"
        assert d["version"] == 4
        assert "task_lists" not in d

    def test_eight_colors(self):
        assert len(TaskListColor) == 8

    @pytest.mark.parametrize("body", [
        {"categories": ["Fridge"]},
        {"categories": "Fridge"},
        {"categories": [{"id": "c1", "products": ["Milk"]}]},
        {"taskLists": [{"id": "t1", "tasks": 3}]},
    ])
    def test_malformed_nested_records_raise(self, body):
        with pytest.raises(ValueError):
            LocationState.from_dict("isgav", body)


class TestReminderDefinition:
    def test_defaults(self):
        reminder = ReminderDefinition.from_dict({"id": "rem-1", "title": "Order", "time": "08:00"})
        assert reminder.type == ReminderType.RECURRING
        assert reminder.enabled is True
        assert reminder.days == []
        assert reminder.date is None

    def test_enabled_only_false_when_explicit(self):
        reminder = ReminderDefinition.from_dict({"id": "r", "enabled": False})
        assert reminder.enabled is False

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            ReminderDefinition.from_dict({"id": "r", "type": "weekly"})

    @pytest.mark.parametrize("enabled", ["false", "true", 0, 1])
    def test_enabled_must_be_boolean(self, enabled):
        with pytest.raises(ValueError):
            ReminderDefinition.from_dict({"id": "r", "enabled": enabled})

    def test_enabled_null_means_enabled(self):
        assert ReminderDefinition.from_dict({"id": "r", "enabled": None}).enabled is True

    @pytest.mark.parametrize("days", [5, "שני", [1, 2]])
    def test_days_must_be_list_of_names(self, days):
        with pytest.raises(ValueError):
            ReminderDefinition.from_dict({"id": "r", "days": days})

    def test_serializable(self):
        reminder = ReminderDefinition.from_dict({
            "id": "rem-1", "title": "Close till", "time": "22:00",
            "type": "one-time", "date": "05/01/2030",
        })
        d = reminder.to_dict()
        assert d["type"] == "one-time"
        assert d["date"] == "05/01/2030"
        assert asdict(reminder)["title"] == "Close till"


class TestTelegramCredentials:
    def test_masked_chat_id(self):
        creds = TelegramCredentials(bot_token="123:abc", chat_id="987654321")
        assert creds.masked_chat_id == "****4321"

    def test_incomplete_returns_none(self):
        assert TelegramCredentials.from_dict({"botToken": "x"}) is None
        assert TelegramCredentials.from_dict({"chatId": "1"}) is None


def test_schedule_week_id():
    week = ScheduleWeek.from_dict("2030-01-06", {})
    assert week.to_dict()["id"] == "week-2030-01-06"
    assert week.final_schedule is None
