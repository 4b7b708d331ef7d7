"""Tests for backoffice.core.save_guard: empty-wipe and shrink guards."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from backoffice.core.errors import EmptyStateRejected, SuspiciousShrinkRejected
from backoffice.core.save_guard import SaveGuard, ShrinkThresholds
from backoffice.data.models import LocationState


def _state(products: int = 0, tasks: int = 0, version: int = 0) -> LocationState:
    data = {"version": version, "categories": [], "taskLists": []}
    if products:
        data["categories"] = [{
            "id": "c1", "name": "Fridge",
            "products": [{"id": f"p{i}", "name": f"Item {i}", "quantity": i} for i in range(products)],
        }]
    if tasks:
        data["taskLists"] = [{
            "id": "t1", "name": "Opening", "color": "green",
            "tasks": [{"id": f"t{i}", "text": f"Task {i}"} for i in range(tasks)],
        }]
    return LocationState.from_dict("isgav", data)


def _empty_with_list() -> LocationState:
    return LocationState.from_dict("isgav", {"taskLists": [{"id": "t1", "name": "Empty list"}]})


@pytest.fixture
def guard(location_db, backup_db):
    return SaveGuard(location_db, backup_db, thresholds=ShrinkThresholds(10, 3))


class TestEmptyWipeGuard:
    def test_rejects_empty_state(self, guard, location_db):
        guard.save("isgav", _state(products=5))
        with pytest.raises(EmptyStateRejected):
            guard.save("isgav", _state())
        stored = location_db.get("isgav")
        assert stored.product_count == 5
        assert stored.version == 1

    def test_rejects_empty_state_on_first_save(self, guard, location_db):
        with pytest.raises(EmptyStateRejected):
            guard.save("isgav", _state())
        assert location_db.get("isgav") is None

    def test_one_empty_sequence_is_fine(self, guard):
        saved = guard.save("isgav", _state(tasks=2))
        assert saved.categories == []
        assert saved.task_count == 2


class TestShrinkGuard:
    def test_eleven_to_two_products_rejected(self, guard, location_db):
        guard.save("isgav", _state(products=11))
        with pytest.raises(SuspiciousShrinkRejected) as exc_info:
            guard.save("isgav", _state(products=2))
        assert "Previous: 11 products" in exc_info.value.details
        assert location_db.get("isgav").product_count == 11

    def test_eleven_to_four_products_accepted(self, guard):
        guard.save("isgav", _state(products=11))
        saved = guard.save("isgav", _state(products=4))
        assert saved.product_count == 4
        assert saved.version == 2

    def test_task_shrink_rejected(self, guard):
        guard.save("isgav", _state(products=1, tasks=12))
        with pytest.raises(SuspiciousShrinkRejected):
            guard.save("isgav", _state(products=1, tasks=1))

    def test_exactly_ten_previous_is_not_suspicious(self, guard):
        guard.save("isgav", _state(products=10))
        saved = guard.save("isgav", _state(products=1))
        assert saved.product_count == 1

    def test_lists_without_items_count_as_zero(self, guard):
        guard.save("isgav", _state(products=11))
        with pytest.raises(SuspiciousShrinkRejected):
            guard.save("isgav", _empty_with_list())

    def test_thresholds_are_overridable(self, location_db, backup_db):
        strict = SaveGuard(location_db, backup_db, thresholds=ShrinkThresholds(min_previous=2, max_remaining=2))
        strict.save("isgav", _state(products=3))
        with pytest.raises(SuspiciousShrinkRejected):
            strict.save("isgav", _state(products=1))


class TestVersioning:
    def test_n_saves_give_version_n(self, guard):
        for n in range(1, 6):
            saved = guard.save("isgav", _state(products=3, version=1000 + n), expected_version=0)
        assert saved.version == 5

    def test_stale_expected_version_still_saves(self, guard, caplog):
        guard.save("isgav", _state(products=3))
        guard.save("isgav", _state(products=3))
        with caplog.at_level("WARNING"):
            saved = guard.save("isgav", _state(products=4), expected_version=1)
        assert saved.version == 3
        assert "last write wins" in caplog.text

    def test_location_id_argument_wins(self, guard):
        state = _state(products=2)
        state.id = "frankfurt"
        saved = guard.save("isgav", state)
        assert saved.id == "isgav"


class TestBackupBeforeSave:
    def test_previous_document_is_backed_up(self, guard, backup_db):
        guard.save("isgav", _state(products=4))
        guard.save("isgav", _state(products=6))
        backups = backup_db.list_recent()
        assert len(backups) == 1
        assert backups[0]["location"] == "isgav"
        assert backups[0]["version"] == 1
        assert len(backups[0]["categories"][0]["products"]) == 4

    def test_first_save_takes_no_backup(self, guard, backup_db):
        guard.save("isgav", _state(products=4))
        assert backup_db.list_recent() == []

    def test_backup_failure_does_not_block_save(self, location_db):
        failing_backups = MagicMock()
        failing_backups.snapshot.side_effect = sqlite3.OperationalError("disk I/O error")
        guard = SaveGuard(location_db, failing_backups, thresholds=ShrinkThresholds())
        guard.save("isgav", _state(products=4))
        saved = guard.save("isgav", _state(products=5))
        assert saved.version == 2
        failing_backups.snapshot.assert_called_once()

    def test_rejected_save_takes_no_backup(self, guard, backup_db):
        guard.save("isgav", _state(products=11))
        with pytest.raises(SuspiciousShrinkRejected):
            guard.save("isgav", _state(products=1))
        assert backup_db.list_recent() == []
