"""
Back-Office Save Guard.

Wraps every write of a location document. A client bug or a half-finished
load must never silently erase inventory or task data, so two checks run
before anything is persisted:

1. Empty-wipe guard: a save with no categories and no task lists is refused.
2. Shrink guard: a save that takes a location from more than
   `min_previous` products (or tasks) to fewer than `max_remaining` is refused.

Accepted saves snapshot the previous document into the backup collection
first (best-effort), then replace the document. The store assigns the new
version. There is no compare-and-swap: concurrent saves race and the last
write wins.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from backoffice.core.errors import EmptyStateRejected, SuspiciousShrinkRejected
from backoffice.data.db import BackupDB, LocationDB
from backoffice.data.models import LocationState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShrinkThresholds:
    """Heuristic bounds, not consistency guarantees."""

    min_previous: int = 10
    max_remaining: int = 3

    def is_suspicious(self, previous: int, proposed: int) -> bool:
        return previous > self.min_previous and proposed < self.max_remaining


class SaveGuard:
    """Validates and persists location documents."""

    def __init__(
        self,
        location_db: LocationDB,
        backup_db: BackupDB,
        thresholds: ShrinkThresholds | None = None,
    ) -> None:
        if thresholds is None:
            from backoffice.config import settings
            thresholds = ShrinkThresholds(
                min_previous=settings.SHRINK_GUARD_MIN_PREVIOUS,
                max_remaining=settings.SHRINK_GUARD_MAX_REMAINING,
            )
        self._locations = location_db
        self._backups = backup_db
        self._thresholds = thresholds

    def check(self, current: LocationState | None, proposed: LocationState) -> None:
        """Raise if `proposed` must not replace `current`."""
        if proposed.is_empty:
            logger.warning("Blocked saving empty state for location '%s'", proposed.id)
            raise EmptyStateRejected(
                "Cannot save empty state - both categories and taskLists are empty"
            )

        if current is None:
            return

        prev_products, new_products = current.product_count, proposed.product_count
        prev_tasks, new_tasks = current.task_count, proposed.task_count
        if (
            self._thresholds.is_suspicious(prev_products, new_products)
            or self._thresholds.is_suspicious(prev_tasks, new_tasks)
        ):
            logger.error(
                "BLOCKED suspicious data loss for '%s': products %d -> %d, tasks %d -> %d",
                proposed.id, prev_products, new_products, prev_tasks, new_tasks,
            )
            raise SuspiciousShrinkRejected(
                "Suspicious data reduction detected",
                details=(
                    f"Previous: {prev_products} products, {prev_tasks} tasks. "
                    f"New: {new_products} products, {new_tasks} tasks."
                ),
            )

    def save(
        self,
        location_id: str,
        proposed: LocationState,
        expected_version: int | None = None,
    ) -> LocationState:
        """Check, back up and persist a location document.

        Args:
            location_id: Location key; overrides any id inside `proposed`.
            proposed: The full replacement document.
            expected_version: The version the client last saw. Only used to
                log stale writes; it never blocks the save.

        Returns:
            The stored document with its new version.
        """
        proposed.id = location_id
        current = self._locations.get(location_id)
        self.check(current, proposed)

        if current is not None:
            if expected_version is not None and expected_version != current.version:
                logger.warning(
                    "Stale save for '%s': client saw v%d, store has v%d (last write wins)",
                    location_id, expected_version, current.version,
                )
            try:
                self._backups.snapshot(current)
            except sqlite3.Error as exc:
                logger.warning("Backup before save failed for '%s': %s", location_id, exc)

        return self._locations.save(proposed)
