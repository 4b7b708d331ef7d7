"""
Back-Office Poll-Sync Client.

Client-side view of the REST API. There is no push channel: callers poll
and re-render only when something changed. A location counts as changed
when its `version` differs from the cached copy. The reminder list counts
as changed when its length differs.

The client keeps the last location document it saw. `save_location` sends
that cached version and backs the cached copy up before overwriting it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 10
DEFAULT_POLL_INTERVAL = 5.0

LocationCallback = Callable[[dict], Awaitable[None]]
RemindersCallback = Callable[[list[dict]], Awaitable[None]]


class ApiError(Exception):
    """The API answered with an error status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class BackofficeClient:
    """Async REST client with version-based change detection."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-Api-Key"] = api_key
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._location_cache: dict[str, dict] = {}
        self._reminder_count: int | None = None

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> BackofficeClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, json: dict | None = None):
        resp = await self._http.request(method, path, json=json)
        if resp.is_error:
            try:
                message = resp.json().get("error") or resp.reason_phrase
            except ValueError:
                message = resp.reason_phrase
            raise ApiError(resp.status_code, message)
        return resp.json()

    # -- locations ------------------------------------------------------------

    def cached_location(self, location_id: str) -> dict | None:
        return self._location_cache.get(location_id)

    async def get_location(self, location_id: str) -> dict:
        return await self._request("GET", f"/locations/{location_id}")

    async def save_location(self, location_id: str, data: dict) -> dict | None:
        """Save a location. Returns None without calling the API for empty state."""
        categories = data.get("categories") or []
        task_lists = data.get("taskLists") or []
        if not categories and not task_lists:
            logger.warning("Blocked saving empty state for '%s'", location_id)
            return None

        cached = self._location_cache.get(location_id)
        if cached and (cached.get("categories") or cached.get("taskLists")):
            try:
                await self.create_backup({**cached, "location": location_id})
            except (httpx.HTTPError, ApiError) as exc:
                logger.warning("Backup before save failed for '%s': %s", location_id, exc)

        version = data.get("version") or (cached or {}).get("version") or 0
        result = await self._request(
            "PUT",
            f"/locations/{location_id}",
            json={"categories": categories, "taskLists": task_lists, "version": version},
        )
        self._location_cache[location_id] = result
        return result

    async def poll_location_once(
        self, location_id: str, callback: LocationCallback,
    ) -> bool:
        """Fetch once; invoke `callback` only if the version changed."""
        data = await self.get_location(location_id)
        cached = self._location_cache.get(location_id)
        if cached is not None and cached.get("version") == data.get("version"):
            return False
        self._location_cache[location_id] = data
        await callback(data)
        return True

    async def watch_location(
        self,
        location_id: str,
        callback: LocationCallback,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Poll until cancelled. Failed polls are logged and retried next round."""
        while True:
            try:
                await self.poll_location_once(location_id, callback)
            except (httpx.HTTPError, ApiError) as exc:
                logger.error("Poll of '%s' failed: %s", location_id, exc)
            await asyncio.sleep(interval)

    # -- reminders ------------------------------------------------------------

    async def list_reminders(self) -> list[dict]:
        return await self._request("GET", "/reminders")

    async def create_reminder(self, data: dict) -> dict:
        return await self._request("POST", "/reminders", json=data)

    async def update_reminder(self, reminder_id: str, data: dict) -> dict:
        return await self._request("PUT", f"/reminders/{reminder_id}", json=data)

    async def delete_reminder(self, reminder_id: str) -> dict:
        return await self._request("DELETE", f"/reminders/{reminder_id}")

    async def poll_reminders_once(self, callback: RemindersCallback) -> bool:
        """Fetch once; invoke `callback` only if the reminder count changed."""
        reminders = await self.list_reminders()
        if self._reminder_count is not None and len(reminders) == self._reminder_count:
            return False
        self._reminder_count = len(reminders)
        await callback(reminders)
        return True

    # -- backups --------------------------------------------------------------

    async def create_backup(self, data: dict) -> dict:
        return await self._request("POST", "/backups", json=data)

    async def list_backups(self) -> list[dict]:
        return await self._request("GET", "/backups")
