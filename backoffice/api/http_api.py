"""
Back-Office HTTP API.

The REST surface the web client polls and writes through. Every route is a
thin adapter over StateGateway: parse the JSON body, call the gateway,
return its dict. Errors always leave as {"error": ...} with a 4xx/5xx
status, and an OPTIONS request is answered with 200 on every path.

Routes are plain functions: FastAPI runs them in its threadpool, so SQLite
calls never block the event loop the reminder tick shares. Only the body
parsing dependency and the Telegram test send are async.

Middleware, outermost first: OPTIONS responder, CORS, unhandled-error
catch-all, then FastAPI's own exception handlers around the router.

When enabled, the reminder scheduler starts and stops with the app.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backoffice.config import settings
from backoffice.core.errors import BackofficeError, ValidationError
from backoffice.core.gateway import StateGateway
from backoffice.core.reminder_evaluator import ReminderEvaluator
from backoffice.data.db import DocumentStore, SentReminderDB

if TYPE_CHECKING:
    from backoffice.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "X-Api-Key", "Authorization"]


async def _json_body(request: Request) -> dict | None:
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError("Invalid JSON body")


def preflight_headers(origin: str | None, allowed_origins: list[str]) -> dict[str, str]:
    """CORS headers for an OPTIONS reply. Unknown origins get the first allowed one."""
    if origin in allowed_origins:
        allow_origin = origin
    else:
        allow_origin = allowed_origins[0] if allowed_origins else "*"
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Headers": ",".join(CORS_HEADERS),
        "Access-Control-Allow-Methods": ",".join(CORS_METHODS),
        "Vary": "Origin",
    }


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BackofficeError)
    async def _backoffice_error(request: Request, exc: BackofficeError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(sqlite3.Error)
    async def _storage_error(request: Request, exc: sqlite3.Error) -> JSONResponse:
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": message})

    @app.exception_handler(RequestValidationError)
    async def _request_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request"})


def _register_middleware(app: FastAPI, allowed_origins: list[str]) -> None:
    """Add middleware innermost first; each add wraps the previous ones."""

    @app.middleware("http")
    async def unhandled_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "Unhandled error on %s %s: %s", request.method, request.url.path, exc,
                exc_info=True,
            )
            return JSONResponse(status_code=500, content={"error": str(exc)})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )

    @app.middleware("http")
    async def options_ok(request: Request, call_next):
        if request.method == "OPTIONS":
            return JSONResponse(
                status_code=200,
                content={"message": "OK"},
                headers=preflight_headers(request.headers.get("origin"), allowed_origins),
            )
        return await call_next(request)

def _register_routes(app: FastAPI, gateway: StateGateway) -> None:
    @app.get("/")
    async def root() -> dict:
        return {"status": "ok", "service": "Business Manager API"}

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    # -- locations ------------------------------------------------------------

    @app.get("/locations/{location_id}")
    def get_location(location_id: str) -> dict:
        return gateway.get_location(location_id)

    @app.put("/locations/{location_id}")
    def save_location(location_id: str, body: dict | None = Depends(_json_body)) -> dict:
        return gateway.save_location(location_id, body)

    # -- schedules (config is declared before the {week_id} catch) -----------

    @app.get("/schedules/config")
    def get_schedule_config() -> dict:
        return gateway.get_schedule_config()

    @app.put("/schedules/config")
    def save_schedule_config(body: dict | None = Depends(_json_body)) -> dict:
        return gateway.save_schedule_config(body)

    @app.get("/schedules/{week_id}")
    def get_schedule_week(week_id: str) -> dict:
        return gateway.get_schedule_week(week_id)

    @app.put("/schedules/{week_id}")
    def save_schedule_week(week_id: str, body: dict | None = Depends(_json_body)) -> dict:
        return gateway.save_schedule_week(week_id, body)

    # -- reminders ------------------------------------------------------------

    @app.get("/reminders")
    def list_reminders() -> list[dict]:
        return gateway.list_reminders()

    @app.post("/reminders", status_code=201)
    def create_reminder(body: dict | None = Depends(_json_body)) -> dict:
        return gateway.create_reminder(body)

    @app.get("/reminders/{reminder_id}")
    def get_reminder(reminder_id: str) -> dict:
        return gateway.get_reminder(reminder_id)

    @app.put("/reminders/{reminder_id}")
    def update_reminder(reminder_id: str, body: dict | None = Depends(_json_body)) -> dict:
        return gateway.update_reminder(reminder_id, body)

    @app.delete("/reminders/{reminder_id}")
    def delete_reminder(reminder_id: str) -> dict:
        return gateway.delete_reminder(reminder_id)

    # -- backups --------------------------------------------------------------

    @app.get("/backups")
    def list_backups() -> list[dict]:
        return gateway.list_backups()

    @app.post("/backups", status_code=201)
    def create_backup(body: dict | None = Depends(_json_body)) -> dict:
        return gateway.create_backup(body)

    # -- telegram -------------------------------------------------------------

    @app.get("/settings/telegram")
    def get_telegram_settings() -> dict:
        return gateway.get_telegram_settings()

    @app.put("/settings/telegram")
    def save_telegram_settings(body: dict | None = Depends(_json_body)) -> dict:
        return gateway.save_telegram_settings(body)

    @app.post("/telegram/test")
    async def test_telegram() -> dict:
        return await gateway.test_telegram()

    # -- suppliers ------------------------------------------------------------

    @app.get("/suppliers")
    def list_suppliers(location: str | None = None) -> list[dict]:
        return gateway.list_suppliers(location=location)

    @app.post("/suppliers", status_code=201)
    def create_supplier(body: dict | None = Depends(_json_body)) -> dict:
        return gateway.create_supplier(body)

    @app.put("/suppliers/{supplier_id}")
    def update_supplier(supplier_id: str, body: dict | None = Depends(_json_body)) -> dict:
        return gateway.update_supplier(supplier_id, body)

    @app.delete("/suppliers/{supplier_id}")
    def delete_supplier(supplier_id: str) -> dict:
        return gateway.delete_supplier(supplier_id)

    # -- orders ---------------------------------------------------------------

    @app.get("/orders")
    def list_orders(
        location: str | None = None,
        month: str | None = None,
        supplier: str | None = None,
    ) -> list[dict]:
        return gateway.list_orders(location=location, month=month, supplier=supplier)

    @app.post("/orders", status_code=201)
    def create_order(body: dict | None = Depends(_json_body)) -> dict:
        return gateway.create_order(body)

    @app.delete("/orders")
    def delete_all_orders() -> dict:
        return gateway.delete_all_orders()


def build_app(
    store: DocumentStore | None = None,
    notifier: NotificationPort | None = None,
    start_scheduler: bool | None = None,
) -> FastAPI:
    """Build the FastAPI application with all routes wired.

    Args:
        store: Document store. Defaults to the SQLite file at DATABASE_PATH.
        notifier: Notification port implementation. Defaults to TelegramNotifier.
        start_scheduler: Run the per-minute reminder tick during the app's
                         lifespan. Defaults to REMINDER_CHECK_ENABLED.
    """
    if store is None:
        store = DocumentStore()
    if notifier is None:
        from backoffice.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier()
    if start_scheduler is None:
        start_scheduler = settings.REMINDER_CHECK_ENABLED

    gateway = StateGateway(store, notifier)
    evaluator = ReminderEvaluator(
        reminder_db=gateway.reminders,
        sent_db=SentReminderDB(store, ttl_days=settings.SENT_MARKER_TTL_DAYS),
        settings_db=gateway.settings,
        notifier=notifier,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        scheduler = None
        if start_scheduler:
            from backoffice.core.scheduler import build_scheduler

            scheduler = build_scheduler(evaluator, store)
            scheduler.start()
        yield
        if scheduler is not None:
            scheduler.shutdown(wait=False)

    app = FastAPI(
        title="Business Manager API",
        description="Inventory, tasks, schedules and reminders for the restaurants",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.gateway = gateway
    app.state.evaluator = evaluator

    _register_middleware(app, settings.ALLOWED_ORIGINS)
    _register_error_handlers(app)
    _register_routes(app, gateway)

    logger.info("API built with %d routes", len(app.routes))
    return app


def main() -> None:
    """Entry point: build the app and serve it with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Business Manager API on %s:%d", settings.API_HOST, settings.API_PORT)
    uvicorn.run(build_app(), host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    main()
