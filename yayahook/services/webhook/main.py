"""HTTP surface for Yaya Wallet webhooks.

`POST /webhook` authenticates the notification, acknowledges it right away
and hands persistence to a detached task. The read endpoints are thin views
over the same table.
"""

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from yayahook.common.config import settings
from yayahook.common.db import SessionLocal
from yayahook.common.logging import configure_logging, logger, trace_id_ctx, webhook_id_ctx
from yayahook.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
    webhook_requests_total,
)
from yayahook.common.startup import log_startup_config
from yayahook.common.tracing import instrument_app, setup_tracing
from yayahook.services.webhook.auth import AuthResult, WebhookAuthenticator
from yayahook.services.webhook.schemas import Event, WebhookResponse
from yayahook.services.webhook.service import (
    IngestDispatcher,
    Ingestor,
    get_stored_event,
    list_stored_events,
)


ERROR_MESSAGES = {
    "missing_signature": "signature is missing",
    "invalid_data": "invalid data",
    AuthResult.STALE_TIMESTAMP.value: "invalid timestamp",
    AuthResult.INVALID_SIGNATURE.value: "invalid signature",
}
UNIFORM_AUTH_ERROR = "authentication failed"


def respond(status_code: int, message: str | None = None, error: str | None = None) -> JSONResponse:
    """Render the response envelope with the matching HTTP status."""

    body = WebhookResponse(status_code=status_code, message=message, error=error)
    return JSONResponse(content=body.model_dump(exclude_none=True), status_code=status_code)


def create_app(
    authenticator: WebhookAuthenticator,
    ingestor: Ingestor,
    session_factory,
    signature_header: str = "YAYA-SIGNATURE",
    uniform_auth_errors: bool = False,
) -> FastAPI:
    """Wire the receiver around explicit collaborators."""

    dispatcher = IngestDispatcher(ingestor, service_name=settings.service_name)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Let in-flight ingests finish before the process exits."""

        yield
        if dispatcher.pending:
            logger.info("draining ingest tasks pending=%s", dispatcher.pending)
        await dispatcher.drain()

    app = FastAPI(title="Yaya Wallet Webhook Receiver", lifespan=lifespan)
    app.state.dispatcher = dispatcher
    instrument_app(app)

    def reject(reason: str) -> JSONResponse:
        webhook_requests_total.labels(service=settings.service_name, result=reason).inc()
        error = ERROR_MESSAGES[reason]
        if uniform_auth_errors and reason != "invalid_data":
            error = UNIFORM_AUTH_ERROR
        return respond(400, error=error)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency for every HTTP call."""

        trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.post("/webhook")
    async def receive_webhook(request: Request):
        """Authenticate one notification and queue it for persistence.

        Checks run in a fixed order: signature header present, body decodes,
        timestamp fresh, signature matches. The caller is acknowledged before
        the write starts and never learns its outcome.
        """

        signature = request.headers.get(signature_header, "")
        if not signature:
            logger.warning("signature is missing")
            return reject("missing_signature")

        try:
            event = Event.from_body(await request.body())
        except ValueError as exc:
            logger.warning("error decoding request error=%s", exc)
            return reject("invalid_data")

        webhook_id_ctx.set(event.id)
        result = authenticator.check(event, signature)
        if result is not AuthResult.OK:
            logger.warning("webhook rejected webhook_id=%s reason=%s", event.id, result.value)
            return reject(result.value)

        dispatcher.submit(event)
        webhook_requests_total.labels(service=settings.service_name, result="accepted").inc()
        return respond(200, message="Webhook received successfully")

    @app.get("/webhook/{webhook_id}")
    def get_webhook(webhook_id: str):
        """Return the stored payload for one event id."""

        try:
            stored = get_stored_event(session_factory, webhook_id)
        except SQLAlchemyError as exc:
            logger.error("failed to query webhook webhook_id=%s error=%s", webhook_id, exc)
            return respond(500, error="database error")
        if stored is None:
            return respond(404, error="webhook not found")
        return stored.model_dump(mode="json", exclude={"first_seen_at", "last_updated_at"})

    @app.get("/debug/webhooks")
    def debug_webhooks():
        """Dump every stored webhook, newest first."""

        try:
            stored = list_stored_events(session_factory)
        except SQLAlchemyError as exc:
            logger.error("failed to query webhooks error=%s", exc)
            return respond(500, error="database error")
        return {"count": len(stored), "webhooks": [row.model_dump(mode="json") for row in stored]}

    @app.get("/healthcheck")
    def healthcheck():
        """Container health probe endpoint."""

        return respond(200, message="Server is up and running")

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    return app


configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    [
        "SERVICE_NAME",
        "DATABASE_URL",
        "SECRET_KEY",
        "FRESHNESS_WINDOW_SECONDS",
        "SIGNATURE_HEADER",
        "UNIFORM_AUTH_ERRORS",
    ],
)
app = create_app(
    WebhookAuthenticator(settings.secret_key, settings.freshness_window_seconds),
    Ingestor(SessionLocal),
    SessionLocal,
    signature_header=settings.signature_header,
    uniform_auth_errors=settings.uniform_auth_errors,
)
