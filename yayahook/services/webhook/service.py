"""Idempotent webhook ingestion and its fire-and-forget dispatcher.

Every accepted event is upserted by id in a single statement, so duplicate or
concurrent deliveries of the same id leave exactly one row holding one full
payload. Ingestion runs detached from the request; its outcome only reaches
the logs and metrics.
"""

import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from yayahook.common.db import ensure_schema
from yayahook.common.logging import logger, webhook_id_ctx
from yayahook.common.metrics import webhook_ingest_seconds, webhook_ingest_total
from yayahook.services.webhook.models import WebhookEvent
from yayahook.services.webhook.schemas import Event, StoredEvent


_UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

# Columns overwritten on re-delivery; `id` and `first_seen_at` never change.
_MUTABLE_COLUMNS = (
    "amount",
    "currency",
    "created_at_time",
    "timestamp",
    "cause",
    "full_name",
    "account_name",
    "invoice_url",
    "last_updated_at",
)


class IngestError(Exception):
    """Terminal failure of one ingest attempt."""

    outcome = "failed"

    def __init__(self, webhook_id: str, message: str) -> None:
        super().__init__(f"{message} webhook_id={webhook_id}")
        self.webhook_id = webhook_id


class PersistenceUnavailableError(IngestError):
    """The store could not be opened or its schema could not be ensured."""

    outcome = "persistence_unavailable"


class WriteFailedError(IngestError):
    """The store was reachable but rejected the upsert."""

    outcome = "write_failed"


class IngestOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Ingestor:
    """Records authenticated events once per id, newest payload wins."""

    def __init__(self, session_factory, clock: Callable[[], datetime] = _utcnow) -> None:
        self.session_factory = session_factory
        self.clock = clock

    def _upsert_statement(self, dialect_name: str, event: Event, now: datetime):
        insert = _UPSERT_DIALECTS.get(dialect_name)
        if insert is None:
            raise WriteFailedError(event.id, f"upsert not supported on dialect={dialect_name}")
        stmt = insert(WebhookEvent).values(
            id=event.id,
            amount=event.canonical_amount,
            currency=event.currency.value,
            created_at_time=event.created_at_time,
            timestamp=event.timestamp,
            cause=event.cause,
            full_name=event.full_name,
            account_name=event.account_name,
            invoice_url=event.invoice_url,
            first_seen_at=now,
            last_updated_at=now,
        )
        return stmt.on_conflict_do_update(
            index_elements=[WebhookEvent.id],
            set_={name: stmt.excluded[name] for name in _MUTABLE_COLUMNS},
        )

    def ingest(self, event: Event, now: datetime | None = None) -> IngestOutcome:
        """Upsert one event; raise an `IngestError` subclass on failure.

        The schema is ensured on every call so a fresh store needs no
        migration step. No retry is attempted here.
        """

        now = _utc(now or self.clock())
        with self.session_factory() as db:
            try:
                ensure_schema(db.connection())
            except SQLAlchemyError as exc:
                db.rollback()
                raise PersistenceUnavailableError(event.id, f"failed to open store: {exc}") from exc

            try:
                # Same transaction as the upsert, so concurrent writers of this id
                # are already serialized on SQLite's write lock.
                existed = (
                    db.execute(select(WebhookEvent.id).where(WebhookEvent.id == event.id)).scalar_one_or_none()
                    is not None
                )
                dialect_name = db.get_bind().dialect.name
                db.execute(self._upsert_statement(dialect_name, event, now))
                db.commit()
            except (SQLAlchemyError, OverflowError) as exc:
                # Drivers raise OverflowError for values outside the column range
                # before SQLAlchemy sees a DBAPI error.
                db.rollback()
                raise WriteFailedError(event.id, f"failed to upsert webhook: {exc}") from exc

        return IngestOutcome.UPDATED if existed else IngestOutcome.INSERTED


class IngestDispatcher:
    """Runs ingests as detached tasks the request path never awaits.

    Each event gets its own task; the blocking write happens in a worker
    thread. Failures end at this boundary as log lines and metrics.
    """

    def __init__(self, ingestor: Ingestor, service_name: str = "yaya-webhook") -> None:
        self.ingestor = ingestor
        self.service_name = service_name
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, event: Event) -> asyncio.Task:
        """Schedule ingestion of `event` and return immediately."""

        task = asyncio.create_task(self._run(event), name=f"ingest:{event.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, event: Event) -> None:
        webhook_id_ctx.set(event.id)
        started = time.perf_counter()
        try:
            outcome = await asyncio.to_thread(self.ingestor.ingest, event)
        except IngestError as exc:
            webhook_ingest_total.labels(service=self.service_name, outcome=exc.outcome).inc()
            logger.error(
                "failed to save webhook to database webhook_id=%s outcome=%s error=%s",
                event.id,
                exc.outcome,
                exc,
            )
            return
        except Exception:
            webhook_ingest_total.labels(service=self.service_name, outcome="error").inc()
            logger.exception("unexpected ingest error webhook_id=%s", event.id)
            return
        finally:
            webhook_ingest_seconds.labels(service=self.service_name).observe(time.perf_counter() - started)
        webhook_ingest_total.labels(service=self.service_name, outcome=outcome.value).inc()
        logger.info("webhook saved to database webhook_id=%s outcome=%s", event.id, outcome.value)

    async def drain(self) -> None:
        """Wait for every in-flight ingest, e.g. before shutdown."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def get_stored_event(session_factory, webhook_id: str) -> StoredEvent | None:
    """Fetch one stored event by id."""

    with session_factory() as db:
        ensure_schema(db.connection())
        row = db.get(WebhookEvent, webhook_id)
        db.commit()
        return StoredEvent.model_validate(row) if row is not None else None


def list_stored_events(session_factory) -> list[StoredEvent]:
    """All stored events, most recently first seen first."""

    with session_factory() as db:
        ensure_schema(db.connection())
        rows = db.execute(
            select(WebhookEvent).order_by(WebhookEvent.first_seen_at.desc(), WebhookEvent.id)
        ).scalars().all()
        db.commit()
        return [StoredEvent.model_validate(row) for row in rows]
