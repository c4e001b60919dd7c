"""Database bootstrap helpers."""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import NullPool
from sqlalchemy.schema import CreateIndex, CreateTable

from yayahook.common.config import settings


def make_engine(url: str) -> Engine:
    """Build an engine that opens and closes a connection per operation."""

    if not url.startswith("sqlite"):
        return create_engine(url, poolclass=NullPool)

    engine = create_engine(url, poolclass=NullPool, connect_args={"timeout": 30})

    # Concurrent writers must queue on the write lock up front; pysqlite's
    # deferred BEGIN lets two upserts deadlock and fail one with SQLITE_BUSY.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, _):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def make_session_factory(bind: Engine) -> sessionmaker:
    # `expire_on_commit=False` keeps ORM objects readable after commit in handlers.
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False)


engine = make_engine(settings.database_url)
SessionLocal = make_session_factory(engine)


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""

    pass


def ensure_schema(connection) -> None:
    """Create every mapped table and index that does not exist yet.

    Emits `IF NOT EXISTS` DDL, so concurrent first use from several workers
    cannot fail on an already existing table.
    """

    for table in Base.metadata.sorted_tables:
        connection.execute(CreateTable(table, if_not_exists=True))
        for index in table.indexes:
            connection.execute(CreateIndex(index, if_not_exists=True))
