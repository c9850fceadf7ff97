from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from pos_backend.core.config import DATABASE_URL, DB_LOCK_TIMEOUT_MS, SQLITE_BUSY_TIMEOUT_SECONDS
from pos_backend.core.errors import (
    DuplicateResource,
    LockTimeout,
    OrderNumberConflict,
    PersistenceError,
    PosError,
)

logger = logging.getLogger(__name__)

# lock_not_available, deadlock_detected, serialization_failure
_PG_CONTENTION_CODES = {"55P03", "40P01", "40001"}
_SQLITE_CONTENTION_MARKERS = ("database is locked", "database table is locked")


def _build_engine(url: str):
    if url.startswith("sqlite"):
        sqlite_engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
        )
        _install_sqlite_write_lock(sqlite_engine)
        return sqlite_engine
    return create_engine(url, pool_pre_ping=True)


def _install_sqlite_write_lock(sqlite_engine) -> None:
    # SQLite não tem SELECT ... FOR UPDATE: cada transação abre com BEGIN IMMEDIATE
    # e segura o lock de escrita do banco inteiro até o commit/rollback.
    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")


engine = _build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def apply_lock_timeout(db: Session) -> None:
    """Bound how long the current transaction waits on row locks."""
    if db.get_bind().dialect.name != "postgresql":
        return
    # SET não aceita bind params
    db.execute(text(f"SET LOCAL lock_timeout = '{int(DB_LOCK_TIMEOUT_MS)}ms'"))


def translate_db_error(exc: Exception) -> PosError:
    original = getattr(exc, "orig", None)
    message = str(original or exc).lower()

    if isinstance(exc, IntegrityError):
        if "uq_orders_tenant_order_number" in message or "orders.order_number" in message:
            return OrderNumberConflict()
        if "uq_products_tenant_sku" in message or "products.sku" in message:
            return DuplicateResource("The sku has already been taken.", field="sku")
        if "users.email" in message or "ix_users_email" in message:
            return DuplicateResource("The email has already been taken.", field="email")

    pgcode = getattr(original, "pgcode", None)
    if pgcode in _PG_CONTENTION_CODES or any(marker in message for marker in _SQLITE_CONTENTION_MARKERS):
        return LockTimeout()

    logger.error("database operation failed error_type=%s detail=%s", type(exc).__name__, message)
    return PersistenceError()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Run a unit of work: commit on success, roll back on any failure.

    Storage errors are translated into the typed errors of
    ``pos_backend.core.errors``; everything else propagates unchanged.
    """
    try:
        yield db
        db.commit()
    except (IntegrityError, OperationalError) as exc:
        db.rollback()
        raise translate_db_error(exc) from exc
    except Exception:
        db.rollback()
        raise
