from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from pos_backend.core.config import (
    DATABASE_URL,
    DB_LOCK_TIMEOUT_MS,
    IS_PROD,
    IS_TEST,
    JWT_SECRET_KEY,
    ORDER_NUMBER_MAX_RETRIES,
)

logger = logging.getLogger(__name__)
MIGRATIONS_PREFIX = "[MIGRATIONS]"


class StartupCheckError(RuntimeError):
    pass


def validate_database_environment() -> None:
    # SQLite serializa toda escrita no banco inteiro: aceitável em dev/test, não em produção
    if IS_PROD and DATABASE_URL.startswith("sqlite"):
        logger.critical("SQLite is forbidden in production database_url=%s", DATABASE_URL.split("://", 1)[0])
        raise StartupCheckError("SQLite is forbidden in production environment")
    if DB_LOCK_TIMEOUT_MS <= 0:
        raise StartupCheckError("DB_LOCK_TIMEOUT_MS must be a positive number of milliseconds")
    logger.info(
        "database settings lock_timeout_ms=%s order_number_max_retries=%s",
        DB_LOCK_TIMEOUT_MS,
        ORDER_NUMBER_MAX_RETRIES,
    )


def validate_auth_environment() -> None:
    if IS_PROD and not JWT_SECRET_KEY:
        logger.critical("JWT_SECRET_KEY must be set in production")
        raise StartupCheckError("JWT_SECRET_KEY is required in production environment")


def _expected_heads(alembic_config_path: Path) -> set[str]:
    if not alembic_config_path.exists():
        logger.critical("%s alembic config not found path=%s", MIGRATIONS_PREFIX, alembic_config_path)
        raise StartupCheckError("alembic config not found")
    script_directory = ScriptDirectory.from_config(Config(str(alembic_config_path)))
    return set(script_directory.get_heads())


def _applied_heads(engine: Engine) -> set[str]:
    with engine.connect() as connection:
        if "alembic_version" not in inspect(connection).get_table_names():
            logger.critical("%s alembic_version table missing", MIGRATIONS_PREFIX)
            raise StartupCheckError("Database has no migration state; run `alembic upgrade head`")
        rows = connection.exec_driver_sql("SELECT version_num FROM alembic_version").fetchall()
    return {row[0] for row in rows if row and row[0]}


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    """Refuse to serve against a schema older (or newer) than the code's head revision."""
    if IS_TEST:
        logger.info("%s skipped migration check in test environment", MIGRATIONS_PREFIX)
        return

    expected = _expected_heads(alembic_config_path)
    applied = _applied_heads(engine)
    if applied != expected:
        logger.critical(
            "%s pending migration detected current=%s expected=%s",
            MIGRATIONS_PREFIX,
            sorted(applied),
            sorted(expected),
        )
        raise StartupCheckError("Pending migrations detected; run `alembic upgrade head`")

    logger.info("%s migration state verified head=%s", MIGRATIONS_PREFIX, ",".join(sorted(applied)))
