from pathlib import Path

import pytest

from pos_backend.core import startup_checks
from pos_backend.core.database import engine
from pos_backend.core.startup_checks import StartupCheckError

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def test_sqlite_is_refused_in_production(monkeypatch):
    monkeypatch.setattr(startup_checks, "IS_PROD", True)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "sqlite:///./prod.db")

    with pytest.raises(StartupCheckError):
        startup_checks.validate_database_environment()


def test_empty_jwt_secret_is_refused_in_production(monkeypatch):
    monkeypatch.setattr(startup_checks, "IS_PROD", True)
    monkeypatch.setattr(startup_checks, "JWT_SECRET_KEY", "")

    with pytest.raises(StartupCheckError):
        startup_checks.validate_auth_environment()


def test_migration_check_is_skipped_in_tests():
    startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=Path("/nonexistent/alembic.ini"))


def test_database_without_migration_state_is_refused(monkeypatch):
    monkeypatch.setattr(startup_checks, "IS_TEST", False)

    with pytest.raises(StartupCheckError, match="no migration state"):
        startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI)
