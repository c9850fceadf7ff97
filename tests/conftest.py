import os
import tempfile
from pathlib import Path

# precisa rodar antes de qualquer import de pos_backend (config lê o ambiente no import)
_DB_DIR = tempfile.mkdtemp(prefix="pos_backend_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'pos_backend_test.db'}"
os.environ["ENV"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "0"

import pytest
from fastapi.testclient import TestClient

import pos_backend.models  # noqa: F401
from pos_backend.core.database import Base, SessionLocal, engine
from pos_backend.services.reports import daily_sales_cache


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    daily_sales_cache.clear()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(monkeypatch):
    from pos_backend import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)
    with TestClient(main.app) as test_client:
        yield test_client
