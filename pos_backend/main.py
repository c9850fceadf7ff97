import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from pos_backend.core.config import CORS_ORIGINS, DATABASE_URL, IS_DEV
from pos_backend.core.database import Base, engine
from pos_backend.core.errors import PosError, error_response
from pos_backend.core.logging_setup import configure_logging
from pos_backend.core.startup_checks import (
    ensure_migrations_applied,
    validate_auth_environment,
    validate_database_environment,
)
from pos_backend.middleware.observability import ObservabilityMiddleware
from pos_backend.middleware.tenant_context import TenantContextMiddleware
from pos_backend.middleware.tenant_rate_limit import TenantRateLimitMiddleware
import pos_backend.models  # garante que os models são importados antes do create_all

from pos_backend.routers.auth import router as auth_router
from pos_backend.routers.customers import router as customers_router
from pos_backend.routers.internal_metrics import router as internal_metrics_router
from pos_backend.routers.orders import router as orders_router
from pos_backend.routers.products import router as products_router
from pos_backend.routers.reports import router as reports_router

configure_logging()

logger = logging.getLogger(__name__)
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


def _startup_tasks() -> None:
    validate_database_environment()
    validate_auth_environment()
    if IS_DEV and DATABASE_URL.startswith("sqlite"):
        logger.info("creating tables on local sqlite database")
        Base.metadata.create_all(bind=engine)
        return
    ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="POS Backend API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# a última adicionada é a mais externa: observability envolve todo o resto
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TenantContextMiddleware)
app.add_middleware(TenantRateLimitMiddleware)
app.add_middleware(ObservabilityMiddleware)


@app.exception_handler(PosError)
async def pos_error_handler(_request: Request, exc: PosError):
    if exc.status_code >= 500:
        logger.warning("request failed error_code=%s", exc.code, extra={"error_code": exc.code})
    return error_response(exc)


app.include_router(auth_router)
app.include_router(products_router)
app.include_router(customers_router)
app.include_router(orders_router)
app.include_router(reports_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "ok"}
