import os
from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pos_backend.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

# Tenant resolution
TENANT_HEADER = os.getenv("TENANT_HEADER", "X-Tenant-ID").strip() or "X-Tenant-ID"
TENANT_SCOPED_PREFIXES = (
    "/api/v1/products",
    "/api/v1/customers",
    "/api/v1/orders",
    "/api/v1/reports",
)

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

# Auth (JWT)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))

# Locking / concurrency
DB_LOCK_TIMEOUT_MS = int(os.getenv("DB_LOCK_TIMEOUT_MS", "5000"))
SQLITE_BUSY_TIMEOUT_SECONDS = float(os.getenv("SQLITE_BUSY_TIMEOUT_SECONDS", "30"))
ORDER_NUMBER_MAX_RETRIES = max(1, int(os.getenv("ORDER_NUMBER_MAX_RETRIES", "3")))
CONTENTION_RETRY_AFTER_SECONDS = int(os.getenv("CONTENTION_RETRY_AFTER_SECONDS", "1"))

# Rate limit por tenant + endpoint
RATE_LIMIT_ENABLED = _env_flag("RATE_LIMIT_ENABLED", "1")
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))

# Relatórios
DAILY_SALES_CACHE_TTL_SECONDS = int(os.getenv("DAILY_SALES_CACHE_TTL_SECONDS", "1800"))

# Paginação
DEFAULT_PAGE_SIZE = 15
MAX_PAGE_SIZE = 100
