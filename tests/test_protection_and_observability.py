from __future__ import annotations

import json
import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from pos_backend.core.logging_setup import JsonFormatter, TextFormatter
from pos_backend.core.metrics import InMemoryRequestMetrics
from pos_backend.core.rate_limiter import InMemoryRateLimiterService, endpoint_key
from pos_backend.core.request_context import (
    bind_tenant_id,
    clear_request_context,
    get_tenant_id,
    reset_tenant_id,
    set_request_context,
)
from pos_backend.middleware.observability import ObservabilityMiddleware
from pos_backend.middleware.tenant_rate_limit import TenantRateLimitMiddleware


def test_rate_limit_is_isolated_per_tenant() -> None:
    service = InMemoryRateLimiterService(limit=2, window_seconds=60)

    first_tenant_a = service.check(tenant_id="1", endpoint="/api/v1/orders")
    second_tenant_a = service.check(tenant_id="1", endpoint="/api/v1/orders")
    blocked_tenant_a = service.check(tenant_id="1", endpoint="/api/v1/orders")

    tenant_b_still_allowed = service.check(tenant_id="2", endpoint="/api/v1/orders")

    assert first_tenant_a.allowed is True
    assert second_tenant_a.allowed is True
    assert blocked_tenant_a.allowed is False
    assert blocked_tenant_a.retry_after_seconds >= 1
    assert tenant_b_still_allowed.allowed is True


def test_endpoint_key_collapses_resource_ids() -> None:
    assert endpoint_key("post", "/api/v1/orders/15/cancel") == "POST /api/v1/orders/{id}/cancel"
    assert endpoint_key("GET", "/api/v1/orders/16/") == "GET /api/v1/orders/{id}"
    assert endpoint_key("GET", "/api/v1/orders") == "GET /api/v1/orders"


def _limited_app(limit: int) -> FastAPI:
    app = FastAPI()
    app.add_middleware(
        TenantRateLimitMiddleware,
        rate_limiter=InMemoryRateLimiterService(limit=limit, window_seconds=60),
        enabled=True,
    )

    @app.get("/api/v1/products")
    def products():
        return {"ok": True}

    return app


def test_middleware_returns_429_only_when_limit_exceeded() -> None:
    with TestClient(_limited_app(limit=1)) as client:
        ok = client.get("/api/v1/products", headers={"X-Tenant-ID": "10"})
        blocked = client.get("/api/v1/products", headers={"X-Tenant-ID": "10"})

    assert ok.status_code == 200
    assert ok.headers["X-RateLimit-Limit"] == "1"
    assert blocked.status_code == 429
    assert blocked.json()["error"]["type"] == "rate_limited"
    assert int(blocked.headers["Retry-After"]) >= 1


def test_rate_limit_ignores_tenant_id_in_query_string() -> None:
    with TestClient(_limited_app(limit=1)) as client:
        first = client.get("/api/v1/products?tenant_id=1")
        second = client.get("/api/v1/products?tenant_id=1")

    # sem header não há tenant para limitar
    assert first.status_code == 200
    assert second.status_code == 200


def test_metrics_snapshot_for_tenant() -> None:
    metrics = InMemoryRequestMetrics()

    metrics.observe(endpoint="/api/v1/orders", method="GET", status_code=200, duration_ms=10, tenant_id="1")
    metrics.observe(endpoint="/api/v1/orders", method="GET", status_code=500, duration_ms=30, tenant_id="1")
    metrics.observe(endpoint="/api/v1/products", method="GET", status_code=200, duration_ms=20, tenant_id="2")

    tenant_one = metrics.snapshot_for_tenant("1")

    assert tenant_one == {"total_requests": 2, "error_count": 1, "avg_duration_ms": 20.0}
    assert metrics.snapshot_for_tenant("2")["total_requests"] == 1
    assert metrics.snapshot_for_tenant("3")["total_requests"] == 0
    assert metrics.snapshot()["GET /api/v1/orders"]["error_count"] == 1


def test_tenant_binding_is_restored_by_token() -> None:
    clear_request_context()
    outer = bind_tenant_id(1)
    inner = bind_tenant_id(2)
    assert get_tenant_id() == "2"

    reset_tenant_id(inner)
    assert get_tenant_id() == "1"

    reset_tenant_id(outer)
    assert get_tenant_id() is None


def test_json_formatter_masks_secrets_and_includes_context() -> None:
    set_request_context(request_id="req-1", tenant_id="7", user_id="3")
    record = logging.LogRecord(
        name="pos_backend.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="login attempt password=%s token=%s",
        args=("hunter2", "abc.def"),
        exc_info=None,
    )

    payload = json.loads(JsonFormatter("%(message)s").format(record))
    clear_request_context()

    assert payload["request_id"] == "req-1"
    assert payload["tenant_id"] == "7"
    assert payload["user_id"] == "3"
    assert "hunter2" not in payload["message"]
    assert "abc.def" not in payload["message"]
    assert payload["message"] == "login attempt password=*** token=***"


def test_log_extras_and_text_format() -> None:
    token = bind_tenant_id(9)
    record = logging.LogRecord(
        name="pos_backend.services.orders",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="order created",
        args=(),
        exc_info=None,
    )
    record.order_number = "ORD-9-20240115-0001"

    payload = json.loads(JsonFormatter("%(message)s").format(record))
    text = TextFormatter("[tenant=%(tenant)s] %(message)s secret_key=abc").format(record)
    reset_tenant_id(token)

    assert payload["tenant_id"] == "9"
    assert payload["order_number"] == "ORD-9-20240115-0001"
    assert text == "[tenant=9] order created secret_key=***"


def test_observability_echoes_request_id() -> None:
    app = FastAPI()
    app.add_middleware(ObservabilityMiddleware)

    @app.get("/ping")
    def ping():
        return {"ok": True}

    with TestClient(app) as client:
        echoed = client.get("/ping", headers={"X-Request-ID": "abc-123"})
        generated = client.get("/ping")

    assert echoed.headers["X-Request-ID"] == "abc-123"
    assert generated.headers["X-Request-ID"]
