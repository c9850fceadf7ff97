from types import SimpleNamespace

import pytest
from starlette.requests import Request

from pos_backend.core.errors import InvalidTenantIdentifier, MissingTenantHeader, TenantInactive, TenantNotFound
from pos_backend.middleware.tenant_context import is_tenant_scoped_path
from pos_backend.services.tenant_context import TenantContext, get_current_tenant_id, get_tenant_context
from pos_backend.services.tenant_resolver import TenantResolver
from tests.helpers import create_tenant


def _build_request(headers=None, path="/api/v1/products", query_string=b"") -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "query_string": query_string,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    }
    return Request(scope)


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_missing_header_is_rejected(raw):
    with pytest.raises(MissingTenantHeader) as exc:
        TenantResolver.parse_tenant_id(raw)

    assert exc.value.status_code == 400
    assert exc.value.message == "Missing required header: X-Tenant-ID"


@pytest.mark.parametrize("raw", ["abc", "1.5", "-3", "0", "12a", "１２"])
def test_non_numeric_header_is_rejected(raw):
    with pytest.raises(InvalidTenantIdentifier) as exc:
        TenantResolver.parse_tenant_id(raw)

    assert exc.value.status_code == 400
    assert exc.value.message == "Invalid tenant ID format."


def test_numeric_header_is_parsed_with_whitespace():
    assert TenantResolver.parse_tenant_id(" 42 ") == 42


def test_resolve_tenant_checks_existence_and_activity(db):
    active = create_tenant(db, name="Ativa")
    inactive = create_tenant(db, name="Inativa", is_active=False)

    assert TenantResolver.resolve_tenant(db, active.id).id == active.id

    with pytest.raises(TenantNotFound) as not_found:
        TenantResolver.resolve_tenant(db, 9999)
    assert not_found.value.status_code == 404

    with pytest.raises(TenantInactive) as inactive_exc:
        TenantResolver.resolve_tenant(db, inactive.id)
    assert inactive_exc.value.status_code == 403


def test_resolve_from_request_only_reads_the_header(db):
    tenant = create_tenant(db)
    request = _build_request(
        headers={"X-Tenant-ID": str(tenant.id)},
        query_string=b"tenant_id=9999",
    )

    assert TenantResolver.resolve_from_request(db, request).id == tenant.id

    with pytest.raises(MissingTenantHeader):
        TenantResolver.resolve_from_request(db, _build_request(query_string=f"tenant_id={tenant.id}".encode()))


def test_tenant_context_comes_from_request_state():
    request = _build_request()
    request.state.tenant = TenantContext.from_tenant(SimpleNamespace(id=5, name="Loja"))

    assert get_current_tenant_id(request) == 5
    assert get_tenant_context(request) == TenantContext(tenant_id=5, tenant_name="Loja")


def test_tenant_context_without_resolution_raises():
    request = _build_request()
    request.state.tenant = None

    assert get_current_tenant_id(request) is None
    with pytest.raises(MissingTenantHeader):
        get_tenant_context(request)


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/api/v1/products", True),
        ("/api/v1/orders/10/cancel", True),
        ("/api/v1/reports/daily-sales", True),
        ("/api/v1/auth/login", False),
        ("/api/v1/productsx", False),
        ("/health", False),
    ],
)
def test_tenant_scoped_paths(path, expected):
    assert is_tenant_scoped_path(path) is expected
