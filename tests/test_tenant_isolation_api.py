import pytest

from pos_backend.core.database import SessionLocal
from tests.fixtures_data import PRODUCT_PAYLOAD, TENANT_ERRORS
from tests.helpers import auth_headers, create_product, create_tenant, create_user


@pytest.fixture
def two_tenants():
    with SessionLocal() as db:
        tenant_a = create_tenant(db, name="Loja A")
        tenant_b = create_tenant(db, name="Loja B")
        inactive = create_tenant(db, name="Loja Fechada", is_active=False)
        owner_a = create_user(db, tenant_a.id, role="owner")
        owner_b = create_user(db, tenant_b.id, role="owner")
        product_a = create_product(db, tenant_a.id, sku="A-1", name="Produto A")
        product_b = create_product(db, tenant_b.id, sku="B-1", name="Produto B")
        return {
            "tenant_a": tenant_a.id,
            "tenant_b": tenant_b.id,
            "inactive": inactive.id,
            "owner_a": owner_a.id,
            "owner_b": owner_b.id,
            "product_a": product_a.id,
            "product_b": product_b.id,
        }


def _assert_tenant_error(response, key):
    status_code, detail = TENANT_ERRORS[key]
    assert response.status_code == status_code
    assert response.json()["detail"] == detail


def test_missing_header_is_rejected_before_authentication(client):
    _assert_tenant_error(client.get("/api/v1/products"), "missing")


def test_malformed_header_is_rejected(client, two_tenants):
    headers = auth_headers(two_tenants["owner_a"], two_tenants["tenant_a"], header_tenant="abc")
    _assert_tenant_error(client.get("/api/v1/products", headers=headers), "invalid")


def test_unknown_tenant_is_rejected(client, two_tenants):
    headers = auth_headers(two_tenants["owner_a"], two_tenants["tenant_a"], header_tenant=99999)
    _assert_tenant_error(client.get("/api/v1/orders", headers=headers), "not_found")


def test_inactive_tenant_is_rejected(client, two_tenants):
    headers = auth_headers(two_tenants["owner_a"], two_tenants["tenant_a"], header_tenant=two_tenants["inactive"])
    _assert_tenant_error(client.get("/api/v1/reports/low-stock", headers=headers), "inactive")


def test_user_cannot_act_on_another_tenant_via_header(client, two_tenants):
    headers = auth_headers(two_tenants["owner_a"], two_tenants["tenant_a"], header_tenant=two_tenants["tenant_b"])

    response = client.get("/api/v1/products", headers=headers)

    assert response.status_code == 403
    assert response.json()["error"] == {"type": "access_denied", "reason": "tenant_mismatch"}


def test_listing_only_returns_own_tenant_rows(client, two_tenants):
    response = client.get("/api/v1/products", headers=auth_headers(two_tenants["owner_a"], two_tenants["tenant_a"]))

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert [item["sku"] for item in body["items"]] == ["A-1"]


def test_foreign_id_looks_like_a_missing_row(client, two_tenants):
    headers = auth_headers(two_tenants["owner_b"], two_tenants["tenant_b"])

    response = client.get(f"/api/v1/products/{two_tenants['product_a']}", headers=headers)

    assert response.status_code == 404
    assert response.json()["error"]["type"] == "not_found"


def test_query_string_tenant_id_is_ignored(client, two_tenants):
    headers = auth_headers(two_tenants["owner_a"], two_tenants["tenant_a"])

    response = client.get(f"/api/v1/products?tenant_id={two_tenants['tenant_b']}", headers=headers)

    assert response.status_code == 200
    assert [item["sku"] for item in response.json()["items"]] == ["A-1"]


def test_body_tenant_id_is_ignored_on_create(client, two_tenants):
    headers = auth_headers(two_tenants["owner_a"], two_tenants["tenant_a"])
    payload = {**PRODUCT_PAYLOAD, "tenant_id": two_tenants["tenant_b"]}

    response = client.post("/api/v1/products", json=payload, headers=headers)

    assert response.status_code == 201
    assert response.json()["tenant_id"] == two_tenants["tenant_a"]


def test_user_of_deactivated_tenant_is_refused(client, two_tenants):
    from pos_backend.models.tenant import Tenant

    with SessionLocal() as db:
        tenant = db.get(Tenant, two_tenants["tenant_a"])
        tenant.is_active = False
        db.commit()

    response = client.get("/api/v1/auth/me", headers=auth_headers(two_tenants["owner_a"], two_tenants["tenant_a"]))

    assert response.status_code == 403
    assert response.json()["error"]["type"] == "tenant_inactive"


def test_unauthenticated_request_with_valid_tenant_gets_401(client, two_tenants):
    response = client.get("/api/v1/products", headers={"X-Tenant-ID": str(two_tenants["tenant_a"])})

    assert response.status_code == 401
