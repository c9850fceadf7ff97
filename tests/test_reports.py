from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from pos_backend.core import clock
from pos_backend.core.database import SessionLocal
from pos_backend.models.order import Order
from pos_backend.services import orders as order_service
from pos_backend.services import reports as report_service
from pos_backend.services.inventory import StockLine
from pos_backend.services.tenant_scope import for_tenant
from tests.helpers import actor, auth_headers, create_product, create_tenant, create_user, scope_for

REPORT_DAY = date(2024, 1, 15)


def _at(day, hour=12):
    return lambda: datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


@pytest.fixture
def sales(monkeypatch):
    with SessionLocal() as db:
        tenant = create_tenant(db)
        other = create_tenant(db, name="Outra Loja")
        owner_row = create_user(db, tenant.id, role="owner")
        other_owner_row = create_user(db, other.id, role="owner")
        a = create_product(db, tenant.id, sku="A", name="Alpha", price="10.00", stock=100)
        b = create_product(db, tenant.id, sku="B", name="Beta", price="5.50", stock=100)
        c = create_product(db, tenant.id, sku="C", name="Gamma", price="1.00", stock=3, threshold=10)
        d = create_product(db, tenant.id, sku="D", name="Delta", price="1.00", stock=10, threshold=10)
        e = create_product(db, tenant.id, sku="E", name="Removed", price="1.00", stock=0, threshold=10)
        e.deleted_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        db.commit()
        foreign = create_product(db, other.id, sku="A", name="Alpha Outra", price="10.00", stock=100)

        ids = {
            "tenant_id": tenant.id,
            "other_tenant_id": other.id,
            "owner_id": owner_row.id,
            "a": a.id,
            "b": b.id,
            "c": c.id,
            "d": d.id,
        }
        owner = actor(ids["owner_id"], ids["tenant_id"])
        scope = scope_for(db, ids["tenant_id"])

        monkeypatch.setattr(clock, "utcnow", _at(date(2024, 1, 14)))
        previous_day = order_service.create_order(scope, owner, [StockLine(ids["a"], 10)])
        order_service.update_status(scope, owner, previous_day.id, "paid")

        monkeypatch.setattr(clock, "utcnow", _at(REPORT_DAY))
        o1 = order_service.create_order(
            scope, owner, [StockLine(ids["a"], 2), StockLine(ids["b"], 1)], tax_rate=Decimal("10")
        )
        o2 = order_service.create_order(scope, owner, [StockLine(ids["a"], 1)])
        order_service.create_order(scope, owner, [StockLine(ids["b"], 4)])
        o4 = order_service.create_order(scope, owner, [StockLine(ids["a"], 3)])
        order_service.update_status(scope, owner, o1.id, "paid")
        order_service.update_status(scope, owner, o2.id, "paid")
        order_service.cancel_order(scope, owner, o4.id)

        other_scope = scope_for(db, ids["other_tenant_id"])
        other_owner = actor(other_owner_row.id, ids["other_tenant_id"])
        foreign_order = order_service.create_order(other_scope, other_owner, [StockLine(foreign.id, 7)])
        order_service.update_status(other_scope, other_owner, foreign_order.id, "paid")

    monkeypatch.setattr(clock, "utcnow", _at(REPORT_DAY, hour=18))
    return ids


def test_daily_sales_summary(db, sales):
    summary = report_service.daily_sales_summary(db, sales["tenant_id"], REPORT_DAY)

    assert summary == {
        "date": "2024-01-15",
        "total_orders": 2,
        "total_revenue": "38.05",
        "average_order_value": "19.03",
        "orders_by_status": {"pending": 1, "paid": 2, "cancelled": 1},
    }


def test_daily_sales_summary_for_empty_day(db, sales):
    summary = report_service.daily_sales_summary(db, sales["tenant_id"], date(2024, 2, 1))

    assert summary["total_orders"] == 0
    assert summary["total_revenue"] == "0.00"
    assert summary["average_order_value"] == "0.00"
    assert summary["orders_by_status"] == {"pending": 0, "paid": 0, "cancelled": 0}


def test_top_selling_products_counts_paid_orders_in_range(db, sales):
    single_day = report_service.top_selling_products(db, sales["tenant_id"], REPORT_DAY, REPORT_DAY)

    assert single_day == [
        {
            "id": sales["a"],
            "name": "Alpha",
            "sku": "A",
            "total_quantity_sold": 3,
            "total_revenue": "30.00",
        },
        {
            "id": sales["b"],
            "name": "Beta",
            "sku": "B",
            "total_quantity_sold": 1,
            "total_revenue": "5.50",
        },
    ]

    two_days = report_service.top_selling_products(
        db, sales["tenant_id"], date(2024, 1, 14), REPORT_DAY, limit=1
    )
    assert [(row["sku"], row["total_quantity_sold"]) for row in two_days] == [("A", 13)]


def test_low_stock_products(db, sales):
    rows = report_service.low_stock_products(db, sales["tenant_id"])

    assert [(row["sku"], row["stock_quantity"], row["shortage"]) for row in rows] == [
        ("C", 3, 7),
        ("D", 10, 0),
    ]


def test_reports_api(client, sales):
    headers = auth_headers(sales["owner_id"], sales["tenant_id"])

    daily = client.get("/api/v1/reports/daily-sales", params={"date": "2024-01-15"}, headers=headers)
    assert daily.status_code == 200
    assert daily.json()["total_revenue"] == "38.05"

    today = client.get("/api/v1/reports/daily-sales", headers=headers)
    assert today.json()["date"] == "2024-01-15"

    top = client.get(
        "/api/v1/reports/top-selling-products",
        params={"start_date": "2024-01-15", "end_date": "2024-01-15", "limit": 1},
        headers=headers,
    )
    assert top.status_code == 200
    assert [row["sku"] for row in top.json()["products"]] == ["A"]

    low = client.get("/api/v1/reports/low-stock", headers=headers)
    assert low.json()["total_low_stock"] == 2


def test_top_selling_rejects_inverted_range(client, sales):
    response = client.get(
        "/api/v1/reports/top-selling-products",
        params={"start_date": "2024-01-15", "end_date": "2024-01-14"},
        headers=auth_headers(sales["owner_id"], sales["tenant_id"]),
    )

    assert response.status_code == 422
    assert response.json()["error"]["field"] == "end_date"


def test_closed_day_summary_is_served_from_cache(db, sales):
    closed_day = date(2024, 1, 14)
    first = report_service.daily_sales_summary(db, sales["tenant_id"], closed_day)
    assert first["total_orders"] == 1

    # escrita direta, sem passar pelo workflow
    order = for_tenant(db, Order, sales["tenant_id"]).filter(Order.status == "paid").order_by(Order.id).first()
    order.status = "pending"
    db.commit()

    assert report_service.daily_sales_summary(db, sales["tenant_id"], closed_day) == first

    report_service.invalidate_daily_sales_cache(sales["tenant_id"], closed_day)
    refreshed = report_service.daily_sales_summary(db, sales["tenant_id"], closed_day)

    assert refreshed["total_orders"] == 0
    assert refreshed["orders_by_status"]["pending"] == 1


def test_cancelling_an_order_refreshes_its_day(db, sales):
    closed_day = date(2024, 1, 14)
    assert report_service.daily_sales_summary(db, sales["tenant_id"], closed_day)["total_orders"] == 1
    order_id = for_tenant(db, Order, sales["tenant_id"]).order_by(Order.id).first().id
    db.rollback()

    scope = scope_for(db, sales["tenant_id"])
    order_service.cancel_order(scope, actor(sales["owner_id"], sales["tenant_id"]), order_id)
    summary = report_service.daily_sales_summary(db, sales["tenant_id"], closed_day)

    assert summary["total_orders"] == 0
    assert summary["orders_by_status"]["cancelled"] == 1


def test_current_day_summary_is_not_cached(db, sales):
    report_service.daily_sales_summary(db, sales["tenant_id"], REPORT_DAY)

    assert report_service.daily_sales_cache.get(sales["tenant_id"], REPORT_DAY) is None


def test_cache_entries_expire_and_can_be_invalidated(monkeypatch):
    cache = report_service.DailySalesCache(ttl_seconds=60)
    now = [1000.0]
    monkeypatch.setattr(report_service.time, "monotonic", lambda: now[0])

    cache.put(1, REPORT_DAY, {"total_orders": 3})
    cache.put(2, REPORT_DAY, {"total_orders": 5})
    assert cache.get(1, REPORT_DAY) == {"total_orders": 3}

    cache.invalidate(1, REPORT_DAY)
    assert cache.get(1, REPORT_DAY) is None
    assert cache.get(2, REPORT_DAY) == {"total_orders": 5}

    now[0] += 61
    assert cache.get(2, REPORT_DAY) is None
