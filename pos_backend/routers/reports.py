from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from pos_backend.core import clock
from pos_backend.core.errors import ValidationFailed
from pos_backend.deps import get_tenant_scope, require_permission
from pos_backend.models.user import User
from pos_backend.services import reports as report_service
from pos_backend.services.tenant_scope import TenantScope

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.get("/daily-sales")
def daily_sales(
    date_: Optional[date] = Query(None, alias="date"),
    scope: TenantScope = Depends(get_tenant_scope),
    _user: User = Depends(require_permission("reports", "view")),
):
    day = date_ or clock.today()
    return report_service.daily_sales_summary(scope.db, scope.tenant_id, day)


@router.get("/top-selling-products")
def top_selling_products(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(report_service.DEFAULT_TOP_PRODUCTS_LIMIT, ge=1, le=50),
    scope: TenantScope = Depends(get_tenant_scope),
    _user: User = Depends(require_permission("reports", "view")),
):
    start = start_date or clock.today()
    end = end_date or start
    if end < start:
        raise ValidationFailed("The end date must be a date after or equal to start date.", field="end_date")
    return {
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "products": report_service.top_selling_products(scope.db, scope.tenant_id, start, end, limit),
    }


@router.get("/low-stock")
def low_stock(
    scope: TenantScope = Depends(get_tenant_scope),
    _user: User = Depends(require_permission("reports", "view")),
):
    products = report_service.low_stock_products(scope.db, scope.tenant_id)
    return {"total_low_stock": len(products), "products": products}
