from __future__ import annotations

from fastapi import APIRouter, Depends

from pos_backend.core.metrics import request_metrics
from pos_backend.deps import require_permission
from pos_backend.models.user import User

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("/tenant")
def tenant_metrics(user: User = Depends(require_permission("metrics", "view"))):
    return {"tenant_id": user.tenant_id, "metrics": request_metrics.snapshot_for_tenant(str(user.tenant_id))}


@router.get("/endpoints")
def endpoint_metrics(_user: User = Depends(require_permission("metrics", "view"))):
    return {"endpoints": request_metrics.snapshot()}
