from __future__ import annotations

from typing import Any, Callable, Dict

from sqlalchemy.orm import Query

from pos_backend.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


def paginate(query: Query, *, page: int = 1, limit: int = DEFAULT_PAGE_SIZE, serializer: Callable[[Any], Any]) -> Dict[str, Any]:
    page = max(1, int(page))
    limit = min(max(1, int(limit)), MAX_PAGE_SIZE)
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "items": [serializer(row) for row in rows],
        "total": total,
        "page": page,
        "limit": limit,
    }
