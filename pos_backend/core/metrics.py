from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from pos_backend.core.rate_limiter import endpoint_key


@dataclass
class EndpointMetric:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    error_count: int = 0

    def record(self, status_code: int, duration_ms: float) -> None:
        self.total_requests += 1
        self.total_duration_ms += duration_ms
        if status_code >= 400:
            self.error_count += 1

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.total_requests if self.total_requests else 0.0

    def as_dict(self, *, with_total_duration: bool = False) -> dict[str, float | int]:
        data: dict[str, float | int] = {
            "total_requests": self.total_requests,
            "error_count": self.error_count,
            "avg_duration_ms": round(self.avg_duration_ms, 2),
        }
        if with_total_duration:
            data["total_duration_ms"] = round(self.total_duration_ms, 2)
        return data


class InMemoryRequestMetrics:
    """Process-local counters per endpoint (ids collapsed) and per resolved tenant."""

    def __init__(self) -> None:
        self._by_endpoint: dict[str, EndpointMetric] = {}
        self._by_tenant: dict[str, EndpointMetric] = {}
        self._lock = Lock()

    def observe(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        duration_ms: float,
        tenant_id: str | None = None,
    ) -> None:
        key = endpoint_key(method, endpoint)
        with self._lock:
            self._by_endpoint.setdefault(key, EndpointMetric()).record(status_code, duration_ms)
            if tenant_id:
                self._by_tenant.setdefault(tenant_id, EndpointMetric()).record(status_code, duration_ms)

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {key: metric.as_dict(with_total_duration=True) for key, metric in self._by_endpoint.items()}

    def snapshot_for_tenant(self, tenant_id: str) -> dict[str, float | int]:
        with self._lock:
            return self._by_tenant.get(tenant_id, EndpointMetric()).as_dict()

    def reset(self) -> None:
        with self._lock:
            self._by_endpoint.clear()
            self._by_tenant.clear()


request_metrics = InMemoryRequestMetrics()
