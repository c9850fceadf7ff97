"""Request-local identifiers picked up by every log line.

One immutable ``RequestContext`` per request lives in a ``ContextVar``;
updates replace it, so concurrent requests never see each other's tenant.
"""
from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass, replace


@dataclass(frozen=True)
class RequestContext:
    request_id: str | None = None
    tenant_id: str | None = None
    user_id: str | None = None


_EMPTY = RequestContext()
_CURRENT: ContextVar[RequestContext] = ContextVar("pos_request_context", default=_EMPTY)


def set_request_context(
    *, request_id: str | None = None, tenant_id: str | None = None, user_id: str | None = None
) -> None:
    changes = {
        key: value
        for key, value in (("request_id", request_id), ("tenant_id", tenant_id), ("user_id", user_id))
        if value is not None
    }
    if changes:
        _CURRENT.set(replace(_CURRENT.get(), **changes))


def bind_tenant_id(tenant_id: int | str) -> Token:
    """Bind the resolved tenant; hand the token to ``reset_tenant_id`` when the request ends."""
    return _CURRENT.set(replace(_CURRENT.get(), tenant_id=str(tenant_id)))


def reset_tenant_id(token: Token) -> None:
    _CURRENT.reset(token)


def get_tenant_id() -> str | None:
    return _CURRENT.get().tenant_id


def context_fields() -> dict[str, str | None]:
    return asdict(_CURRENT.get())


def clear_request_context() -> None:
    _CURRENT.set(_EMPTY)
