from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class RequestContext:
    """Identifiers attached to every log line emitted while serving a request."""

    request_id: str | None = None
    account_id: str | None = None
    user_id: str | None = None


_EMPTY = RequestContext()
_CURRENT: ContextVar[RequestContext] = ContextVar("autonomia_request_context", default=_EMPTY)


def current_request_context() -> RequestContext:
    return _CURRENT.get()


def bind_request_context(
    *, request_id: str | None = None, account_id: str | None = None, user_id: str | None = None
) -> RequestContext:
    # None keeps what is already bound
    changes = {
        key: value
        for key, value in (("request_id", request_id), ("account_id", account_id), ("user_id", user_id))
        if value is not None
    }
    context = replace(_CURRENT.get(), **changes)
    _CURRENT.set(context)
    return context


def clear_request_context() -> None:
    _CURRENT.set(_EMPTY)
