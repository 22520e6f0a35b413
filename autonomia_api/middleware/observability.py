from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from autonomia_api.core.request_context import bind_request_context, clear_request_context

logger = logging.getLogger(__name__)

_ACCOUNT_PARAM_NAMES = ("account_id", "accountId")


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        bind_request_context(request_id=request_id)

        status_code = 500
        endpoint = request.url.path
        method = request.method

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            account_id = _extract_account_id(request)
            user_id = _extract_user_id(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 2)

            bind_request_context(account_id=account_id, user_id=user_id)

            logger.info(
                "request completed",
                extra={
                    "request_id": request_id,
                    "account_id": account_id,
                    "user_id": user_id,
                    "endpoint": endpoint,
                    "method": method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )

            if "response" in locals():
                response.headers["X-Request-ID"] = request_id

            clear_request_context()


def _extract_account_id(request: Request) -> str | None:
    for name in _ACCOUNT_PARAM_NAMES:
        value = request.path_params.get(name) or request.query_params.get(name)
        if value:
            return str(value)
    return request.headers.get("X-Account-ID")


def _extract_user_id(request: Request) -> str | None:
    user_id = getattr(request.state, "claims_user_id", None)
    return str(user_id) if user_id is not None else None
