from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, *, detail: Any = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class AmbiguousResolutionError(ConflictError):
    def __init__(self, message: str, *, candidates: list[str]) -> None:
        super().__init__(message, detail={"candidates": candidates})
        self.candidates = candidates


class UpstreamError(ServiceError):
    status_code = 502
