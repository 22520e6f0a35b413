from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class StepResult:
    """Outcome of a best-effort step. Failures are reported, never raised."""

    name: str
    ok: bool
    detail: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, name: str, detail: str | None = None, **data: Any) -> "StepResult":
        return cls(name=name, ok=True, detail=detail, data=data)

    @classmethod
    def failure(cls, name: str, detail: str) -> "StepResult":
        return cls(name=name, ok=False, detail=detail)

    @classmethod
    def skipped(cls, name: str, reason: str) -> "StepResult":
        return cls(name=name, ok=True, detail=reason, data={"skipped": True})

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name, "ok": self.ok}
        if self.detail:
            payload["detail"] = self.detail
        if self.data:
            payload.update(self.data)
        return payload
