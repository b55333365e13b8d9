"""
UnitReceipt — the outcome of applying one unit.

The execution driver never lets a unit's exception escape a stage.
Whatever happened is captured here instead, together with the chain
of underlying causes, so every failure can be reported at the end.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class UnitReceipt(BaseModel):
    """Result of applying a single unit."""

    unit_id: int
    description: str = ""
    status: Literal["ok", "failed"] = "ok"
    thread_local: bool = False

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    error: str | None = None
    causes: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether the unit succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the unit failed."""
        return self.status == "failed"

    @classmethod
    def success(cls, unit_id: int, description: str = "", **kwargs: Any) -> UnitReceipt:
        """Create a success receipt."""
        return cls(unit_id=unit_id, description=description, status="ok", **kwargs)

    @classmethod
    def failure(
        cls,
        unit_id: int,
        error: str,
        description: str = "",
        causes: list[str] | None = None,
        **kwargs: Any,
    ) -> UnitReceipt:
        """Create a failure receipt."""
        return cls(
            unit_id=unit_id,
            description=description,
            status="failed",
            error=error,
            causes=causes or [],
            **kwargs,
        )
