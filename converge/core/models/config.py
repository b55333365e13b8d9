"""
Config model — the settings that shape a converge run.

Loaded from converge.yml in the configuration root. Everything here
has a sensible default, so a missing file is a valid configuration.
"""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any

from pydantic import BaseModel, Field, field_validator

# e.g. "1d", "12h", "30m", "45s", "1d 12h"
_DURATION_PART = re.compile(r"(\d+)\s*([dhms])")
_DURATION_UNITS = {"d": "days", "h": "hours", "m": "minutes", "s": "seconds"}

DEFAULT_REFRESH = timedelta(days=1)


def parse_duration(value: Any) -> Any:
    """Accept humane duration strings on top of what pydantic parses.

    Numbers are seconds. Strings made of ``<n><unit>`` parts (units
    ``d``, ``h``, ``m``, ``s``) are summed. Anything else is passed
    through to pydantic's own timedelta parsing.
    """
    if not isinstance(value, str):
        return value

    text = value.strip().lower()
    parts = _DURATION_PART.findall(text)
    if not parts or _DURATION_PART.sub("", text).strip():
        return value

    total = timedelta()
    for amount, unit in parts:
        total += timedelta(**{_DURATION_UNITS[unit]: int(amount)})
    return total


class Config(BaseModel):
    """Root configuration — loaded from converge.yml."""

    # ── Freshness ────────────────────────────────────────────────
    git_refresh: timedelta = DEFAULT_REFRESH
    package_refresh: timedelta = DEFAULT_REFRESH

    # ── Execution ────────────────────────────────────────────────
    max_workers: int | None = Field(default=None, ge=1)

    # ── Template data ────────────────────────────────────────────
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("git_refresh", "package_refresh", mode="before")
    @classmethod
    def _humane_duration(cls, value: Any) -> Any:
        return parse_duration(value)

    def refresh_for(self, facet: str) -> timedelta:
        """Refresh interval for a freshness facet ('git' or 'package')."""
        if facet == "git":
            return self.git_refresh
        if facet == "package":
            return self.package_refresh
        raise ValueError(f"Unknown refresh facet: {facet!r}")
