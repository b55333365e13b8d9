"""
RunState — the mergeable record of what has already happened.

RunState tracks side-channel facts produced by applying units:

    last_update   name → when it was last refreshed (e.g. the config checkout)
    once          id   → when a run-once unit ran
    hashes        id   → content hash + when it was recorded

Units running in parallel never write to a shared RunState. Each one
gets an empty, unit-local instance; the coordinating thread merges the
deltas back with ``extend()`` once the stage has joined. The ``dirty``
flag tracks whether anything changed, so clean states are never
written to disk.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import PurePath
from typing import Any

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from converge.core.models.config import Config


def _now() -> datetime:
    """Current UTC time."""
    return datetime.now(UTC)


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Cannot hash value of type {type(value).__name__}")


def stable_hash(value: Any) -> str:
    """Hash a JSON-like value the same way in every process.

    The built-in ``hash()`` is salted per interpreter, so it cannot be
    persisted. Mappings are key-sorted and sets are sorted, which makes
    the digest independent of insertion order for those types; list
    order still matters.
    """
    payload = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class Hashed(BaseModel):
    """A recorded content hash and when it was recorded."""

    model_config = ConfigDict(extra="forbid")

    hash: str
    updated: AwareDatetime


class PersistedState(BaseModel):
    """The on-disk shape of a RunState."""

    model_config = ConfigDict(extra="forbid")

    last_update: dict[str, AwareDatetime] = Field(default_factory=dict)
    once: dict[str, AwareDatetime] = Field(default_factory=dict)
    hashes: dict[str, Hashed] = Field(default_factory=dict)


@dataclass
class RunState:
    """Mutable, mergeable run state.

    ``config`` supplies the refresh intervals used by freshness checks
    and ``now`` is the timestamp of the current run.
    """

    config: Config = field(default_factory=Config)
    now: datetime = field(default_factory=_now)
    dirty: bool = False
    last_update: dict[str, datetime] = field(default_factory=dict)
    once: dict[str, datetime] = field(default_factory=dict)
    hashes: dict[str, Hashed] = field(default_factory=dict)

    @classmethod
    def empty(cls, config: Config, now: datetime) -> RunState:
        """A clean state for one unit's delta."""
        return cls(config=config, now=now)

    @classmethod
    def from_persisted(
        cls,
        persisted: PersistedState,
        config: Config,
        now: datetime,
    ) -> RunState:
        """Build a clean state from what was loaded off disk."""
        return cls(
            config=config,
            now=now,
            last_update=dict(persisted.last_update),
            once=dict(persisted.once),
            hashes=dict(persisted.hashes),
        )

    # ── Last update ──────────────────────────────────────────────

    def last_update_of(self, name: str) -> datetime | None:
        """When the thing called ``name`` was last touched, if ever."""
        return self.last_update.get(name)

    def touch(self, name: str) -> None:
        self.dirty = True
        self.last_update[name] = _now()

    # ── Once ─────────────────────────────────────────────────────

    def has_run_once(self, id: str) -> bool:
        return id in self.once

    def touch_once(self, id: str) -> None:
        self.dirty = True
        self.once[id] = _now()

    # ── Hashes ───────────────────────────────────────────────────

    def is_hash_fresh(self, id: str, value: Any, facet: str = "package") -> bool:
        """Check whether ``value`` is unchanged and recently recorded.

        Both must hold: the stored hash for ``id`` matches ``value``, and
        it was recorded less than the facet's refresh interval ago.
        Unchanged content still goes stale once the interval passes.
        """
        hashed = self.hashes.get(id)
        if hashed is None:
            return False

        if hashed.hash != stable_hash(value):
            return False

        age = self.now - hashed.updated
        return age < self.config.refresh_for(facet)

    def touch_hash(self, id: str, value: Any) -> None:
        self.dirty = True
        self.hashes[id] = Hashed(hash=stable_hash(value), updated=_now())

    # ── Merge / serialize ────────────────────────────────────────

    def extend(self, other: RunState) -> None:
        """Merge another state into this one, later values winning.

        A clean ``other`` carries nothing and leaves this state untouched.
        """
        if not other.dirty:
            return

        self.dirty = True
        self.last_update.update(other.last_update)
        self.once.update(other.once)
        self.hashes.update(other.hashes)

    def serialize(self) -> PersistedState | None:
        """The state ready for persistence, or None when nothing changed."""
        if not self.dirty:
            return None

        return PersistedState(
            last_update=dict(self.last_update),
            once=dict(self.once),
            hashes=dict(self.hashes),
        )
