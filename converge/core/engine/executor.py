"""
Execution driver — runs units stage by stage.

Flow:
    check claims → stager.stage() → apply units → join → mark successes
                 → merge state deltas → next stage → RunReport

Parallel stages are fanned out on a ThreadPoolExecutor and fully
joined before the next stage is requested. Thread-local stages run on
the calling thread, one unit at a time, in order.

Every unit reads the shared baseline RunState and writes to its own
empty delta. Only the coordinating thread touches the stager and the
shared state, and only between stages.

A unit that fails is recorded as a failed receipt; its siblings keep
running, and units depending on it are reported as unscheduled.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from converge.adapters.base import GitBackend
from converge.adapters.shell.packages import PackageProvider
from converge.core.engine.stager import Stage, Stager, UnschedulableError
from converge.core.models.config import Config
from converge.core.models.receipt import UnitReceipt
from converge.core.models.state import RunState
from converge.core.models.unit import SystemUnit
from converge.core.planning.file_system import ClaimConflictError, find_claim_conflicts
from converge.core.units.base import UnitInput

logger = logging.getLogger(__name__)


@dataclass
class UnitContext:
    """Everything units need that is not part of the units themselves."""

    config: Config = field(default_factory=Config)
    data: Mapping[str, Any] | None = None
    packages: PackageProvider | None = None
    git: GitBackend | None = None
    now: datetime = field(default_factory=lambda: datetime.now(UTC))

    def unit_input(self, read_state: RunState, state: RunState) -> UnitInput:
        """Build the input for one unit application."""
        data = self.data if self.data is not None else self.config.data
        return UnitInput(
            config=self.config,
            read_state=read_state,
            state=state,
            now=self.now,
            data=data,
            packages=self.packages,
            git=self.git,
        )


@dataclass
class RunReport:
    """Result of running a set of units."""

    receipts: list[UnitReceipt] = field(default_factory=list)
    unscheduled: list[SystemUnit] = field(default_factory=list)
    stages: int = 0

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.receipts if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.receipts if r.failed)

    @property
    def errors(self) -> list[UnitReceipt]:
        return [r for r in self.receipts if r.failed]

    @property
    def all_ok(self) -> bool:
        return self.failed == 0 and not self.unscheduled

    @property
    def status(self) -> str:
        if self.all_ok:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "stages": self.stages,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
            "unscheduled": [
                {"unit_id": u.id, "description": str(u.unit)} for u in self.unscheduled
            ],
        }


def format_error_chain(error: BaseException) -> list[str]:
    """Messages of everything ``error`` was caused by, outermost first."""
    causes: list[str] = []
    current = error.__cause__ or error.__context__
    while current is not None:
        causes.append(str(current) or type(current).__name__)
        current = current.__cause__ or current.__context__
    return causes


def _apply_unit(
    unit: SystemUnit,
    context: UnitContext,
    read_state: RunState,
    thread_local: bool,
) -> tuple[UnitReceipt, RunState]:
    """Apply one unit against its own state delta. Never raises."""
    delta = RunState.empty(context.config, context.now)
    started = datetime.now(UTC)
    start = time.monotonic()

    try:
        unit.apply(context.unit_input(read_state, delta))
    except Exception as e:
        elapsed = int((time.monotonic() - start) * 1000)
        causes = format_error_chain(e)
        logger.debug("%s failed after %dms", unit, elapsed)
        receipt = UnitReceipt.failure(
            unit_id=unit.id,
            error=str(e),
            description=str(unit.unit),
            causes=causes,
            thread_local=thread_local,
            started_at=started.isoformat(),
            ended_at=datetime.now(UTC).isoformat(),
            duration_ms=elapsed,
        )
        return receipt, delta

    elapsed = int((time.monotonic() - start) * 1000)
    receipt = UnitReceipt.success(
        unit_id=unit.id,
        description=str(unit.unit),
        thread_local=thread_local,
        started_at=started.isoformat(),
        ended_at=datetime.now(UTC).isoformat(),
        duration_ms=elapsed,
    )
    return receipt, delta


def _settle(
    unit: SystemUnit,
    receipt: UnitReceipt,
    delta: RunState,
    stager: Stager,
    state: RunState,
    report: RunReport,
) -> bool:
    report.receipts.append(receipt)
    state.extend(delta)
    if receipt.ok:
        stager.mark(unit)
    return receipt.ok


def _run_stage(
    stage: Stage,
    context: UnitContext,
    stager: Stager,
    state: RunState,
    report: RunReport,
    pool: ThreadPoolExecutor,
) -> bool:
    """Run one stage to completion. Returns whether every unit succeeded."""
    ok = True

    if stage.thread_local:
        # One at a time; each unit sees what the previous one recorded.
        for unit in stage:
            receipt, delta = _apply_unit(unit, context, state, True)
            ok = _settle(unit, receipt, delta, stager, state, report) and ok
        return ok

    futures = [
        (unit, pool.submit(_apply_unit, unit, context, state, False)) for unit in stage
    ]
    # result() re-raises only if the pool itself broke; units never raise.
    results = [(unit, *future.result()) for unit, future in futures]

    for unit, receipt, delta in results:
        ok = _settle(unit, receipt, delta, stager, state, report) and ok
    return ok


def _log_problems(report: RunReport) -> None:
    for i, receipt in enumerate(report.errors):
        logger.error("%2d: unit(%03d): %s", i, receipt.unit_id, receipt.description)
        logger.error("%s", receipt.error)
        for cause in receipt.causes:
            logger.error("Caused by: %s", cause)

    if report.unscheduled:
        logger.error("Could not schedule %d unit(s)", len(report.unscheduled))
        for i, unit in enumerate(report.unscheduled):
            logger.debug("%2d: %s", i, unit)


def run_units(
    units: Iterable[SystemUnit],
    context: UnitContext,
    state: RunState,
    *,
    max_workers: int | None = None,
    keep_going: bool = True,
) -> RunReport:
    """Run every unit, respecting dependencies.

    Args:
        units: All units of the run, dependencies already resolved.
        context: Config, data and capabilities handed to each unit.
        state: Shared run state. Unit deltas are merged into it.
        max_workers: Worker pool bound (default: the config's, then
            the ThreadPoolExecutor default).
        keep_going: Keep scheduling after a stage with failures. When
            False, stop after the first such stage.

    Returns:
        RunReport with one receipt per attempted unit and every unit
        that never ran.

    Raises:
        ClaimConflictError: If two units provide the same path.
    """
    units = list(units)
    conflicts = find_claim_conflicts(units)
    if conflicts:
        raise ClaimConflictError(conflicts)

    stager = Stager(units)
    report = RunReport()
    workers = max_workers or context.config.max_workers

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="converge") as pool:
        while True:
            try:
                stage = stager.stage()
            except UnschedulableError as e:
                logger.warning("%s", e)
                break

            if stage is None:
                break

            report.stages += 1

            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Running stage #%d (%d unit(s)) (thread_local: %s)",
                    report.stages,
                    len(stage),
                    stage.thread_local,
                )
                for i, unit in enumerate(stage):
                    logger.debug("%2d: %s", i, unit)

            stage_ok = _run_stage(stage, context, stager, state, report, pool)

            if not stage_ok and not keep_going:
                logger.info("Stopping after failed stage #%d", report.stages)
                break

    report.unscheduled = stager.into_unstaged()
    _log_problems(report)

    status_marker = "✓" if report.all_ok else "✗"
    logger.info(
        "%s %d stage(s), %d/%d unit(s) ok, %d unscheduled",
        status_marker,
        report.stages,
        report.succeeded,
        report.total,
        len(report.unscheduled),
    )
    return report
