"""
Iteration coordinator.

Drives the shared program through its phases:

1. ``start()`` forces the stored phase to INITIAL.
2. After the initial delay, the initial cycle folds the unattributed user
   inputs into a specification, generates the first program from it and
   moves the phase to ITERATION. With no inputs the phase stays INITIAL and
   the cycle is retried on the next tick.
3. In ITERATION, every period, the regeneration cycle folds the inputs
   submitted against the current iteration into a short feature list,
   regenerates the code and publishes it as the new current iteration.

Cycles never overlap. Every store and generator call runs under a timeout, and
a failing call only aborts the cycle it belongs to; the loop keeps ticking.
The state row is read-modify-write without concurrency control, so only one
coordinator may run against a given database.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set

import structlog

from ..config import Settings
from ..generation import Generator
from .extraction import extract_code
from .inputs import latest_per_profile, truncate_input
from .prompts import (
    build_feature_summary_prompt,
    build_initial_program_prompt,
    build_specification_prompt,
    build_update_prompt,
)
from .types import ProgramArtifact, ProgramInput, ProgramPhase, ProgramState

logger = structlog.get_logger()


class ProgramStoreProtocol(Protocol):
    """Store operations the coordinator depends on."""

    def force_phase(self, phase: ProgramPhase) -> ProgramState: ...

    def get_state(self) -> Optional[ProgramState]: ...

    def set_state(self, phase: ProgramPhase, current_iteration_id: Optional[int]) -> None: ...

    def list_unattributed_inputs(self) -> List[ProgramInput]: ...

    def list_inputs_for_iteration(self, iteration_id: int) -> List[ProgramInput]: ...

    def attach_inputs(self, input_ids: List[int], iteration_id: int) -> int: ...

    def insert_placeholder(self) -> int: ...

    def update_code(self, artifact_id: int, code: str) -> None: ...

    def get_artifact(self, artifact_id: int) -> Optional[ProgramArtifact]: ...

    def publish_artifact(self, code: str) -> int: ...


class CycleKind(str, Enum):
    INITIAL = "initial"
    REGENERATION = "regeneration"


class CycleStatus(str, Enum):
    PUBLISHED = "published"
    SKIPPED = "skipped"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CycleReport:
    """Outcome of one coordinator cycle."""

    kind: CycleKind
    status: CycleStatus
    reason: Optional[str] = None
    iteration_id: Optional[int] = None
    inputs_used: int = 0
    started_at: datetime = field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "status": self.status.value,
            "reason": self.reason,
            "iteration_id": self.iteration_id,
            "inputs_used": self.inputs_used,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class CycleSkipped(Exception):
    """Raised inside a cycle when there is nothing to do this tick."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class IterationCoordinator:
    """Timer-driven state machine publishing new program versions."""

    def __init__(
        self,
        store: ProgramStoreProtocol,
        generator: Generator,
        initial_delay: float = 120.0,
        period: float = 120.0,
        input_char_budget: int = 70,
        feature_limit: int = 5,
        call_timeout: Optional[float] = 120.0,
    ):
        self.store = store
        self.generator = generator
        self.initial_delay = initial_delay
        self.period = period
        self.input_char_budget = input_char_budget
        self.feature_limit = feature_limit
        self.call_timeout = call_timeout

        self.phase = ProgramPhase.UNINITIALIZED
        self.last_report: Optional[CycleReport] = None
        self.cycles_run = 0
        self._seeded = False
        self._in_flight = False
        self._task: Optional[asyncio.Task[None]] = None
        self._store_calls: Set["asyncio.Future[Any]"] = set()
        self.logger = logger.bind(component="iteration_coordinator")

    @classmethod
    def from_settings(
        cls, store: ProgramStoreProtocol, generator: Generator, settings: Settings
    ) -> "IterationCoordinator":
        return cls(
            store=store,
            generator=generator,
            initial_delay=settings.initial_delay_seconds,
            period=settings.iteration_period_seconds,
            input_char_budget=settings.input_char_budget,
            feature_limit=settings.feature_summary_limit,
            call_timeout=settings.external_call_timeout_seconds,
        )

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def start(self) -> None:
        """Force the INITIAL phase and start the background loop."""
        if self.is_running:
            return

        await self._call(self.store.force_phase, ProgramPhase.INITIAL)
        self.phase = ProgramPhase.INITIAL
        self.logger.info(
            "coordinator_started",
            initial_delay=self.initial_delay,
            period=self.period,
            generator=self.generator.name,
        )
        self._task = asyncio.create_task(self._run_loop(), name="iteration-coordinator")

    async def stop(self) -> None:
        """Cancel the background loop, abandoning any cycle in flight."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("coordinator_stopped", cycles_run=self.cycles_run)

    async def resume(self) -> ProgramPhase:
        """Adopt the stored phase without forcing INITIAL.

        Used for one-off cycles run outside the background loop. A missing
        state row is created as INITIAL.
        """
        state = await self._call(self.store.get_state)
        if state is None:
            state = await self._call(self.store.force_phase, ProgramPhase.INITIAL)
        self.phase = state.phase
        return self.phase

    async def run_once(self) -> CycleReport:
        """Run the cycle for the current phase unless one is already running."""
        if self._in_flight:
            self.logger.info("cycle_skipped", reason="cycle_in_progress")
            return self._finish(
                CycleReport(
                    kind=self._next_kind(),
                    status=CycleStatus.SKIPPED,
                    reason="cycle_in_progress",
                ),
                record=False,
            )

        if self.phase == ProgramPhase.UNINITIALIZED:
            return self._finish(
                CycleReport(
                    kind=CycleKind.INITIAL,
                    status=CycleStatus.SKIPPED,
                    reason="not_started",
                ),
                record=False,
            )

        self._in_flight = True
        try:
            if self.phase == ProgramPhase.ITERATION:
                report = await self._guarded(
                    CycleKind.REGENERATION, self.run_regeneration_cycle
                )
            else:
                report = await self._guarded(CycleKind.INITIAL, self.run_initial_cycle)

            if report.reason == "timeout":
                await self._settle_store_calls()
                await self._adopt_stored_phase()
        finally:
            # A timed-out store call keeps running in its thread; the next
            # cycle must not start until it is done.
            await self._settle_store_calls()
            self._in_flight = False

        return self._finish(report)

    async def run_initial_cycle(self) -> CycleReport:
        """Generate the first program from the unattributed inputs."""
        raw_inputs = await self._call(self.store.list_unattributed_inputs)
        inputs = latest_per_profile(raw_inputs)
        if not inputs:
            raise CycleSkipped("no_inputs")

        ideas = [truncate_input(i.input_text, self.input_char_budget) for i in inputs]
        specification = await self._generate(build_specification_prompt(ideas))
        raw = await self._generate(build_initial_program_prompt(specification))
        code = extract_code(raw)

        artifact_id = await self._call(self.store.insert_placeholder)
        await self._call(self.store.update_code, artifact_id, code)

        # The first pass is a seed: its inputs stay visible to the next pass.
        if self._seeded:
            await self._call(
                self.store.attach_inputs, [i.id for i in raw_inputs], artifact_id
            )

        await self._call(self.store.set_state, ProgramPhase.ITERATION, artifact_id)
        self._seeded = True
        self.phase = ProgramPhase.ITERATION

        return CycleReport(
            kind=CycleKind.INITIAL,
            status=CycleStatus.PUBLISHED,
            iteration_id=artifact_id,
            inputs_used=len(inputs),
        )

    async def run_regeneration_cycle(self) -> CycleReport:
        """Fold the current iteration's inputs into a new program version."""
        state = await self._call(self.store.get_state)
        current_id = state.current_iteration_id if state else None
        if current_id is None:
            raise CycleSkipped("no_current_iteration")

        inputs = latest_per_profile(
            await self._call(self.store.list_inputs_for_iteration, current_id)
        )
        if not inputs:
            raise CycleSkipped("no_inputs")

        current = await self._call(self.store.get_artifact, current_id)
        if current is None:
            raise CycleSkipped("current_iteration_missing")

        summary = await self._generate(
            build_feature_summary_prompt(
                [i.input_text for i in inputs], self.feature_limit
            )
        )
        raw = await self._generate(build_update_prompt(current.code, summary))
        code = extract_code(raw)

        new_id = await self._call(self.store.publish_artifact, code)

        return CycleReport(
            kind=CycleKind.REGENERATION,
            status=CycleStatus.PUBLISHED,
            iteration_id=new_id,
            inputs_used=len(inputs),
        )

    def get_status(self) -> Dict[str, Any]:
        """Get the current status of the coordinator."""
        return {
            "phase": self.phase.value,
            "is_running": self.is_running,
            "cycle_in_flight": self._in_flight,
            "cycles_run": self.cycles_run,
            "generator": self.generator.name,
            "last_cycle": self.last_report.to_dict() if self.last_report else None,
        }

    async def _run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.initial_delay

        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

            try:
                await self.run_once()
            except Exception as e:
                self.logger.exception("coordinator_tick_failed", error=str(e))

            # Fixed-rate schedule; ticks missed by a slow cycle are dropped.
            next_tick += self.period
            now = loop.time()
            if now > next_tick:
                missed = int((now - next_tick) // self.period) + 1
                next_tick += missed * self.period
                self.logger.warning("ticks_coalesced", missed=missed)

    async def _guarded(
        self, kind: CycleKind, cycle: Callable[[], Awaitable[CycleReport]]
    ) -> CycleReport:
        started_at = _utcnow()
        cycle_logger = self.logger.bind(cycle=kind.value, phase=self.phase.value)
        cycle_logger.info("cycle_started")

        try:
            report = await cycle()
        except CycleSkipped as e:
            cycle_logger.info("cycle_skipped", reason=e.reason)
            report = CycleReport(kind=kind, status=CycleStatus.SKIPPED, reason=e.reason)
        except asyncio.TimeoutError:
            cycle_logger.error("cycle_failed", reason="timeout", timeout=self.call_timeout)
            report = CycleReport(kind=kind, status=CycleStatus.FAILED, reason="timeout")
        except Exception as e:
            cycle_logger.exception("cycle_failed", error=str(e))
            report = CycleReport(kind=kind, status=CycleStatus.FAILED, reason=str(e))
        else:
            cycle_logger.info(
                "cycle_published",
                iteration_id=report.iteration_id,
                inputs_used=report.inputs_used,
            )

        report.started_at = started_at
        return report

    def _finish(self, report: CycleReport, record: bool = True) -> CycleReport:
        report.finished_at = _utcnow()
        if record:
            self.cycles_run += 1
            self.last_report = report
        return report

    def _next_kind(self) -> CycleKind:
        if self.phase == ProgramPhase.ITERATION:
            return CycleKind.REGENERATION
        return CycleKind.INITIAL

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking store call in a worker thread under the call timeout.

        The thread cannot be interrupted, so a timed-out call stays tracked
        until it finishes and ``run_once`` waits for it before releasing the
        single-flight guard.
        """
        call = asyncio.ensure_future(asyncio.to_thread(func, *args))
        self._store_calls.add(call)
        call.add_done_callback(self._store_calls.discard)
        return await asyncio.wait_for(asyncio.shield(call), self.call_timeout)

    async def _settle_store_calls(self) -> None:
        if not self._store_calls:
            return

        pending = list(self._store_calls)
        self.logger.warning("waiting_for_store_calls", pending=len(pending))
        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                self.logger.warning("late_store_call_failed", error=str(result))

    async def _adopt_stored_phase(self) -> None:
        """Re-read the phase after a timeout, since a late write may have landed."""
        try:
            state = await self._call(self.store.get_state)
        except Exception as e:
            self.logger.warning("phase_resync_failed", error=str(e))
            return

        if state is not None and state.phase != self.phase:
            self.logger.info(
                "phase_resynced",
                phase=state.phase.value,
                current_iteration_id=state.current_iteration_id,
            )
            self.phase = state.phase

    async def _generate(self, prompt: str) -> str:
        return await asyncio.wait_for(self.generator.generate(prompt), self.call_timeout)
