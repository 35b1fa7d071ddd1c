"""Timed step sequences: ordered (delay, action) steps on one timeline.

A :class:`TimedStepSequence` is the thing a trigger starts. Each start creates
a :class:`SequenceRun`, an explicit state machine that keeps its position as a
plain step index and advances from timer callbacks::

    IDLE -> RUNNING -> COMPLETED
               |-----> CANCELLED
               '-----> FAILED
"""
from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

import numpy as np

from .config import ReentryPolicy
from .timer import TimerHandle, TimerScheduler
from .utility import TimeSource, _logger


@dataclass(frozen=True)
class Step:
    """Wait ``delay`` seconds after the previous action, then call ``action``."""

    delay: float
    action: Callable[[], None]
    label: str = ""

    def __post_init__(self) -> None:
        if not math.isfinite(self.delay) or self.delay < 0:
            raise ValueError(f"Step delay must be finite and >= 0, got {self.delay}.")


class RunState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.CANCELLED, RunState.FAILED)


class ActionFailure(Exception):
    """A step action raised; the run was aborted at ``step_index``."""

    def __init__(self, run: "SequenceRun", step_index: int, cause: BaseException):
        self.run = run
        self.step_index = step_index
        self.cause = cause
        super().__init__(
            f"{run.name} run #{run.run_id}: step {step_index} failed: {cause!r}"
        )


def step_offsets(steps: Sequence[Step]) -> np.ndarray:
    """Fire time of each step relative to the start of a run."""
    return np.cumsum(np.array([s.delay for s in steps], dtype=float))


# -----------------------------------------------------------------------------
# Single run
# -----------------------------------------------------------------------------
class SequenceRun:
    """One execution of a step list, from :meth:`begin` to a terminal state."""

    def __init__(
        self,
        steps: Sequence[Step],
        scheduler: TimerScheduler,
        *,
        name: str = "sequence",
        run_id: int = 1,
        time_source: Optional[TimeSource] = None,
        on_finished: Optional[Callable[["SequenceRun"], None]] = None,
    ):
        self._steps = tuple(steps)
        self._scheduler = scheduler
        self._clock = time_source or scheduler.time_source
        self._on_finished = on_finished
        self.name = name
        self.run_id = run_id

        self._state = RunState.IDLE
        self._step_idx = 0
        self._timer: Optional[TimerHandle] = None
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None

    # Accessors ------------------------------------------------------------------
    @property
    def state(self) -> RunState:
        return self._state

    @property
    def step_index(self) -> int:
        return self._step_idx

    @property
    def active(self) -> bool:
        return not self._state.terminal

    # API -----------------------------------------------------------------------
    def begin(self) -> None:
        """Start executing from step 0. Ignored unless the run is still idle."""
        if self._state is not RunState.IDLE:
            return
        self._state = RunState.RUNNING
        self.started_at = self._clock.now()
        _logger.debug("%s run #%d started.", self.name, self.run_id)
        self._advance(waited=False)

    def cancel(self) -> bool:
        """Stop the run; no further actions fire. No-op once terminal."""
        if self._state.terminal:
            return False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        _logger.info("%s run #%d cancelled at step %d/%d.",
                     self.name, self.run_id, self._step_idx, len(self._steps))
        self._finish(RunState.CANCELLED)
        return True

    # internal ------------------------------------------------------------------
    def _on_timer(self) -> None:
        self._timer = None
        if self._state is RunState.RUNNING:
            self._advance(waited=True)

    def _advance(self, waited: bool) -> None:
        """Fire the current step and any zero-delay steps after it, then arm the
        timer for the next positive delay."""
        while self._step_idx < len(self._steps):
            step = self._steps[self._step_idx]
            if step.delay > 0 and not waited:
                self._timer = self._scheduler.schedule_once(step.delay, self._on_timer)
                return
            waited = False
            self._invoke(step)
            if self._state is not RunState.RUNNING:
                # the action cancelled or restarted its own run
                return
            self._step_idx += 1
        _logger.debug("%s run #%d completed.", self.name, self.run_id)
        self._finish(RunState.COMPLETED)

    def _invoke(self, step: Step) -> None:
        _logger.debug("▶ %s run #%d: step %d/%d %s",
                      self.name, self.run_id, self._step_idx + 1,
                      len(self._steps), step.label)
        try:
            step.action()
        except Exception as exc:
            idx = self._step_idx
            _logger.error("%s run #%d aborted: step %d raised %r.",
                          self.name, self.run_id, idx, exc)
            self._finish(RunState.FAILED)
            raise ActionFailure(self, idx, exc) from exc

    def _finish(self, state: RunState) -> None:
        if self._state.terminal:
            return
        self._state = state
        self.finished_at = self._clock.now()
        if self._on_finished is not None:
            self._on_finished(self)

    def __repr__(self) -> str:
        return (f"SequenceRun(name={self.name!r}, run_id={self.run_id}, "
                f"state={self._state.value}, step_index={self._step_idx})")


# -----------------------------------------------------------------------------
# Sequence definition + trigger entry point
# -----------------------------------------------------------------------------
class TimedStepSequence:
    """Ordered steps started by an external trigger.

    The step list is fixed at construction. What a trigger does while a run is
    already active is decided by ``policy`` (see :class:`ReentryPolicy`).
    """

    def __init__(
        self,
        steps: Sequence[Step],
        scheduler: TimerScheduler,
        policy: ReentryPolicy = ReentryPolicy.CONCURRENT,
        name: str = "sequence",
        time_source: Optional[TimeSource] = None,
    ):
        if not steps:
            raise ValueError(f"Sequence {name}: requires at least one step.")
        self._steps = tuple(steps)
        self._scheduler = scheduler
        self._policy = ReentryPolicy(policy)
        self._clock = time_source or scheduler.time_source
        self.name = name
        self._active: List[SequenceRun] = []
        self._run_ids = itertools.count(1)
        self._runs_started = 0

    # Accessors ------------------------------------------------------------------
    @property
    def steps(self) -> tuple:
        return self._steps

    @property
    def policy(self) -> ReentryPolicy:
        return self._policy

    @property
    def active_runs(self) -> List[SequenceRun]:
        return list(self._active)

    @property
    def is_running(self) -> bool:
        return bool(self._active)

    @property
    def runs_started(self) -> int:
        return self._runs_started

    def offsets(self) -> np.ndarray:
        return step_offsets(self._steps)

    @property
    def total_duration(self) -> float:
        return float(self.offsets()[-1])

    # API -----------------------------------------------------------------------
    def start(self) -> Optional[SequenceRun]:
        """Start a new run. Returns ``None`` when the policy ignores the trigger.

        Leading zero-delay actions execute before this returns; an
        :class:`ActionFailure` from one of them propagates to the caller.
        """
        if self._active:
            if self._policy is ReentryPolicy.IGNORE:
                _logger.debug("%s already running; trigger ignored.", self.name)
                return None
            if self._policy is ReentryPolicy.RESTART:
                _logger.info("%s restarting.", self.name)
                self.cancel()

        run = SequenceRun(
            self._steps,
            self._scheduler,
            name=self.name,
            run_id=next(self._run_ids),
            time_source=self._clock,
            on_finished=self._on_run_finished,
        )
        self._active.append(run)
        self._runs_started += 1
        _logger.info("Starting %s run #%d (%d steps, %.2fs).",
                     self.name, run.run_id, len(self._steps), self.total_duration)
        run.begin()
        return run

    def on_trigger_event(self) -> Optional[SequenceRun]:
        return self.start()

    def cancel(self) -> int:
        """Cancel every active run. Returns how many runs were cancelled."""
        return sum(1 for run in list(self._active) if run.cancel())

    # internal ------------------------------------------------------------------
    def _on_run_finished(self, run: SequenceRun) -> None:
        if run in self._active:
            self._active.remove(run)
