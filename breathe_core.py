"""
Breathe — session timer and breathing-phase state machine
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

Pure timing logic with no UI imports:

  - BreathPattern: four phase durations (inhale, hold1, exhale, hold2)
  - advance_phase(): one fixed step of phase/progress math
  - SessionTimer: idle/running/paused/finished, wall-clock countdown
  - AfterScheduler: repeating callbacks on a Tk-style after() loop

Remaining time is re-derived from the deadline on every tick, so missed
ticks (laptop sleep, a busy event loop) self-correct.  Phase progress
advances by a fixed step per tick; drift there is cosmetic only.
"""
from __future__ import annotations

import enum
import logging
import math
import time
import weakref
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

# ─── Named Constants ─────────────────────────────────────────
TICK_INTERVAL_MS = 16        # Scheduler interval while running (~60fps)
PHASE_STEP = 1.0 / 60.0      # Seconds of phase progress added per tick
ROLLOVER_EPSILON = 1e-9      # Float slack when comparing against a phase boundary
MIN_BREATH_SECONDS = 1.0     # Inhale/exhale of 0 or less is treated as this


# ─── Models ──────────────────────────────────────────────────
class SessionState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


class Phase(str, enum.Enum):
    INHALE = "inhale"
    HOLD1 = "hold1"
    EXHALE = "exhale"
    HOLD2 = "hold2"

    @property
    def label(self) -> str:
        return {"inhale": "Inhale", "hold1": "Hold", "exhale": "Exhale", "hold2": "Hold"}[self.value]

    def next(self) -> "Phase":
        order = PHASE_ORDER
        return order[(order.index(self) + 1) % len(order)]


PHASE_ORDER = (Phase.INHALE, Phase.HOLD1, Phase.EXHALE, Phase.HOLD2)


@dataclass(frozen=True)
class BreathPattern:
    """Seconds spent in each phase of one breathing cycle."""
    inhale: float = 4.0
    hold1: float = 4.0
    exhale: float = 4.0
    hold2: float = 2.0

    def total(self) -> float:
        return self.inhale + self.hold1 + self.exhale + self.hold2

    def duration(self, phase: Phase) -> float:
        """Configured duration of a phase, as given."""
        return float(getattr(self, phase.value))

    def effective_duration(self, phase: Phase) -> float:
        """Duration used for tick math.

        Inhale and exhale never drop below MIN_BREATH_SECONDS so progress
        never divides by zero.  A hold of 0 (or less) is skipped outright.
        """
        d = self.duration(phase)
        if phase in (Phase.INHALE, Phase.EXHALE):
            return d if d > 0 else MIN_BREATH_SECONDS
        return max(0.0, d)


# ─── Phase Clock ─────────────────────────────────────────────
@dataclass(frozen=True)
class PhaseStep:
    phase: Phase
    elapsed: float
    progress: float
    rolled_over: bool = False


def phase_progress(pattern: BreathPattern, phase: Phase, elapsed: float) -> float:
    """Fraction of the phase completed, clamped to [0, 1]."""
    d = pattern.effective_duration(phase)
    if d <= 0:
        return 1.0
    return max(0.0, min(1.0, elapsed / d))


def advance_phase(pattern: BreathPattern, phase: Phase, elapsed: float,
                  step: float = PHASE_STEP) -> PhaseStep:
    """Advance the breathing clock by one fixed step.

    On reaching the end of a phase the elapsed time resets to 0 and the
    clock moves to the next phase in cyclic order, passing straight over
    any zero-length holds.
    """
    elapsed += step
    rolled = False
    if elapsed + ROLLOVER_EPSILON >= pattern.effective_duration(phase):
        elapsed = 0.0
        rolled = True
        phase = phase.next()
        # At most three zero-length phases can follow; inhale/exhale never are.
        for _ in range(len(PHASE_ORDER)):
            if pattern.effective_duration(phase) > 0:
                break
            phase = phase.next()
    return PhaseStep(phase, elapsed, phase_progress(pattern, phase, elapsed), rolled)


# ─── Scheduling ──────────────────────────────────────────────
class _Repeating:
    """Handle for one repeating after() job."""

    def __init__(self, interval_ms: int, callback: Callable[[], Any]):
        self.interval_ms = interval_ms
        self.callback = callback
        self.after_id = None
        self.cancelled = False


class AfterScheduler:
    """Repeating callbacks on a Tk-style event loop.

    `widget` is anything with after(ms, fn) / after_cancel(id), normally
    the Tk root.  Each run re-arms itself, so a cancelled job never fires
    again even if its next after() slot was already queued.
    """

    def __init__(self, widget):
        self.widget = widget

    def schedule_repeating(self, interval_ms: int, callback: Callable[[], Any]) -> _Repeating:
        job = _Repeating(interval_ms, callback)
        job.after_id = self.widget.after(interval_ms, lambda: self._run(job))
        return job

    def _run(self, job: _Repeating) -> None:
        if job.cancelled:
            return
        job.after_id = None
        keep = job.callback()
        if keep is False:
            job.cancelled = True
        if not job.cancelled:
            job.after_id = self.widget.after(job.interval_ms, lambda: self._run(job))

    def cancel(self, job: Optional[_Repeating]) -> None:
        if job is None or job.cancelled:
            return
        job.cancelled = True
        if job.after_id is not None:
            try:
                self.widget.after_cancel(job.after_id)
            except Exception as e:  # tk.TclError once the root is gone
                logger.debug("after_cancel failed: %s", e)
            job.after_id = None


def _weak_tick(timer: "SessionTimer") -> Callable[[], bool]:
    """Tick callback that does not keep the timer alive."""
    ref = weakref.ref(timer)

    def tick() -> bool:
        t = ref()
        if t is None:
            return False  # timer collected, drop the job
        t.tick()
        return True
    return tick


# ─── Session Timer ───────────────────────────────────────────
@dataclass(frozen=True)
class SessionSnapshot:
    """Consistent read-only view published after every command and tick."""
    state: SessionState
    phase: Phase
    elapsed_in_phase: float
    progress: float
    remaining_seconds: int
    total_seconds: int

    @property
    def is_running(self) -> bool:
        return self.state == SessionState.RUNNING


Listener = Callable[[SessionSnapshot], Any]


class SessionTimer:
    """The breathing session state machine.

        idle ──start──> running ──pause──> paused ──start──> running
                          │
                          └──(deadline)──> finished
        any ──reset/apply──> idle

    Commands that are not legal in the current state are no-ops.
    """

    def __init__(self, length_minutes: int, pattern: BreathPattern,
                 scheduler=None, clock: Callable[[], float] = time.time,
                 interval_ms: int = TICK_INTERVAL_MS, phase_step: float = PHASE_STEP):
        self.scheduler = scheduler
        self.clock = clock
        self.interval_ms = interval_ms
        self.phase_step = phase_step

        self.pattern = pattern
        self.total_seconds = max(1, int(length_minutes)) * 60
        self.remaining_seconds = self.total_seconds
        self.state = SessionState.IDLE
        self.phase = Phase.INHALE
        self.elapsed_in_phase = 0.0
        self.progress = 0.0
        self.target_end: Optional[float] = None

        self._job = None
        self._listeners: list[Listener] = []
        self._complete_listeners: list[Listener] = []

    # ── Observers ──
    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Call `callback(snapshot)` after every state change. Returns an unsubscribe function."""
        if callback not in self._listeners:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def on_complete(self, callback: Listener) -> Callable[[], None]:
        """Call `callback(snapshot)` once each time a session runs out."""
        if callback not in self._complete_listeners:
            self._complete_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._complete_listeners:
                self._complete_listeners.remove(callback)
        return unsubscribe

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self.state,
            phase=self.phase,
            elapsed_in_phase=self.elapsed_in_phase,
            progress=self.progress,
            remaining_seconds=self.remaining_seconds,
            total_seconds=self.total_seconds,
        )

    def _emit(self, listeners: list[Listener], snap: SessionSnapshot) -> None:
        for callback in list(listeners):
            try:
                callback(snap)
            except Exception:
                logger.exception("Session listener %r failed", callback)

    def _publish(self) -> SessionSnapshot:
        snap = self.snapshot()
        self._emit(self._listeners, snap)
        return snap

    # ── Commands ──
    def start(self) -> None:
        if self.state not in (SessionState.IDLE, SessionState.PAUSED):
            return
        self.state = SessionState.RUNNING
        self.target_end = self.clock() + self.remaining_seconds
        self._schedule()
        logger.debug("Session running, %ds left", self.remaining_seconds)
        self._publish()

    def pause(self) -> None:
        if self.state != SessionState.RUNNING:
            return
        self.state = SessionState.PAUSED
        self._unschedule()
        self.target_end = None
        logger.debug("Session paused at %ds, %s %.2fs",
                     self.remaining_seconds, self.phase.value, self.elapsed_in_phase)
        self._publish()

    def reset(self) -> None:
        self._unschedule()
        self.state = SessionState.IDLE
        self.phase = Phase.INHALE
        self.elapsed_in_phase = 0.0
        self.progress = 0.0
        self.remaining_seconds = self.total_seconds
        self.target_end = None
        self._publish()

    def apply(self, length_minutes: int, pattern: BreathPattern) -> None:
        """Reconfigure length and pattern; always ends in a fresh idle session."""
        self.pause()
        self.total_seconds = max(1, int(length_minutes)) * 60
        self.pattern = pattern
        logger.debug("Applied %d min, pattern %s", self.total_seconds // 60, pattern)
        self.reset()

    # ── Tick ──
    def tick(self) -> None:
        """One scheduled update. Ignored unless running."""
        if self.state != SessionState.RUNNING:
            return
        left = (self.target_end - self.clock()) if self.target_end is not None else 0.0
        remaining = max(0, math.ceil(left))
        self.remaining_seconds = min(self.remaining_seconds, remaining)

        finished = False
        if self.remaining_seconds == 0:
            self._unschedule()
            self.state = SessionState.FINISHED
            self.target_end = None
            finished = True

        # Phase keeps moving on the finishing tick too.
        step = advance_phase(self.pattern, self.phase, self.elapsed_in_phase, self.phase_step)
        self.phase = step.phase
        self.elapsed_in_phase = step.elapsed
        self.progress = step.progress

        snap = self._publish()
        if finished:
            logger.info("Session complete (%d min)", self.total_seconds // 60)
            self._emit(self._complete_listeners, snap)

    # ── Schedule plumbing ──
    def _schedule(self) -> None:
        self._unschedule()
        if self.scheduler is not None:
            self._job = self.scheduler.schedule_repeating(self.interval_ms, _weak_tick(self))

    def _unschedule(self) -> None:
        if self._job is not None and self.scheduler is not None:
            self.scheduler.cancel(self._job)
        self._job = None

    @property
    def is_scheduled(self) -> bool:
        return self._job is not None
