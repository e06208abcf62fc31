"""
Declarative scenario runner.

A tour is a list of steps. Steps that depend on an earlier element being
there hang off that step's `then` list; `otherwise` runs when it was not.
A missing *required* element marks the run DEGRADED and skips only that
step's `then` branch; everything after it still runs. The only thing
that stops a run is the app process disappearing (ProcessUnavailable).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence, Union

from adb.device import ProcessUnavailable
from harness.config import Timing
from harness.drawer import DrawerStateVerifier
from harness.polling import settle
from harness.resolver import ElementResolver

Labels = Union[str, Sequence[str]]


def _labels(value: Labels) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


# Step vocabulary

@dataclass
class Expect:
    """Resolve without acting; gate `then` on presence."""

    labels: Labels
    required: bool = False
    then: list = field(default_factory=list)
    otherwise: list = field(default_factory=list)

    def __post_init__(self):
        self.labels = _labels(self.labels)


@dataclass
class ResolveAndTap:
    labels: Labels
    required: bool = True
    delay: str = "long"
    then: list = field(default_factory=list)
    otherwise: list = field(default_factory=list)

    def __post_init__(self):
        self.labels = _labels(self.labels)


@dataclass
class TypeText:
    text: str
    # Field to focus first; None types into whatever has focus.
    target: Optional[Labels] = None
    required: bool = True
    delay: str = "short"

    def __post_init__(self):
        if self.target is not None:
            self.target = _labels(self.target)


@dataclass
class VerifyDrawer:
    """Open the drawer and gate `then` on it being observed open."""

    required: bool = True
    then: list = field(default_factory=list)
    otherwise: list = field(default_factory=list)


@dataclass
class CloseDrawer:
    pass


@dataclass
class PressBack:
    delay: str = "short"


@dataclass
class Capture:
    ordinal: int
    label: str
    delay: str = "short"

    @property
    def name(self) -> str:
        return f"{self.ordinal:02d}-{self.label}"


@dataclass
class Pause:
    delay: str = "medium"


Step = Union[Expect, ResolveAndTap, TypeText, VerifyDrawer, CloseDrawer, PressBack, Capture, Pause]


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    DEGRADED = "degraded"
    ABORTED = "aborted"


@dataclass
class StepMiss:
    path: str
    step: str
    reason: str


@dataclass
class RunReport:
    state: RunState = RunState.NOT_STARTED
    checkpoints: list[str] = field(default_factory=list)
    capture_failures: list[str] = field(default_factory=list)
    misses: list[StepMiss] = field(default_factory=list)
    steps_run: int = 0
    steps_skipped: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "checkpoints": list(self.checkpoints),
            "capture_failures": list(self.capture_failures),
            "misses": [m.__dict__ for m in self.misses],
            "steps_run": self.steps_run,
            "steps_skipped": self.steps_skipped,
            "error": self.error,
        }


def count_steps(steps: Sequence[Step]) -> int:
    total = 0
    for step in steps:
        total += 1
        total += count_steps(getattr(step, "then", []) or [])
        total += count_steps(getattr(step, "otherwise", []) or [])
    return total


def checkpoint_names(steps: Sequence[Step]) -> list[str]:
    names = []
    for step in steps:
        if isinstance(step, Capture):
            names.append(step.name)
        names += checkpoint_names(getattr(step, "then", []) or [])
        names += checkpoint_names(getattr(step, "otherwise", []) or [])
    return names


class ScenarioRunner:
    def __init__(
        self,
        device,
        resolver: ElementResolver,
        drawer: DrawerStateVerifier,
        capture: Callable[[str], object],
        app=None,
        timing: Optional[Timing] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.device = device
        self.resolver = resolver
        self.drawer = drawer
        self.capture = capture
        # Anything with ensure_alive(); None disables the per-step liveness check.
        self.app = app
        self.timing = timing or Timing()
        self.sleep = sleep
        self.state = RunState.NOT_STARTED
        self.report = RunReport()

    def _delay(self, name: str):
        seconds = {
            "none": 0.0,
            "short": self.timing.short_s,
            "medium": self.timing.medium_s,
            "long": self.timing.long_s,
        }.get(name)
        if seconds is None:
            raise ValueError(f"Unknown delay name: {name}")
        settle(seconds, sleep=self.sleep)

    def run(self, steps: Sequence[Step]) -> RunReport:
        self.state = RunState.RUNNING
        self.report = RunReport(state=self.state)
        logging.info(f"[RUN] starting tour ({count_steps(steps)} steps incl. branches)")
        try:
            self._run_steps(steps, "")
        except ProcessUnavailable as e:
            self._abort(e)
            raise
        except Exception as e:
            # adb itself failing mid-step; if the app died that is the real story.
            self._abort(e)
            if self.app is not None and not self.app.is_running():
                raise ProcessUnavailable(f"app process gone after: {e!r}") from e
            raise

        if self.report.misses:
            self.state = RunState.DEGRADED
        else:
            self.state = RunState.COMPLETED
        self.report.state = self.state
        logging.info(
            f"[RUN] {self.state.value}: {len(self.report.checkpoints)} checkpoints, "
            f"{len(self.report.misses)} misses, {self.report.steps_skipped} steps skipped"
        )
        return self.report

    def _abort(self, err: Exception):
        self.state = RunState.ABORTED
        self.report.state = self.state
        self.report.error = str(err)
        logging.error(f"[RUN] aborted: {err}")

    def _run_steps(self, steps: Sequence[Step], prefix: str):
        for i, step in enumerate(steps, start=1):
            path = f"{prefix}{i}"
            if self.app is not None:
                self.app.ensure_alive()
            self.report.steps_run += 1
            logging.debug(f"[STEP] {path} {type(step).__name__}")
            self._run_one(step, path)

    def _branch(self, step, path: str, found: bool, reason: str):
        then = getattr(step, "then", []) or []
        otherwise = getattr(step, "otherwise", []) or []
        if found:
            self.report.steps_skipped += count_steps(otherwise)
            self._run_steps(then, f"{path}.")
            return
        self.report.steps_skipped += count_steps(then)
        if getattr(step, "required", False):
            self._miss(step, path, reason)
        else:
            logging.info(f"[STEP] {path} optional {type(step).__name__} skipped: {reason}")
        self._run_steps(otherwise, f"{path}!")

    def _miss(self, step, path: str, reason: str):
        logging.warning(f"[STEP] {path} {type(step).__name__} missed: {reason}")
        self.report.misses.append(StepMiss(path=path, step=type(step).__name__, reason=reason))

    def _run_one(self, step: Step, path: str):
        if isinstance(step, Expect):
            handle = self.resolver.resolve_any(step.labels)
            self._branch(step, path, handle is not None, f"none of {list(step.labels)} on screen")
            return

        if isinstance(step, ResolveAndTap):
            handle = self.resolver.resolve_any(step.labels)
            tapped = handle is not None and handle.tap()
            if tapped:
                logging.info(f"[STEP] {path} tapped {handle.label!r} via {handle.strategy.value}")
                self._delay(step.delay)
            reason = f"none of {list(step.labels)} on screen" if handle is None else f"{handle.label!r} has no bounds"
            self._branch(step, path, tapped, reason)
            return

        if isinstance(step, TypeText):
            if step.target is not None:
                handle = self.resolver.resolve_any(step.target)
                if handle is None or not handle.tap():
                    reason = f"input {list(step.target)} not on screen"
                    if step.required:
                        self._miss(step, path, reason)
                    else:
                        logging.info(f"[STEP] {path} optional TypeText skipped: {reason}")
                    return
                self._delay("short")
            self.device.type_text(step.text)
            self._delay(step.delay)
            return

        if isinstance(step, VerifyDrawer):
            opened = self.drawer.open()
            self._branch(step, path, opened, "drawer not observed open")
            return

        if isinstance(step, CloseDrawer):
            self.drawer.close()
            return

        if isinstance(step, PressBack):
            self.device.back()
            self._delay(step.delay)
            return

        if isinstance(step, Capture):
            self._capture(step)
            self._delay(step.delay)
            return

        if isinstance(step, Pause):
            self._delay(step.delay)
            return

        raise ValueError(f"Unknown step type: {type(step).__name__}")

    def _capture(self, step: Capture):
        name = step.name
        logging.info(f"[CAPTURE] {name}")
        self.report.checkpoints.append(name)
        try:
            self.capture(name)
        except Exception as e:
            logging.warning(f"[CAPTURE] {name} failed: {e!r}")
            self.report.capture_failures.append(name)
