"""
Target app lifecycle: force-stop, launch (optionally in demo mode), and
liveness checks.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from adb.device import ProcessUnavailable
from harness.polling import poll_until

DEMO_MODE_EXTRA = "DEMO_MODE"


@dataclass
class LaunchConfig:
    package: str
    activity: str = ".MainActivity"
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def component(self) -> str:
        if "/" in self.activity:
            return self.activity
        return f"{self.package}/{self.activity}"

    def demo_mode_requested(self) -> bool:
        """True only when this launch actually carries DEMO_MODE=true."""
        return DEMO_MODE_EXTRA in self.extras and self.extras[DEMO_MODE_EXTRA] is True

    @classmethod
    def for_package(cls, package: str, activity: str = ".MainActivity", demo_mode: Optional[bool] = None) -> "LaunchConfig":
        extras: Dict[str, Any] = {}
        if demo_mode is not None:
            extras[DEMO_MODE_EXTRA] = bool(demo_mode)
        return cls(package=package, activity=activity, extras=extras)


class TargetApp:
    def __init__(
        self,
        device,
        package: str,
        launch_timeout_s: float = 10.0,
        poll_interval_s: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.device = device
        self.package = package
        self.launch_timeout_s = launch_timeout_s
        self.poll_interval_s = poll_interval_s
        self.sleep = sleep
        self.clock = clock

    def force_stop(self) -> bool:
        """Best effort. A failure here is logged and the run carries on."""
        try:
            self.device.force_stop(self.package)
            return True
        except Exception as e:
            logging.warning(f"[LAUNCH] force-stop {self.package} failed: {e!r}")
            return False

    def is_foreground(self) -> bool:
        return self.package in (self.device.current_focus() or "")

    def is_running(self) -> bool:
        return self.device.pidof(self.package) is not None

    def ensure_alive(self):
        if not self.is_running():
            raise ProcessUnavailable(f"{self.package} is no longer running")

    def launch(self, config: LaunchConfig) -> bool:
        """Start the app and wait (bounded) until its window has focus."""
        logging.info(
            f"[LAUNCH] starting {config.component}"
            + (f" extras={config.extras}" if config.extras else "")
        )
        self.device.start_activity(config.component, extras=config.extras)
        ready = poll_until(
            self.is_foreground,
            self.launch_timeout_s,
            interval_s=self.poll_interval_s,
            backoff=1.5,
            sleep=self.sleep,
            clock=self.clock,
            tag="LAUNCH",
        )
        if ready:
            logging.info(f"[LAUNCH] {self.package} has focus")
        else:
            logging.warning(f"[LAUNCH] {self.package} did not take focus within {self.launch_timeout_s}s")
        return ready
