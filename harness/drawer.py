"""
Side drawer open/closed detection by proxy.

We never trust the slide animation to have finished after a fixed delay.
Instead the drawer counts as open when one of the probe labels (text that
only ever appears inside the drawer, e.g. seeded site names) resolves.

Only presence is a strong signal. A probe label missing from the dump can
also mean "still animating" or "the app dropped the semantics node", so
close() does not try to prove the drawer closed.
"""

import logging
import time
from typing import Callable, Iterable, Optional

from harness.polling import poll_until, settle
from harness.resolver import ElementResolver

# Flutter's Scaffold exposes the hamburger as a tooltip / content-desc.
DEFAULT_TOGGLE_LABELS = ("Open navigation menu",)


class DrawerStateVerifier:
    def __init__(
        self,
        device,
        resolver: ElementResolver,
        probe_labels: Iterable[str],
        toggle_labels: Iterable[str] = DEFAULT_TOGGLE_LABELS,
        settle_s: float = 1.5,
        poll_interval_s: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.device = device
        self.resolver = resolver
        self.probe_labels = [p for p in probe_labels if p]
        self.toggle_labels = list(toggle_labels)
        self.settle_s = settle_s
        self.poll_interval_s = poll_interval_s
        self.sleep = sleep
        self.clock = clock
        if not self.probe_labels:
            logging.warning("[DRAWER] no probe labels; open() can only ever report closed")

    def matched_probe(self) -> Optional[str]:
        for label in self.probe_labels:
            # Tree only: a vision guess would "find" a probe on a closed drawer.
            if self.resolver.resolve(label, allow_vision=False) is not None:
                return label
        return None

    def is_open(self) -> bool:
        return self.matched_probe() is not None

    def _swipe_from_left_edge(self):
        width, height = self.device.display_size()
        self.device.swipe(0, height // 2, width // 3, height // 2, 20)

    def open(self) -> bool:
        """Trigger the drawer and report what we actually observe afterwards."""
        toggle = self.resolver.resolve_any(self.toggle_labels, allow_vision=False) if self.toggle_labels else None
        if toggle is not None and toggle.tap():
            logging.debug(f"[DRAWER] tapped toggle {toggle.label!r}")
        else:
            logging.debug("[DRAWER] no toggle on screen, swiping from the left edge")
            self._swipe_from_left_edge()

        opened = poll_until(
            self.is_open,
            self.settle_s,
            interval_s=self.poll_interval_s,
            sleep=self.sleep,
            clock=self.clock,
            tag="DRAWER",
        )
        logging.info(f"[DRAWER] open -> {'OPEN' if opened else 'NOT VERIFIED'}")
        return opened

    def close(self):
        # Fire-and-forget: back dismisses the drawer, then give it time to slide out.
        self.device.back()
        settle(self.settle_s, sleep=self.sleep)
        logging.debug("[DRAWER] close requested")
