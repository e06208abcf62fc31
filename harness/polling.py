"""
Bounded waiting. Every wait in the harness goes through here.

poll_until() checks the condition at least once, then keeps checking until
it holds or the timeout runs out. Nothing ever waits without a bound.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

T = TypeVar("T")

# Floor for the gap between checks, so a zero interval cannot spin.
MIN_INTERVAL_S = 0.01
_EPSILON_S = 1e-9


def wait_for(
    probe: Callable[[], Optional[T]],
    timeout_s: float,
    interval_s: float = 0.25,
    backoff: float = 1.0,
    max_interval_s: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    tag: str = "POLL",
) -> Optional[T]:
    """Call `probe` until it returns something truthy; return it (or None on timeout).

    backoff=1.0 is a fixed interval; >1.0 grows the interval up to max_interval_s.
    Exceptions from the probe count as "not yet".
    """
    deadline = clock() + max(0.0, timeout_s)
    interval = max(MIN_INTERVAL_S, interval_s)
    attempt = 0
    while True:
        attempt += 1
        try:
            value = probe()
        except Exception as e:
            logging.debug(f"[{tag}] probe raised on attempt {attempt}: {e!r}")
            value = None
        if value:
            return value
        remaining = deadline - clock()
        if remaining <= _EPSILON_S:
            logging.debug(f"[{tag}] gave up after {attempt} attempts")
            return None
        sleep(min(interval, remaining))
        if backoff > 1.0:
            interval = min(max_interval_s, interval * backoff)


def poll_until(condition: Callable[[], bool], timeout_s: float, **kwargs) -> bool:
    return bool(wait_for(lambda: bool(condition()), timeout_s, **kwargs))


def settle(delay_s: float, sleep: Callable[[float], None] = time.sleep):
    """Fixed pause for transitions that give us no completion signal."""
    if delay_s > 0:
        sleep(delay_s)
