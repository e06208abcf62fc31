import os
from dataclasses import dataclass, field
from typing import Optional

from harness.codec import ListScheme

DEFAULT_PACKAGE = "org.codeberg.theoden8.webspace"
DEFAULT_ACTIVITY = ".MainActivity"


def _bool_env(name: str, default: bool) -> bool:
    v = os.environ.get(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _int_env(name: str, default: int) -> int:
    v = os.environ.get(name)
    try:
        return int(v) if v is not None else default
    except Exception:
        return default


def _float_env(name: str, default: float) -> float:
    v = os.environ.get(name)
    try:
        return float(v) if v is not None else default
    except Exception:
        return default


@dataclass(frozen=True)
class Timing:
    """Settle delays and poll bounds, in seconds. Tunable, not load-bearing."""

    short_s: float = 0.8
    medium_s: float = 1.5
    long_s: float = 2.5
    drawer_settle_s: float = 1.5
    launch_timeout_s: float = 10.0
    poll_interval_s: float = 0.25

    def scaled(self, factor: float) -> "Timing":
        f = max(0.0, factor)
        return Timing(
            short_s=self.short_s * f,
            medium_s=self.medium_s * f,
            long_s=self.long_s * f,
            drawer_settle_s=self.drawer_settle_s * f,
            launch_timeout_s=self.launch_timeout_s,
            poll_interval_s=self.poll_interval_s,
        )

    @classmethod
    def instant(cls) -> "Timing":
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class HarnessConfig:
    package: str = DEFAULT_PACKAGE
    activity: str = DEFAULT_ACTIVITY
    scheme: ListScheme = ListScheme.STRING_SET
    # None means "do not pass the flag at all".
    demo_mode: Optional[bool] = None
    timing: Timing = field(default_factory=Timing)
    screenshot_dir: str = "runs"
    process_check: bool = True
    serial: Optional[str] = None
    enable_vision_fallback: bool = False
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_rpm: int = 8

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        demo_mode = None
        if os.environ.get("DEMO_MODE") is not None:
            demo_mode = _bool_env("DEMO_MODE", False)
        timing = Timing(launch_timeout_s=_float_env("LAUNCH_TIMEOUT_S", Timing.launch_timeout_s))
        return cls(
            package=os.environ.get("WEBSPACE_PACKAGE", DEFAULT_PACKAGE),
            activity=os.environ.get("WEBSPACE_ACTIVITY", DEFAULT_ACTIVITY),
            scheme=ListScheme.parse(os.environ.get("LIST_SCHEME", ListScheme.STRING_SET.value)),
            demo_mode=demo_mode,
            timing=timing.scaled(_float_env("DELAY_SCALE", 1.0)),
            screenshot_dir=os.environ.get("SCREENSHOT_DIR", "runs"),
            process_check=_bool_env("PROCESS_CHECK", True),
            serial=os.environ.get("ANDROID_SERIAL") or None,
            enable_vision_fallback=_bool_env("ENABLE_VISION_FALLBACK", False),
            gemini_api_key=os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY"),
            gemini_model=os.environ.get("GEMINI_MODEL", "gemini-2.5-flash"),
            gemini_rpm=_int_env("GEMINI_RPM", 8),
        )
