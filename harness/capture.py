"""
Default checkpoint capture: adb screencap into the run directory, plus a
quick look at the frame so a blank (still-rendering) shot shows up in the
log instead of in the store listing.
"""

import logging
from pathlib import Path

import numpy as np
from PIL import Image

# Grayscale std-dev below this means the frame is one flat colour.
BLANK_STDDEV = 2.0


def frame_stats(path: str) -> dict:
    img = Image.open(path).convert("L")
    arr = np.asarray(img, dtype=np.float32)
    return {"mean": float(arr.mean()), "std": float(arr.std()), "size": [img.width, img.height]}


def frame_is_blank(path: str, threshold: float = BLANK_STDDEV) -> bool:
    return frame_stats(path)["std"] < threshold


class ScreenshotCapture:
    """Callable used as the runner's capture collaborator: capture(name)."""

    def __init__(self, device, out_dir: str, check_blank: bool = True):
        self.device = device
        self.out_dir = Path(out_dir)
        self.check_blank = check_blank
        self.written: list[Path] = []

    def _target(self, name: str) -> Path:
        # Same checkpoint twice -> two files, never an overwrite.
        p = self.out_dir / f"{name}.png"
        n = 2
        while p.exists():
            p = self.out_dir / f"{name}-{n}.png"
            n += 1
        return p

    def __call__(self, name: str):
        self.out_dir.mkdir(parents=True, exist_ok=True)
        path = self.device.screenshot(str(self._target(name)))
        self.written.append(Path(path))
        if self.check_blank:
            try:
                stats = frame_stats(str(path))
                if stats["std"] < BLANK_STDDEV:
                    logging.warning(f"[CAPTURE] {name} looks blank (mean={stats['mean']:.0f}); UI may still be rendering")
            except Exception as e:
                logging.debug(f"[CAPTURE] could not inspect {path}: {e!r}")
        return path
