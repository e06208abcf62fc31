from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image

from harness.capture import ScreenshotCapture, frame_is_blank, frame_stats
from tests.conftest import FakeDevice, n


def test_repeated_names_never_overwrite(tmp_path: Path) -> None:
    device = FakeDevice({"home": [n(text="Home")]}, start="home")
    capture = ScreenshotCapture(device, str(tmp_path / "run"))

    capture("01-home")
    capture("01-home")
    capture("02-next")

    assert [p.name for p in capture.written] == ["01-home.png", "01-home-2.png", "02-next.png"]
    assert all(p.exists() for p in capture.written)


def test_blank_frame_detection(tmp_path: Path) -> None:
    flat = tmp_path / "flat.png"
    Image.new("RGB", (64, 64), (255, 255, 255)).save(flat)
    busy = tmp_path / "busy.png"
    Image.linear_gradient("L").save(busy)

    assert frame_is_blank(str(flat))
    assert not frame_is_blank(str(busy))
    assert frame_stats(str(flat))["size"] == [64, 64]


def test_blank_capture_is_logged_not_raised(tmp_path: Path, caplog) -> None:
    class FlatDevice(FakeDevice):
        def screenshot(self, path: str) -> Path:
            p = Path(path)
            Image.new("L", (32, 32), 0).save(p)
            return p

    capture = ScreenshotCapture(FlatDevice({}, start="none"), str(tmp_path))
    with caplog.at_level(logging.WARNING):
        capture("01-splash")
    assert "looks blank" in caplog.text
