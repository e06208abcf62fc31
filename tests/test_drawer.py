from __future__ import annotations

from harness.drawer import DrawerStateVerifier
from harness.resolver import ElementResolver
from tests.conftest import FakeClock, FakeDevice, FakeVision, n, site_tile


def _verifier(device: FakeDevice, probes, toggle_labels=("Open navigation menu",)) -> DrawerStateVerifier:
    return DrawerStateVerifier(
        device,
        ElementResolver(device),
        probe_labels=probes,
        toggle_labels=toggle_labels,
        settle_s=0.0,
        sleep=lambda s: None,
    )


def test_open_via_toggle_reports_open(app_device: FakeDevice) -> None:
    app_device.screen = "sites_all"
    drawer = _verifier(app_device, ["My Blog", "Tasks"])
    assert not drawer.is_open()

    assert drawer.open() is True
    assert app_device.screen == "drawer_all"
    assert app_device.swipes == []
    assert drawer.matched_probe() == "My Blog"


def test_open_falls_back_to_edge_swipe() -> None:
    device = FakeDevice(
        {"home": [n(text="Home")], "drawer": [site_tile("Notes", "https://notes.example.com", None)]},
        start="home",
        swipe_to={"home": "drawer"},
    )
    drawer = _verifier(device, ["Notes"])
    assert drawer.open() is True
    assert device.swipes == [(0, 1200, 360, 1200, 20)]


def test_open_reports_closed_when_nothing_changes() -> None:
    device = FakeDevice({"home": [n(text="Home")]}, start="home")
    drawer = _verifier(device, ["Notes"])
    assert drawer.open() is False


def test_any_probe_label_is_enough(app_device: FakeDevice) -> None:
    app_device.screen = "drawer_work"
    drawer = _verifier(app_device, ["Photo Gallery", "Media Server", "Notes"])
    assert drawer.is_open()
    assert drawer.matched_probe() == "Notes"


def test_empty_probe_set_reports_closed_without_crashing(app_device: FakeDevice) -> None:
    app_device.screen = "sites_all"
    drawer = _verifier(app_device, [])
    assert drawer.open() is False
    # The drawer did slide open; we just have nothing to prove it with.
    assert app_device.screen == "drawer_all"


def test_close_presses_back_and_does_not_reverify(app_device: FakeDevice) -> None:
    app_device.screen = "drawer_all"
    drawer = _verifier(app_device, ["My Blog"])
    dumps = app_device.dumps
    drawer.close()
    assert app_device.backs == 1
    assert app_device.screen == "sites_all"
    assert app_device.dumps == dumps


def test_open_polls_until_settle_bound() -> None:
    device = FakeDevice({"home": [n(text="Home")]}, start="home")
    clock = FakeClock()
    drawer = DrawerStateVerifier(
        device,
        ElementResolver(device),
        probe_labels=["Notes"],
        toggle_labels=(),
        settle_s=1.0,
        poll_interval_s=0.25,
        sleep=clock.sleep,
        clock=clock,
    )
    assert drawer.open() is False
    assert clock.sleeps == [0.25, 0.25, 0.25, 0.25]
    # one check up front plus one after every sleep
    assert device.dumps == 5


def test_vision_fallback_does_not_fake_an_open_drawer(tmp_path) -> None:
    device = FakeDevice({"home": [n(text="Home")]}, start="home")
    vision = FakeVision((500, 500))
    resolver = ElementResolver(device, vision_locator=vision, vision_screenshot=str(tmp_path / "v.png"))
    drawer = DrawerStateVerifier(device, resolver, probe_labels=["Notes", "Tasks"], settle_s=0.0, sleep=lambda s: None)

    assert drawer.open() is False
    assert vision.calls == []
    assert device.taps == []
    # No toggle in the tree, so the edge swipe is used rather than a guessed tap.
    assert device.swipes == [(0, 1200, 360, 1200, 20)]


def test_vision_fallback_still_finds_real_drawer(app_device: FakeDevice, tmp_path) -> None:
    app_device.screen = "sites_all"
    vision = FakeVision((1, 1))
    resolver = ElementResolver(app_device, vision_locator=vision, vision_screenshot=str(tmp_path / "v.png"))
    drawer = DrawerStateVerifier(app_device, resolver, probe_labels=["My Blog"], settle_s=0.0, sleep=lambda s: None)

    assert drawer.open() is True
    assert app_device.screen == "drawer_all"
    assert vision.calls == []
