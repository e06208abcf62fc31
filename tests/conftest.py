from __future__ import annotations

from pathlib import Path
from typing import Optional
from xml.sax.saxutils import quoteattr

import pytest
from PIL import Image

from harness.models import Snapshot, demo_snapshot

ROW_HEIGHT = 120


def n(text: str = "", desc: str = "", goto: Optional[str] = None, clickable: Optional[bool] = None,
      enabled: bool = True, bounds: Optional[str] = None, cls: str = "android.view.View") -> dict:
    """One node on a fake screen. `goto` is the screen a tap on it leads to."""
    return {
        "text": text,
        "desc": desc,
        "goto": goto,
        "clickable": bool(goto) if clickable is None else clickable,
        "enabled": enabled,
        "bounds": bounds,
        "cls": cls,
    }


def render_dump(nodes: list[dict]) -> str:
    parts = ["<?xml version='1.0' encoding='UTF-8' standalone='yes' ?>", '<hierarchy rotation="0">',
             '<node index="0" text="" resource-id="" class="android.widget.FrameLayout" package="org.codeberg.theoden8.webspace" '
             'content-desc="" clickable="false" enabled="true" bounds="[0,0][1080,2400]">']
    for i, node in enumerate(nodes):
        parts.append(
            f'<node index="{i}" text={quoteattr(node["text"])} resource-id="" class="{node["cls"]}" '
            f'package="org.codeberg.theoden8.webspace" content-desc={quoteattr(node["desc"])} '
            f'clickable="{str(node["clickable"]).lower()}" enabled="{str(node["enabled"]).lower()}" '
            f'bounds="{node["bounds"]}" />'
        )
    parts.append("</node></hierarchy>")
    return "".join(parts)


class FakeDevice:
    """Scripted stand-in for AndroidDevice.

    Screens are lists of nodes; taps on a node with `goto` switch screens,
    a swipe from the left edge follows `swipe_to`, back follows `back_to`.
    """

    def __init__(self, screens: dict[str, list[dict]], start: str, package: str = "org.codeberg.theoden8.webspace",
                 swipe_to: Optional[dict[str, str]] = None, back_to: Optional[dict[str, str]] = None):
        self.screens = {}
        for name, nodes in screens.items():
            laid_out = []
            for i, node in enumerate(nodes):
                node = dict(node)
                if node["bounds"] is None:
                    node["bounds"] = f"[0,{i * ROW_HEIGHT}][1080,{i * ROW_HEIGHT + 100}]"
                laid_out.append(node)
            self.screens[name] = laid_out
        self.screen = start
        self.package = package
        self.swipe_to = swipe_to or {}
        self.back_to = back_to or {}
        self.alive = True
        self.focused = True
        self.dumps = 0
        self.taps: list[tuple[int, int]] = []
        self.swipes: list[tuple] = []
        self.backs = 0
        self.typed: list[str] = []
        self.started: list[tuple[str, dict]] = []
        self.stopped: list[str] = []
        self.screenshots: list[str] = []

    # UI

    def ui_dump(self) -> str:
        self.dumps += 1
        return render_dump(self.screens.get(self.screen, []))

    def display_size(self) -> tuple[int, int]:
        return (1080, 2400)

    def tap(self, x: int, y: int):
        self.taps.append((x, y))
        for node in self.screens.get(self.screen, []):
            l, t, r, b = [int(v) for v in node["bounds"].replace("][", ",").strip("[]").split(",")]
            if l <= x <= r and t <= y <= b and node["goto"]:
                self.screen = node["goto"]
                return

    def swipe(self, x1, y1, x2, y2, duration_ms=350):
        self.swipes.append((x1, y1, x2, y2, duration_ms))
        if x1 == 0 and self.screen in self.swipe_to:
            self.screen = self.swipe_to[self.screen]

    def back(self):
        self.backs += 1
        self.screen = self.back_to.get(self.screen, self.screen)

    def type_text(self, text: str):
        self.typed.append(text)

    def screenshot(self, path: str) -> Path:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        Image.linear_gradient("L").save(p)
        self.screenshots.append(str(p))
        return p

    # lifecycle

    def force_stop(self, package: str):
        self.stopped.append(package)
        self.alive = False

    def start_activity(self, component: str, extras: Optional[dict] = None) -> str:
        self.started.append((component, dict(extras or {})))
        self.alive = True
        return "Status: ok"

    def current_focus(self) -> str:
        if self.alive and self.focused:
            return f"mCurrentFocus=Window{{abc u0 {self.package}/{self.package}.MainActivity}}"
        return "mCurrentFocus=Window{def u0 com.android.launcher3/.Launcher}"

    def pidof(self, package: str) -> Optional[int]:
        return 4242 if self.alive and package == self.package else None


def site_tile(name: str, url: str, goto: Optional[str]) -> dict:
    # Flutter ListTile semantics: title and subtitle merged into content-desc.
    return n(desc=f"{name}\n{url}", goto=goto)


def webspace_app_screens(snapshot: Snapshot) -> dict:
    """Screens for a webspace app that only exposes site tiles via content-desc."""
    work = next(ws for ws in snapshot.webspaces if not ws.is_all)
    all_tiles = [site_tile(s.name, s.init_url, "site_view") for s in snapshot.sites]
    work_tiles = [site_tile(snapshot.sites[i].name, snapshot.sites[i].init_url, "site_view") for i in work.site_indices]
    nav_back = n(desc="Back to Webspaces", goto="webspaces")
    toggle = lambda target: n(desc="Open navigation menu", goto=target)  # noqa: E731
    return {
        "screens": {
            "webspaces": [n(text="Webspaces", clickable=False)]
            + [n(text=ws.name, goto="sites_all" if ws.is_all else "sites_work", cls="android.widget.TextView")
               for ws in snapshot.webspaces],
            "sites_all": [toggle("drawer_all"), n(text="All", clickable=False)],
            "drawer_all": [nav_back] + all_tiles,
            "site_view": [toggle("drawer_site"), n(desc="web content")],
            "drawer_site": [nav_back] + all_tiles,
            "sites_work": [toggle("drawer_work"), n(text=work.name, clickable=False)],
            "drawer_work": [nav_back] + work_tiles,
        },
        "back_to": {"drawer_all": "sites_all", "drawer_site": "site_view", "drawer_work": "sites_work"},
        "swipe_to": {"sites_all": "drawer_all", "site_view": "drawer_site", "sites_work": "drawer_work"},
    }


@pytest.fixture
def snapshot() -> Snapshot:
    return demo_snapshot()


@pytest.fixture
def app_device(snapshot: Snapshot) -> FakeDevice:
    model = webspace_app_screens(snapshot)
    return FakeDevice(model["screens"], start="webspaces", swipe_to=model["swipe_to"], back_to=model["back_to"])


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeVision:
    """Vision locator that answers the same coordinates for every label."""

    def __init__(self, coords):
        self.coords = coords
        self.calls: list[tuple[str, str]] = []

    def locate(self, path, target):
        self.calls.append((path, target))
        return self.coords
