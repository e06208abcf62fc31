from __future__ import annotations

import json
from pathlib import Path

import pytest

import main
from adb.shared_prefs import MemoryPrefsStore
from harness.codec import ListScheme
from harness.config import HarnessConfig, Timing
from harness.seeder import StateSeeder
from tests.conftest import FakeDevice


@pytest.fixture
def memory_store(monkeypatch) -> MemoryPrefsStore:
    store = MemoryPrefsStore()
    monkeypatch.setattr(main, "make_seeder", lambda config, device: StateSeeder(store, config.scheme))
    return store


def test_checkpoints_command(capsys) -> None:
    assert main.main(["checkpoints"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "01-webspaces-list"
    assert out[-1] == "08-work-sites-drawer"


def test_seed_and_clear_commands(monkeypatch, memory_store: MemoryPrefsStore, app_device: FakeDevice, capsys) -> None:
    monkeypatch.setattr(main, "AndroidDevice", lambda serial=None: app_device)
    monkeypatch.delenv("LIST_SCHEME", raising=False)

    assert main.main(["seed"]) == 0
    assert app_device.stopped == [app_device.package]
    assert "flutter.webViewModels" in memory_store.keys()
    assert "MISSING" not in capsys.readouterr().out

    assert main.main(["clear"]) == 0
    assert memory_store.keys() == []


def test_rejected_write_exits_nonzero(monkeypatch, app_device: FakeDevice) -> None:
    store = MemoryPrefsStore(reject_writes=True)
    monkeypatch.setattr(main, "AndroidDevice", lambda serial=None: app_device)
    monkeypatch.setattr(main, "make_seeder", lambda config, device: StateSeeder(store, config.scheme))
    assert main.main(["seed"]) == 1


def test_screenshot_session_end_to_end(monkeypatch, tmp_path: Path, memory_store: MemoryPrefsStore,
                                       app_device: FakeDevice) -> None:
    monkeypatch.setattr(main, "AndroidDevice", lambda serial=None: app_device)
    config = HarnessConfig(scheme=ListScheme.JSON, timing=Timing.instant(), screenshot_dir=str(tmp_path))

    run_dir, result = main.run_screenshot_session(config)

    assert result["run"]["state"] == "completed"
    assert result["error"] is None
    assert len(result["artifacts"]) == 8
    assert memory_store.kind("flutter.webspaces") == "string"
    assert app_device.started[0][1] == {}
    saved = json.loads((Path(run_dir) / "results.json").read_text(encoding="utf-8"))
    assert saved["run"]["checkpoints"][0] == "01-webspaces-list"


def test_demo_mode_launch_skips_seeding(monkeypatch, tmp_path: Path, memory_store: MemoryPrefsStore,
                                        app_device: FakeDevice) -> None:
    monkeypatch.setattr(main, "AndroidDevice", lambda serial=None: app_device)
    config = HarnessConfig(demo_mode=True, timing=Timing.instant(), screenshot_dir=str(tmp_path))

    _, result = main.run_screenshot_session(config)

    assert memory_store.commits == 0
    assert result["demo_mode"] is True
    assert app_device.started[0][1] == {"DEMO_MODE": True}
