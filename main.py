"""
Entry point for the webspace screenshot harness.

Flow for a tour run:
  force-stop app -> seed SharedPreferences (unless the launch asks the app
  to self-seed demo data) -> launch -> walk the declarative tour, capturing
  at each confirmed checkpoint -> write results.json.

`seed`, `clear` and `verify` are also exposed on their own so the stored
state can be prepared or inspected without running a tour.

Agent tool registration lives in screenshot_adk/agent.py.
"""

import argparse
import json
import logging
import os
import sys
from datetime import datetime
from typing import Optional

from adb.device import AndroidDevice, AppFileError, ProcessUnavailable
from adb.shared_prefs import DevicePrefsStore
from harness.app import LaunchConfig, TargetApp
from harness.capture import ScreenshotCapture
from harness.codec import DecodeError
from harness.config import HarnessConfig, _bool_env
from harness.drawer import DrawerStateVerifier
from harness.models import Snapshot, demo_snapshot
from harness.polling import settle
from harness.resolver import ElementResolver
from harness.runner import ScenarioRunner, checkpoint_names
from harness.seeder import SnapshotReport, StateSeeder, WriteRejected
from harness.tours import describe_screen, probe_labels, webspace_tour

logging.basicConfig(level=logging.INFO, format="%(message)s")

if _bool_env("VERBOSE_LOGS", False):
    logging.getLogger().setLevel(logging.DEBUG)


def make_seeder(config: HarnessConfig, device: AndroidDevice) -> StateSeeder:
    store = DevicePrefsStore(device, config.package)
    return StateSeeder(store, config.scheme)


def make_resolver(config: HarnessConfig, device: AndroidDevice, run_dir: str) -> ElementResolver:
    vision = None
    if config.enable_vision_fallback:
        if not config.gemini_api_key:
            logging.warning("[VISION] ENABLE_VISION_FALLBACK set but no GEMINI_API_KEY; staying tree-only")
        else:
            from harness.gemini_vision import GeminiVisionLocator

            vision = GeminiVisionLocator(
                api_key=config.gemini_api_key,
                model_name=config.gemini_model,
                rpm_limit=config.gemini_rpm,
            )
            logging.info(f"[VISION] fallback enabled model={config.gemini_model} rpm_limit={config.gemini_rpm}")
    return ElementResolver(device, vision_locator=vision, vision_screenshot=os.path.join(run_dir, "_vision_fallback.png"))


def seed_state(config: Optional[HarnessConfig] = None, snapshot: Optional[Snapshot] = None) -> tuple[Snapshot, SnapshotReport]:
    config = config or HarnessConfig.from_env()
    device = AndroidDevice(config.serial)
    app = TargetApp(device, config.package)
    # The app must not be running while we swap its preferences file.
    app.force_stop()
    seeder = make_seeder(config, device)
    snapshot = snapshot or demo_snapshot()
    seeder.seed_snapshot(snapshot)
    return snapshot, seeder.verify()


def clear_state(config: Optional[HarnessConfig] = None) -> SnapshotReport:
    config = config or HarnessConfig.from_env()
    device = AndroidDevice(config.serial)
    TargetApp(device, config.package).force_stop()
    seeder = make_seeder(config, device)
    seeder.clear()
    return seeder.verify()


def verify_state(config: Optional[HarnessConfig] = None) -> SnapshotReport:
    config = config or HarnessConfig.from_env()
    return make_seeder(config, AndroidDevice(config.serial)).verify()


def run_screenshot_session(config: Optional[HarnessConfig] = None, snapshot: Optional[Snapshot] = None):
    """Run the whole tour and return (run_dir, result dict)."""
    config = config or HarnessConfig.from_env()
    timing = config.timing
    logging.info("=== Webspace Screenshot Run ===")
    logging.info(f"Time: {datetime.now().isoformat(timespec='seconds')}")
    logging.info(f"[CONFIG] package={config.package} scheme={config.scheme.value} demo_mode={config.demo_mode}")

    run_dir = os.path.join(config.screenshot_dir, datetime.now().strftime("%Y%m%d_%H%M%S"))
    os.makedirs(run_dir, exist_ok=True)

    device = AndroidDevice(config.serial)
    app = TargetApp(
        device,
        config.package,
        launch_timeout_s=timing.launch_timeout_s,
        poll_interval_s=timing.poll_interval_s,
    )
    launch = LaunchConfig.for_package(config.package, config.activity, demo_mode=config.demo_mode)

    app.force_stop()
    settle(timing.short_s)

    snapshot = snapshot or demo_snapshot()
    if launch.demo_mode_requested():
        # The app seeds its own demo data; our copy only supplies the labels.
        logging.info("[SEED] DEMO_MODE launch: skipping external seeding")
    else:
        seeder = make_seeder(config, device)
        seeder.seed_snapshot(snapshot)
        seeder.verify()

    launched = app.launch(launch)
    settle(timing.long_s)

    resolver = make_resolver(config, device, run_dir)
    drawer = DrawerStateVerifier(
        device,
        resolver,
        probe_labels=probe_labels(snapshot),
        settle_s=timing.drawer_settle_s,
        poll_interval_s=timing.poll_interval_s,
    )
    capture = ScreenshotCapture(device, run_dir)
    runner = ScenarioRunner(
        device,
        resolver,
        drawer,
        capture,
        app=app if config.process_check else None,
        timing=timing,
    )

    expected = [ws.name for ws in snapshot.webspaces] + probe_labels(snapshot)[:3]
    screen = describe_screen(resolver, expected)

    error = None
    try:
        report = runner.run(webspace_tour(snapshot))
    except ProcessUnavailable as e:
        report = runner.report
        error = str(e)

    result = {
        "launched": launched,
        "demo_mode": launch.demo_mode_requested(),
        "scheme": config.scheme.value,
        "screen": screen,
        "run": report.to_dict(),
        "artifacts": [str(p) for p in capture.written],
        "error": error,
    }
    with open(os.path.join(run_dir, "results.json"), "w", encoding="utf-8") as f:
        json.dump(result, f, ensure_ascii=False, indent=2)

    logging.info(f"\nDone. state={report.state.value} artifacts under: {run_dir}")
    return run_dir, result


def tour_checkpoints(snapshot: Optional[Snapshot] = None) -> list[str]:
    return checkpoint_names(webspace_tour(snapshot or demo_snapshot()))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed, inspect and screenshot the webspace app.")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("seed", help="force-stop the app and write the demo snapshot")
    sub.add_parser("clear", help="remove every snapshot key")
    sub.add_parser("verify", help="print what is currently stored")
    sub.add_parser("tour", help="seed, launch and run the screenshot tour")
    sub.add_parser("checkpoints", help="list the tour's checkpoint names")
    args = parser.parse_args(argv)

    try:
        if args.command == "seed":
            _, report = seed_state()
            print(report.format())
        elif args.command == "clear":
            print(clear_state().format())
        elif args.command == "verify":
            print(verify_state().format())
        elif args.command == "checkpoints":
            print("\n".join(tour_checkpoints()))
        else:
            _, result = run_screenshot_session()
            return 0 if result["error"] is None else 2
    except (AppFileError, DecodeError, WriteRejected) as e:
        logging.error(f"[SEED] {type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
