import logging
import posixpath
import re
import subprocess
from pathlib import Path
from typing import Optional

# Name of the adb executable (assumes adb is on PATH)
ADB = "adb"

ADB_TEXT_KW = dict(text=True, encoding="utf-8", errors="ignore")

KEYCODE_BACK = 4


class ProcessUnavailable(RuntimeError):
    """The target app process is gone (or adb lost the device)."""


class AppFileError(RuntimeError):
    """A file inside the app sandbox exists (or might) but could not be read."""


class AndroidDevice:
    """Very small wrapper around adb.

    Same rule as always: this class only *does* things (tap, swipe, dump,
    read/write files). Deciding what to do lives in the harness package.
    """

    def __init__(self, serial: Optional[str] = None):
        self.serial = serial

    def _adb(self, *args: str) -> list[str]:
        if self.serial:
            return [ADB, "-s", self.serial, *args]
        return [ADB, *args]

    def _run(self, cmd: list[str], check: bool = True):
        # Echo the command so the run log reads like a transcript.
        logging.info(f"[ADB] {' '.join(cmd)}")
        return subprocess.run(cmd, check=check)

    def _run_capture(self, cmd: list[str], check: bool = True, timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        """Run a command and capture stdout/stderr (for commands we parse)."""
        logging.debug(f"[ADB] {' '.join(cmd)}")
        return subprocess.run(cmd, check=check, capture_output=True, timeout=timeout, **ADB_TEXT_KW)

    # App lifecycle helpers

    def start_activity(self, component: str, extras: Optional[dict] = None) -> str:
        """`am start -W` an explicit component, passing boolean/int/string extras."""
        cmd = self._adb(
            "shell", "am", "start", "-W",
            "-n", component,
            "-a", "android.intent.action.MAIN",
            "-c", "android.intent.category.LAUNCHER",
            "-f", "0x10008000",  # NEW_TASK | CLEAR_TASK
        )
        for name, value in (extras or {}).items():
            if isinstance(value, bool):
                cmd += ["--ez", name, "true" if value else "false"]
            elif isinstance(value, int):
                cmd += ["--ei", name, str(value)]
            else:
                cmd += ["--es", name, str(value)]
        logging.info(f"[ADB] {' '.join(cmd)}")
        proc = subprocess.run(cmd, check=True, capture_output=True, **ADB_TEXT_KW)
        return (proc.stdout or "") + (proc.stderr or "")

    def force_stop(self, package: str):
        self._run(self._adb("shell", "am", "force-stop", package))

    def pidof(self, package: str) -> Optional[int]:
        try:
            proc = self._run_capture(self._adb("shell", "pidof", package), check=False, timeout=5)
        except subprocess.TimeoutExpired as e:
            raise ProcessUnavailable(f"adb did not answer pidof for {package}") from e
        out = (proc.stdout or "").strip()
        if proc.returncode != 0 or not out:
            return None
        try:
            return int(out.split()[0])
        except ValueError:
            return None

    # App-private files (debuggable builds only, via run-as)

    def run_as_read(self, package: str, path: str) -> Optional[str]:
        """Return file contents from the app data dir, or None if the file does not exist.

        Anything else (not debuggable, unknown package, adb hanging) raises
        AppFileError: an unreadable file is not an empty one.
        """
        cmd = self._adb("shell", "run-as", package, "cat", path)
        try:
            proc = self._run_capture(cmd, check=False, timeout=10)
        except subprocess.TimeoutExpired as e:
            raise AppFileError(f"run-as cat {path} timed out") from e
        if proc.returncode == 0:
            return proc.stdout
        err = ((proc.stderr or "") + (proc.stdout or "")).strip()
        if "No such file" in err:
            logging.debug(f"[ADB] {path} does not exist yet")
            return None
        raise AppFileError(f"run-as cat {path} failed (rc={proc.returncode}): {err or 'no output'}")

    def run_as_write(self, package: str, path: str, content: str) -> bool:
        """Write a file in the app data dir via temp file + mv (single swap)."""
        tmp = f"{path}.harness-tmp"
        parent = posixpath.dirname(path) or "."
        script = f"mkdir -p '{parent}' && cat > '{tmp}' && mv '{tmp}' '{path}'"
        cmd = self._adb("exec-in", f"run-as {package} sh -c \"{script}\"")
        logging.info(f"[ADB] {' '.join(cmd)}")
        try:
            proc = subprocess.run(cmd, input=content, capture_output=True, timeout=15, **ADB_TEXT_KW)
        except subprocess.TimeoutExpired:
            logging.warning(f"[ADB] write {path} timed out")
            return False
        if proc.returncode != 0:
            logging.warning(f"[ADB] write {path} failed: {(proc.stderr or proc.stdout or '').strip()}")
            return False
        return True

    # Basic input

    def tap(self, x: int, y: int):
        self._run(self._adb("shell", "input", "tap", str(x), str(y)))

    def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int = 350):
        self._run(self._adb("shell", "input", "swipe", str(x1), str(y1), str(x2), str(y2), str(duration_ms)))

    def type_text(self, text: str):
        # adb input text treats spaces weirdly unless you escape them as %s.
        safe = text.replace(" ", "%s")
        self._run(self._adb("shell", "input", "text", safe))

    def key(self, keycode: int):
        self._run(self._adb("shell", "input", "keyevent", str(keycode)))

    def back(self):
        self.key(KEYCODE_BACK)

    # Screens + UI hierarchy

    def screenshot(self, path_or_name: str) -> Path:
        """Take a screenshot.

        If you pass:
        - "something.png" => it saves exactly there (relative path ok)
        - "something"     => it saves to runs/screenshots/something.png
        """
        p = Path(path_or_name)
        if p.suffix.lower() != ".png":
            p = Path("runs") / "screenshots" / f"{path_or_name}.png"

        p.parent.mkdir(parents=True, exist_ok=True)

        # exec-out avoids line ending corruption
        with open(p, "wb") as f:
            subprocess.run(self._adb("exec-out", "screencap", "-p"), stdout=f, check=True)

        return p

    def wm_size(self) -> str:
        p = subprocess.run(self._adb("shell", "wm", "size"), capture_output=True, **ADB_TEXT_KW)
        return (p.stdout or p.stderr or "").strip()

    def display_size(self) -> tuple[int, int]:
        """Best-effort window size (falls back to 1080x2400)."""
        out = ""
        try:
            out = self.wm_size() or ""
        except Exception:
            pass
        # "Override size" wins over "Physical size" when both are printed.
        matches = re.findall(r"(\d+)\s*x\s*(\d+)", out)
        if matches:
            w, h = matches[-1]
            return int(w), int(h)
        return (1080, 2400)

    def ui_dump(self) -> str:
        remote = "/sdcard/window_dump.xml"
        try:
            subprocess.run(
                self._adb("shell", "uiautomator", "dump", remote),
                capture_output=True,
                timeout=5,
                **ADB_TEXT_KW,
            )
            p = subprocess.run(
                self._adb("shell", "cat", remote),
                capture_output=True,
                timeout=5,
                **ADB_TEXT_KW,
            )

            return (p.stdout or "").strip()
        except subprocess.TimeoutExpired:
            return ""
        except Exception:
            return ""

    def current_focus(self) -> str:
        try:
            proc = subprocess.run(
                self._adb("shell", "dumpsys", "window"),
                capture_output=True,
                timeout=5,
                **ADB_TEXT_KW,
            )

            text = (proc.stdout or "") + (proc.stderr or "")
            for line in text.splitlines():
                if "mCurrentFocus" in line:
                    return line.strip()
        except subprocess.TimeoutExpired:
            return ""
        except Exception:
            return ""
        return ""
