import logging
import re
import time
from pathlib import Path
from typing import Optional, Tuple

import google.generativeai as genai
from google.api_core.exceptions import DeadlineExceeded, NotFound, ResourceExhausted

_RETRY_HINT = re.compile(r"retry in ([0-9]+(?:\.[0-9]+)?)s", re.IGNORECASE)


def retry_hint_seconds(message: str) -> Optional[float]:
    """Server-suggested wait from a quota error ("... retry in 12.5s."), if any."""
    m = _RETRY_HINT.search(message or "")
    return float(m.group(1)) if m else None


class GeminiVisionLocator:
    """Point at a label on a screenshot when the accessibility tree has nothing for it."""

    def __init__(self, api_key: str, model_name: str, rpm_limit: int = 8, timeout_s: int = 45, max_attempts: int = 3):
        genai.configure(api_key=api_key)
        self.model_name = model_name if model_name.startswith("models/") else f"models/{model_name}"
        self.model = genai.GenerativeModel(self.model_name)
        self.timeout_s = timeout_s
        self.max_attempts = max(1, int(max_attempts))
        # Spacing between requests that keeps us under the per-minute quota.
        self.min_gap_s = 60.0 / max(1, int(rpm_limit))
        self._next_slot = 0.0

    def _wait_for_slot(self):
        now = time.monotonic()
        if now < self._next_slot:
            time.sleep(self._next_slot - now)
            now = self._next_slot
        self._next_slot = now + self.min_gap_s

    @staticmethod
    def parse_coords(text: str) -> Optional[Tuple[int, int]]:
        text = (text or "").strip()
        if not text or text.lower().startswith("none"):
            return None
        # Accept "123,456" or "x=123 y=456" style outputs.
        match = re.search(r"(-?\d+)\s*,\s*(-?\d+)", text)
        if not match:
            match = re.search(r"x\s*=?\s*(-?\d+).+?y\s*=?\s*(-?\d+)", text, re.IGNORECASE | re.DOTALL)
        if not match:
            return None
        x, y = int(match.group(1)), int(match.group(2))
        if x < 0 or y < 0:
            return None
        return x, y

    def _generate(self, instructions: str, image_bytes: bytes) -> str:
        last_err = None
        for attempt in range(1, self.max_attempts + 1):
            self._wait_for_slot()
            try:
                resp = self.model.generate_content(
                    [
                        {
                            "role": "user",
                            "parts": [
                                {"text": instructions},
                                {"inline_data": {"mime_type": "image/png", "data": image_bytes}},
                            ],
                        }
                    ],
                    request_options={"timeout": self.timeout_s},
                )
                return (getattr(resp, "text", None) or "").strip()
            except ResourceExhausted as e:
                last_err = e
                wait_s = retry_hint_seconds(str(e))
                time.sleep((wait_s if wait_s is not None else min(8 * attempt, 30)) + 0.5)
            except DeadlineExceeded as e:
                last_err = e
                time.sleep(min(2 * attempt, 10))
            except NotFound as e:
                raise RuntimeError(f"[VISION] unknown model {self.model_name}: {e}") from e
        raise RuntimeError(f"[VISION] no answer after {self.max_attempts} attempts: {last_err!r}")

    def locate(self, screenshot_path: str, target_text: str) -> Optional[Tuple[int, int]]:
        if not screenshot_path or not target_text:
            return None
        p = Path(screenshot_path)
        if not p.exists():
            return None

        instructions = (
            "This is a screenshot of an Android app. "
            f"Is there a visible control or text labelled '{target_text}' (or an icon that clearly means it)? "
            "If yes, reply with only its center pixel coordinates as 'x,y'. "
            "If it is not on screen, reply 'NONE'. Do not guess a nearby element."
        )
        text = self._generate(instructions, p.read_bytes())
        coords = self.parse_coords(text)
        logging.debug(f"[VISION] {target_text!r} -> {coords} (raw={text[:60]!r})")
        return coords
