"""
SharedPreferences stores for the target app.

Android keeps an app's preferences as one XML file per preferences name:

    <?xml version='1.0' encoding='utf-8' standalone='yes' ?>
    <map>
        <string name="flutter.selectedWebspaceId">__all_webspace__</string>
        <set name="flutter.webspaces">
            <string>{"id":...}</string>
        </set>
        <long name="flutter.currentIndex" value="10000" />
        <boolean name="flutter.showUrlBar" value="false" />
    </map>

Every store here reads/writes that exact shape, keeps the kind of each
entry (long vs int matters to the reader on the other side), and only
ever replaces the whole file on commit.
"""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from adb.device import AndroidDevice

PREFS_NAME = "FlutterSharedPreferences"
PREFS_PATH = f"shared_prefs/{PREFS_NAME}.xml"

KINDS = ("string", "set", "long", "int", "boolean", "float")

# name -> (kind, value)
Entries = Dict[str, Tuple[str, Any]]


class PrefsFormatError(ValueError):
    """The preferences file is not the XML shape Android writes."""


def parse_prefs_xml(xml_text: str) -> Entries:
    if not xml_text or not xml_text.strip():
        return {}
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise PrefsFormatError(f"preferences XML does not parse: {e}") from e
    if root.tag != "map":
        raise PrefsFormatError(f"expected <map> root, got <{root.tag}>")

    entries: Entries = {}
    for el in root:
        name = el.attrib.get("name")
        if name is None or el.tag not in KINDS:
            raise PrefsFormatError(f"unexpected preferences element: <{el.tag} {el.attrib}>")
        if el.tag == "string":
            entries[name] = ("string", el.text or "")
        elif el.tag == "set":
            entries[name] = ("set", frozenset((child.text or "") for child in el.iter("string")))
        elif el.tag in ("long", "int"):
            entries[name] = (el.tag, int(el.attrib.get("value", "0")))
        elif el.tag == "boolean":
            entries[name] = ("boolean", el.attrib.get("value") == "true")
        else:
            entries[name] = ("float", float(el.attrib.get("value", "0")))
    return entries


def _xml_text(s: str) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _xml_attr(s: str) -> str:
    return _xml_text(s).replace('"', "&quot;")


def render_prefs_xml(entries: Entries) -> str:
    """Serialize entries the way SharedPreferencesImpl writes them."""
    lines = ["<?xml version='1.0' encoding='utf-8' standalone='yes' ?>", "<map>"]
    for name in sorted(entries):
        kind, value = entries[name]
        n = _xml_attr(name)
        if kind == "string":
            lines.append(f'    <string name="{n}">{_xml_text(value)}</string>')
        elif kind == "set":
            if not value:
                lines.append(f'    <set name="{n}" />')
                continue
            lines.append(f'    <set name="{n}">')
            for item in sorted(value):
                lines.append(f"        <string>{_xml_text(item)}</string>")
            lines.append("    </set>")
        elif kind == "boolean":
            lines.append(f'    <boolean name="{n}" value="{"true" if value else "false"}" />')
        elif kind in ("long", "int"):
            lines.append(f'    <{kind} name="{n}" value="{int(value)}" />')
        elif kind == "float":
            lines.append(f'    <float name="{n}" value="{float(value)}" />')
        else:
            raise PrefsFormatError(f"unknown entry kind for {name}: {kind}")
    lines.append("</map>")
    return "\n".join(lines) + "\n"


class PrefsEditor:
    """Batched edit; nothing touches the store until commit()."""

    def __init__(self, store: "PrefsStore"):
        self._store = store
        self._puts: Entries = {}
        self._removes: set[str] = set()

    def _put(self, key: str, kind: str, value: Any) -> "PrefsEditor":
        self._removes.discard(key)
        self._puts[key] = (kind, value)
        return self

    def put_string(self, key: str, value: str) -> "PrefsEditor":
        return self._put(key, "string", str(value))

    def put_string_set(self, key: str, values: Iterable[str]) -> "PrefsEditor":
        return self._put(key, "set", frozenset(values))

    def put_long(self, key: str, value: int) -> "PrefsEditor":
        return self._put(key, "long", int(value))

    def put_int(self, key: str, value: int) -> "PrefsEditor":
        return self._put(key, "int", int(value))

    def put_boolean(self, key: str, value: bool) -> "PrefsEditor":
        return self._put(key, "boolean", bool(value))

    def remove(self, key: str) -> "PrefsEditor":
        self._puts.pop(key, None)
        self._removes.add(key)
        return self

    def commit(self) -> bool:
        """Apply every pending change in one write. Returns False if rejected."""
        entries = dict(self._store.entries())
        for key in self._removes:
            entries.pop(key, None)
        entries.update(self._puts)
        ok = self._store._write(entries)
        if ok:
            self._puts = {}
            self._removes = set()
        return ok


class PrefsStore:
    """Read side + editor factory. Subclasses provide _read()/_write()."""

    def _read(self) -> Entries:
        raise NotImplementedError

    def _write(self, entries: Entries) -> bool:
        raise NotImplementedError

    def entries(self) -> Entries:
        return self._read()

    def keys(self) -> list[str]:
        return sorted(self._read())

    def contains(self, key: str) -> bool:
        return key in self._read()

    def kind(self, key: str) -> Optional[str]:
        entry = self._read().get(key)
        return entry[0] if entry else None

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._read().get(key)
        return entry[1] if entry else default

    def edit(self) -> PrefsEditor:
        return PrefsEditor(self)


class MemoryPrefsStore(PrefsStore):
    def __init__(self, entries: Optional[Entries] = None, reject_writes: bool = False):
        self._entries: Entries = dict(entries or {})
        self.reject_writes = reject_writes
        self.commits = 0

    def _read(self) -> Entries:
        return dict(self._entries)

    def _write(self, entries: Entries) -> bool:
        if self.reject_writes:
            return False
        self._entries = dict(entries)
        self.commits += 1
        return True

    def to_xml(self) -> str:
        return render_prefs_xml(self._entries)


class FilePrefsStore(PrefsStore):
    """A preferences XML on the local disk (pulled copy, fixture, backup)."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> Entries:
        if not self.path.exists():
            return {}
        return parse_prefs_xml(self.path.read_text(encoding="utf-8"))

    def _write(self, entries: Entries) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_name(self.path.name + ".tmp")
            tmp.write_text(render_prefs_xml(entries), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            logging.warning(f"[PREFS] write to {self.path} failed: {e}")
            return False
        return True


class DevicePrefsStore(PrefsStore):
    """The live preferences file inside the app sandbox (needs a debuggable build)."""

    def __init__(self, device: AndroidDevice, package: str, path: str = PREFS_PATH):
        self.device = device
        self.package = package
        self.path = path

    def _read(self) -> Entries:
        # None only for a file that is not there yet; an unreadable one raises AppFileError.
        xml_text = self.device.run_as_read(self.package, self.path)
        if xml_text is None:
            return {}
        return parse_prefs_xml(xml_text)

    def _write(self, entries: Entries) -> bool:
        return self.device.run_as_write(self.package, self.path, render_prefs_xml(entries))
