"""
Seeds (and reads back) the target app's persisted configuration.

The snapshot is always written whole: one editor, one commit. The app is
the only writer once it is running, so seeding happens before launch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from adb.shared_prefs import PrefsStore
from harness import codec
from harness.codec import ListScheme
from harness.models import (
    Preferences,
    Selection,
    Site,
    Snapshot,
    ThemeMode,
    Webspace,
    build_snapshot,
)

KEY_PREFIX = "flutter."

SITES_KEY = "webViewModels"
WEBSPACES_KEY = "webspaces"
SELECTED_WEBSPACE_KEY = "selectedWebspaceId"
CURRENT_INDEX_KEY = "currentIndex"
THEME_MODE_KEY = "themeMode"
SHOW_URL_BAR_KEY = "showUrlBar"

LIST_KEYS = (SITES_KEY, WEBSPACES_KEY)
SNAPSHOT_KEYS = (
    SITES_KEY,
    WEBSPACES_KEY,
    SELECTED_WEBSPACE_KEY,
    CURRENT_INDEX_KEY,
    THEME_MODE_KEY,
    SHOW_URL_BAR_KEY,
)

PREVIEW_CHARS = 100


class WriteRejected(RuntimeError):
    """The preferences store refused the commit."""


@dataclass
class KeyReport:
    key: str
    store_key: str
    present: bool
    kind: Optional[str] = None
    count: Optional[int] = None
    preview: Optional[str] = None

    def line(self) -> str:
        if not self.present:
            return f"  {self.key}: MISSING"
        if self.count is not None:
            s = f"  {self.key}: {self.kind} ({self.count} items)"
            if self.preview:
                s += f" first={self.preview}"
            return s
        return f"  {self.key}: {self.kind} = {self.preview}"


@dataclass
class SnapshotReport:
    keys: list[KeyReport] = field(default_factory=list)

    def get(self, key: str) -> KeyReport:
        for k in self.keys:
            if k.key == key:
                return k
        raise KeyError(key)

    @property
    def all_present(self) -> bool:
        return all(k.present for k in self.keys)

    @property
    def all_absent(self) -> bool:
        return not any(k.present for k in self.keys)

    @property
    def site_count(self) -> Optional[int]:
        return self.get(SITES_KEY).count

    @property
    def webspace_count(self) -> Optional[int]:
        return self.get(WEBSPACES_KEY).count

    def format(self) -> str:
        return "\n".join(["Verification:"] + [k.line() for k in self.keys])


def _preview(text: str) -> str:
    return text[:PREVIEW_CHARS]


class StateSeeder:
    def __init__(self, store: PrefsStore, scheme: ListScheme, key_prefix: str = KEY_PREFIX):
        self.store = store
        self.scheme = scheme
        self.key_prefix = key_prefix

    def _k(self, key: str) -> str:
        return self.key_prefix + key

    def _encode_list(self, editor, key: str, records: list[str]):
        wire = codec.encode(records, self.scheme)
        if self.scheme.is_set:
            editor.put_string_set(self._k(key), wire)
        else:
            editor.put_string(self._k(key), wire)

    def seed(
        self,
        sites: Sequence[Site],
        webspaces: Sequence[Webspace],
        selection: Optional[Selection] = None,
        preferences: Optional[Preferences] = None,
    ) -> Snapshot:
        snapshot = build_snapshot(sites, webspaces, selection, preferences)
        self.seed_snapshot(snapshot)
        return snapshot

    def seed_snapshot(self, snapshot: Snapshot):
        """Replace every snapshot key in a single commit."""
        site_records = [s.to_record() for s in snapshot.sites]
        webspace_records = [w.to_record() for w in snapshot.webspaces]

        if self.scheme.is_set:
            # A set would silently fold identical records into one.
            for key, records in ((SITES_KEY, site_records), (WEBSPACES_KEY, webspace_records)):
                if len(set(records)) != len(records):
                    raise ValueError(f"{key}: duplicate records cannot be stored as a string set")

        editor = self.store.edit()
        self._encode_list(editor, SITES_KEY, site_records)
        self._encode_list(editor, WEBSPACES_KEY, webspace_records)
        editor.put_string(self._k(SELECTED_WEBSPACE_KEY), snapshot.selection.webspace_id)
        editor.put_long(self._k(CURRENT_INDEX_KEY), snapshot.selection.site_index)
        editor.put_long(self._k(THEME_MODE_KEY), int(snapshot.preferences.theme_mode))
        editor.put_boolean(self._k(SHOW_URL_BAR_KEY), snapshot.preferences.show_url_bar)

        if not editor.commit():
            raise WriteRejected(f"preferences store rejected the snapshot commit ({self.scheme.value})")

        logging.info(
            f"[SEED] wrote {len(site_records)} sites, {len(webspace_records)} webspaces "
            f"(scheme={self.scheme.value})"
        )
        if site_records:
            logging.debug(f"[SEED] example site: {site_records[0]}")
        if webspace_records:
            logging.debug(f"[SEED] example webspace: {webspace_records[0]}")

    def clear(self):
        present = [self._k(k) for k in SNAPSHOT_KEYS if self.store.contains(self._k(k))]
        if not present:
            logging.debug("[SEED] clear: nothing to remove")
            return
        editor = self.store.edit()
        for key in present:
            editor.remove(key)
        if not editor.commit():
            raise WriteRejected("preferences store rejected the clear commit")
        logging.info(f"[SEED] cleared {len(present)} keys")

    def verify(self) -> SnapshotReport:
        """Read every snapshot key back. Missing keys are reported, never raised."""
        entries = self.store.entries()
        report = SnapshotReport()
        for key in SNAPSHOT_KEYS:
            store_key = self._k(key)
            entry = entries.get(store_key)
            if entry is None:
                report.keys.append(KeyReport(key=key, store_key=store_key, present=False))
                continue
            kind, value = entry
            if key in LIST_KEYS:
                items = codec.decode(value, self.scheme)
                report.keys.append(
                    KeyReport(
                        key=key,
                        store_key=store_key,
                        present=True,
                        kind=kind,
                        count=len(items),
                        preview=_preview(items[0]) if items else None,
                    )
                )
            else:
                report.keys.append(
                    KeyReport(key=key, store_key=store_key, present=True, kind=kind, preview=_preview(str(value)))
                )
        logging.info("[VERIFY] " + report.format())
        return report

    def load_snapshot(self) -> Optional[Snapshot]:
        """Decode the stored snapshot, or None when no site list is stored.

        Under the string-set scheme the returned site order is whatever the
        store gave back, so webspace indices may not line up.
        """
        entries = self.store.entries()
        sites_entry = entries.get(self._k(SITES_KEY))
        if sites_entry is None:
            return None
        sites = [Site.from_record(r) for r in codec.decode(sites_entry[1], self.scheme)]

        ws_entry = entries.get(self._k(WEBSPACES_KEY))
        webspaces = []
        if ws_entry is not None:
            webspaces = [Webspace.from_record(r) for r in codec.decode(ws_entry[1], self.scheme)]

        def scalar(key: str, default):
            entry = entries.get(self._k(key))
            return entry[1] if entry is not None else default

        selection = Selection(
            webspace_id=scalar(SELECTED_WEBSPACE_KEY, Selection().webspace_id),
            site_index=int(scalar(CURRENT_INDEX_KEY, Selection().site_index)),
        )
        theme = int(scalar(THEME_MODE_KEY, int(ThemeMode.LIGHT)))
        try:
            theme_mode = ThemeMode(theme)
        except ValueError:
            logging.warning(f"[VERIFY] unknown theme ordinal {theme}, reading as light")
            theme_mode = ThemeMode.LIGHT
        preferences = Preferences(theme_mode=theme_mode, show_url_bar=bool(scalar(SHOW_URL_BAR_KEY, False)))
        return Snapshot(
            sites=tuple(sites),
            webspaces=tuple(webspaces),
            selection=selection,
            preferences=preferences,
        )
