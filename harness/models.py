"""
Value objects for the target app's persisted configuration.

Sites are identified by their position in the site list: webspaces point
at sites by index, so list order is part of the data and nothing in this
package ever sorts it.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional, Sequence

from harness.codec import DecodeError

ALL_WEBSPACE_ID = "__all_webspace__"
NO_SITE_SELECTED = 10000


class ThemeMode(IntEnum):
    LIGHT = 0
    DARK = 1
    SYSTEM = 2


@dataclass(frozen=True)
class Site:
    name: str
    init_url: str
    current_url: Optional[str] = None
    page_title: Optional[str] = None
    cookies: tuple = ()
    proxy_type: str = "DEFAULT"
    javascript_enabled: bool = True
    user_agent: str = ""
    third_party_cookies_enabled: bool = False

    def to_record(self) -> str:
        return json.dumps(
            {
                "initUrl": self.init_url,
                "currentUrl": self.current_url or self.init_url,
                "name": self.name,
                "pageTitle": self.page_title or self.name,
                "cookies": list(self.cookies),
                "proxySettings": {"type": self.proxy_type},
                "javascriptEnabled": self.javascript_enabled,
                "userAgent": self.user_agent,
                "thirdPartyCookiesEnabled": self.third_party_cookies_enabled,
            },
            ensure_ascii=False,
            separators=(",", ":"),
        )

    @classmethod
    def from_record(cls, record: str) -> "Site":
        obj = _load_record(record, "site")
        proxy = obj.get("proxySettings") or {}
        return cls(
            name=str(obj.get("name") or ""),
            init_url=str(obj.get("initUrl") or ""),
            current_url=obj.get("currentUrl"),
            page_title=obj.get("pageTitle"),
            cookies=tuple(obj.get("cookies") or ()),
            proxy_type=str(proxy.get("type") or "DEFAULT"),
            javascript_enabled=bool(obj.get("javascriptEnabled", True)),
            user_agent=str(obj.get("userAgent") or ""),
            third_party_cookies_enabled=bool(obj.get("thirdPartyCookiesEnabled", False)),
        )


@dataclass(frozen=True)
class Webspace:
    id: str
    name: str
    site_indices: tuple[int, ...] = ()

    @property
    def is_all(self) -> bool:
        return self.id == ALL_WEBSPACE_ID

    def members(self, site_count: int) -> list[int]:
        """Indices shown in this webspace. "All" ignores whatever it stored."""
        if self.is_all:
            return list(range(site_count))
        return list(self.site_indices)

    def to_record(self) -> str:
        return json.dumps(
            {"id": self.id, "name": self.name, "siteIndices": list(self.site_indices)},
            ensure_ascii=False,
            separators=(",", ":"),
        )

    @classmethod
    def from_record(cls, record: str) -> "Webspace":
        obj = _load_record(record, "webspace")
        indices = obj.get("siteIndices") or []
        if not all(isinstance(i, int) for i in indices):
            raise DecodeError(f"webspace siteIndices must be integers: {indices!r}")
        return cls(id=str(obj.get("id") or ""), name=str(obj.get("name") or ""), site_indices=tuple(indices))


def _load_record(record: str, what: str) -> dict[str, Any]:
    try:
        obj = json.loads(record)
    except json.JSONDecodeError as e:
        raise DecodeError(f"{what} record is not valid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise DecodeError(f"{what} record is a {type(obj).__name__}, not an object")
    return obj


def new_webspace_id() -> str:
    return "webspace_" + uuid.uuid4().hex[:8]


def all_webspace(name: str = "All") -> Webspace:
    return Webspace(id=ALL_WEBSPACE_ID, name=name, site_indices=())


def webspace(name: str, site_indices: Sequence[int]) -> Webspace:
    """A user webspace with a freshly generated id."""
    return Webspace(id=new_webspace_id(), name=name, site_indices=tuple(site_indices))


@dataclass(frozen=True)
class Selection:
    webspace_id: str = ALL_WEBSPACE_ID
    site_index: int = NO_SITE_SELECTED


@dataclass(frozen=True)
class Preferences:
    theme_mode: ThemeMode = ThemeMode.LIGHT
    show_url_bar: bool = False


@dataclass(frozen=True)
class Snapshot:
    sites: tuple[Site, ...] = ()
    webspaces: tuple[Webspace, ...] = ()
    selection: Selection = field(default_factory=Selection)
    preferences: Preferences = field(default_factory=Preferences)

    def webspace_named(self, name: str) -> Optional[Webspace]:
        for ws in self.webspaces:
            if ws.name == name:
                return ws
        return None

    def site_names(self, indices: Optional[Sequence[int]] = None) -> list[str]:
        if indices is None:
            return [s.name for s in self.sites]
        return [self.sites[i].name for i in indices]


def build_snapshot(
    sites: Sequence[Site],
    webspaces: Sequence[Webspace],
    selection: Optional[Selection] = None,
    preferences: Optional[Preferences] = None,
) -> Snapshot:
    """Assemble a snapshot and check it is self-consistent.

    Raises ValueError for out-of-range site indices, duplicate webspace ids,
    or a selection pointing at something that does not exist.
    """
    sites = tuple(sites)
    webspaces = tuple(webspaces)
    selection = selection or Selection()
    preferences = preferences or Preferences()

    seen_ids: set[str] = set()
    for ws in webspaces:
        if ws.id in seen_ids:
            raise ValueError(f"duplicate webspace id: {ws.id}")
        seen_ids.add(ws.id)
        if ws.is_all:
            continue
        for idx in ws.site_indices:
            if not 0 <= idx < len(sites):
                raise ValueError(f"webspace {ws.name!r} references missing site index {idx}")

    if selection.webspace_id != ALL_WEBSPACE_ID and selection.webspace_id not in seen_ids:
        raise ValueError(f"selected webspace does not exist: {selection.webspace_id}")
    if selection.site_index != NO_SITE_SELECTED and not 0 <= selection.site_index < len(sites):
        raise ValueError(f"selected site index out of range: {selection.site_index}")

    return Snapshot(
        sites=sites,
        webspaces=webspaces,
        selection=selection,
        preferences=Preferences(ThemeMode(preferences.theme_mode), bool(preferences.show_url_bar)),
    )


def demo_sites() -> list[Site]:
    """Eight sites that look natural in a store listing."""
    return [
        Site("My Blog", "https://example.com/blog"),
        Site("Home Dashboard", "http://homeserver.local:8080"),
        Site("Photo Gallery", "https://photos.example.com"),
        Site("Tasks", "https://tasks.example.com"),
        Site("Personal Wiki", "http://192.168.1.100:3000"),
        Site("Media Server", "http://192.168.1.101:8096"),
        Site("News Feed", "https://reader.example.com"),
        Site("Notes", "https://notes.example.com"),
    ]


def demo_webspaces() -> list[Webspace]:
    # Indices line up with demo_sites().
    return [
        all_webspace(),
        webspace("Work", [0, 3, 7]),
        webspace("Home Server", [1, 4, 5]),
        webspace("Personal", [2, 6, 7]),
    ]


def demo_snapshot() -> Snapshot:
    return build_snapshot(demo_sites(), demo_webspaces())
