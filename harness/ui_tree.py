"""
uiautomator dump parsing.

A Flutter app mixes two accessibility worlds: native widgets put their
visible label in `text`, while Flutter semantics nodes usually leave
`text` empty and put the label (sometimes several labels joined by
newlines) in `content-desc`. Both are kept on UiNode so callers can
choose which channel to look at.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple


@dataclass(frozen=True)
class UiNode:
    text: str
    desc: str
    res_id: str
    cls: str
    clickable: bool
    enabled: bool
    bounds: str
    index: int = 0

    @property
    def label(self) -> str:
        return self.text or self.desc

    def rect(self) -> Optional[Tuple[int, int, int, int]]:
        return parse_bounds(self.bounds)

    def center(self) -> Optional[Tuple[int, int]]:
        rect = self.rect()
        if not rect:
            return None
        left, top, right, bottom = rect
        return (left + right) // 2, (top + bottom) // 2


def is_xml_unusable(xml: str) -> bool:
    """Very small guard for empty/garbled uiautomator dumps."""
    if not xml:
        return True
    xml = xml.strip()
    if len(xml) < 50:
        return True
    if "<node" not in xml:
        return True
    return False


def parse_bounds(bounds: str) -> Optional[Tuple[int, int, int, int]]:
    """Convert Android bounds "[l,t][r,b]" into (left, top, right, bottom)."""
    if not bounds:
        return None
    m = re.match(r"\[(-?\d+),(-?\d+)\]\[(-?\d+),(-?\d+)\]", bounds.strip())
    if not m:
        return None
    return tuple(map(int, m.groups()))  # type: ignore[return-value]


def safe_parse_xml(xml_text: str) -> Optional[ET.Element]:
    """Returns None for blank dumps or parse errors."""
    if is_xml_unusable(xml_text):
        return None
    try:
        return ET.fromstring(xml_text)
    except ET.ParseError:
        return None


def iter_nodes(root: Optional[ET.Element]) -> Iterator[UiNode]:
    if root is None:
        return
    for i, el in enumerate(root.iter("node")):
        yield UiNode(
            text=(el.attrib.get("text") or "").strip(),
            desc=(el.attrib.get("content-desc") or "").strip(),
            res_id=(el.attrib.get("resource-id") or "").strip(),
            cls=(el.attrib.get("class") or "").strip(),
            clickable=(el.attrib.get("clickable") == "true"),
            enabled=(el.attrib.get("enabled", "true") != "false"),
            bounds=(el.attrib.get("bounds") or "").strip(),
            index=i,
        )


def nodes_from_xml(xml_text: str) -> list[UiNode]:
    return list(iter_nodes(safe_parse_xml(xml_text)))


def norm(s: str) -> str:
    return re.sub(r"\s+", " ", (s or "").lower()).strip()


def visible_labels(nodes: list[UiNode], limit: int = 15) -> list[str]:
    out = []
    for n in nodes:
        if n.label:
            out.append(n.label)
        if len(out) >= limit:
            break
    return out
